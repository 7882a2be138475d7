"""Broadcast message bus shared by the agents of one world.

Every message goes to every subscriber; a receiver keeps only messages
addressed to everyone or to its own agent id.  Agents see their own
broadcasts.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Literal

from pydantic import BaseModel, Field

from arbiter.core.network import BroadcastHub, Subscription
from arbiter.errors import MessagerError

logger = logging.getLogger(__name__)

DEFAULT_MESSAGER_CAPACITY = 512


class To(BaseModel):
    """Recipient of a message: everyone, or one agent."""

    model_config = {"frozen": True}

    kind: Literal["all", "agent"] = "all"
    agent_id: str | None = None

    @classmethod
    def all(cls) -> To:
        return cls(kind="all")

    @classmethod
    def agent(cls, agent_id: str) -> To:
        return cls(kind="agent", agent_id=agent_id)

    def includes(self, agent_id: str | None) -> bool:
        return self.kind == "all" or self.agent_id == agent_id


class Message(BaseModel):
    """A message as it travels on the bus."""

    model_config = {"frozen": True, "populate_by_name": True}

    from_: str = Field(alias="from")
    to: To
    data: str


class MessageTo(BaseModel):
    """An outgoing message, before the sender is stamped on it."""

    model_config = {"frozen": True}

    to: To = Field(default_factory=To.all)
    data: str


class MessageFrom(BaseModel):
    """An incoming message as seen by its recipient."""

    model_config = {"frozen": True, "populate_by_name": True}

    from_: str = Field(alias="from")
    data: str


class Messager:
    """One agent's connection to the world's message bus."""

    def __init__(
        self,
        capacity: int = DEFAULT_MESSAGER_CAPACITY,
        *,
        agent_id: str | None = None,
        _hub: BroadcastHub[Message] | None = None,
    ) -> None:
        self.id = agent_id
        self._hub: BroadcastHub[Message] = _hub or BroadcastHub(capacity)
        self._receiver: Subscription[Message] = self._hub.subscribe()

    def for_agent(self, agent_id: str) -> Messager:
        """A messager on the same bus, stamped with *agent_id*."""
        return Messager(agent_id=agent_id, _hub=self._hub)

    async def send(self, message: MessageTo) -> None:
        if self.id is None:
            raise MessagerError("Messager has no agent id; use for_agent() before sending")
        if self._hub.closed:
            raise MessagerError("Message bus is closed")
        self._hub.publish(Message(from_=self.id, to=message.to, data=message.data))
        logger.debug("Agent %s sent %r", self.id, message.data)

    async def receive(self) -> MessageFrom | None:
        """Next message addressed to this agent; None once the bus closes."""
        while True:
            message = await self._receiver.receive()
            if message is None:
                return None
            if message.to.includes(self.id):
                return MessageFrom(from_=message.from_, data=message.data)

    async def messages(self) -> AsyncIterator[MessageFrom]:
        while True:
            message = await self.receive()
            if message is None:
                return
            yield message

    @property
    def lagged(self) -> int:
        return self._receiver.lagged

    def close(self) -> None:
        self._hub.close()
