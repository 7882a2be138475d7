"""Agents: a lifecycle object, a mailbox, and a handler table.

State machine::

    stopped --start--> running --pause--> paused --resume--> running
       ^                  |                  |
       +------stop--------+-------stop-------+

Stopped agents drop incoming mail and stopping clears the mailbox.  Paused
agents queue mail without processing it; resuming processes the backlog.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from arbiter.core.handler import (
    OBJECT_CODEC,
    Codec,
    Envelope,
    HandleResult,
    MessageHandlerFn,
    create_handler,
    handler_table,
)
from arbiter.errors import HandlerError

if TYPE_CHECKING:
    from arbiter.core.network import Network

logger = logging.getLogger(__name__)

_L = TypeVar("_L", bound="LifeCycle")

_id_counter = itertools.count(1)
_id_lock = threading.Lock()


@dataclass(frozen=True, order=True)
class AgentId:
    """Process-unique agent identifier."""

    value: int

    @classmethod
    def generate(cls) -> AgentId:
        with _id_lock:
            return cls(next(_id_counter))

    def __str__(self) -> str:
        return f"agent-{self.value}"


class AgentState(StrEnum):
    STOPPED = "stopped"
    RUNNING = "running"
    PAUSED = "paused"


class LifeCycle:
    """Base class for the objects agents wrap.

    ``on_start`` and ``on_stop`` may return a message; networked agents
    publish it when the transition happens.
    """

    def on_start(self) -> Any:
        return None

    def on_pause(self) -> None:
        return None

    def on_stop(self) -> Any:
        return None

    def on_resume(self) -> None:
        return None


class Agent(Generic[_L]):
    """Runtime wrapper around a :class:`LifeCycle` object."""

    def __init__(
        self,
        inner: _L,
        name: str | None = None,
        *,
        codec: Codec = OBJECT_CODEC,
    ) -> None:
        self.id = AgentId.generate()
        self.name = name
        self.inner = inner
        self.state = AgentState.STOPPED
        self.connection: Any = None
        self._codec = codec
        self._mailbox: deque[Any] = deque()
        self._handlers: dict[type, MessageHandlerFn] = {}

    def __repr__(self) -> str:
        label = f" {self.name!r}" if self.name else ""
        return f"<Agent {self.id}{label} {self.state}>"

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def join_network(
        cls,
        inner: _L,
        network: Network,
        name: str | None = None,
    ) -> Agent[_L]:
        """Create an agent connected to an existing network."""
        from arbiter.core.network import Connection

        agent = cls(inner, name, codec=network.codec)
        agent.connection = Connection(address=network.generate_address(), network=network.join())
        return agent

    def with_handler(self, message_type: type) -> Agent[_L]:
        """Enable dispatch of *message_type* to the inner object's handler."""
        if message_type not in handler_table(type(self.inner)):
            msg = f"{type(self.inner).__name__} has no handler for {message_type.__name__}"
            raise HandlerError(msg)
        self._handlers[message_type] = create_handler(message_type, self._codec)
        return self

    def handles(self, message_type: type) -> bool:
        return message_type in self._handlers

    @property
    def handled_types(self) -> frozenset[type]:
        return frozenset(self._handlers)

    @property
    def address(self) -> Any:
        return self.connection.address if self.connection is not None else None

    def set_name(self, name: str) -> None:
        self.name = name

    def clear_name(self) -> None:
        self.name = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> Any:
        if self.state is AgentState.RUNNING:
            return None
        start_message = self.inner.on_start()
        self.state = AgentState.RUNNING
        logger.debug("Started %s", self)
        return start_message

    def pause(self) -> None:
        if self.state is AgentState.RUNNING:
            self.inner.on_pause()
            self.state = AgentState.PAUSED

    def stop(self) -> Any:
        if self.state is AgentState.STOPPED:
            return None
        stop_message = self.inner.on_stop()
        self.state = AgentState.STOPPED
        self._mailbox.clear()
        logger.debug("Stopped %s", self)
        return stop_message

    def resume(self) -> list[HandleResult]:
        """Resume a paused agent and process the mail queued meanwhile."""
        if self.state is not AgentState.PAUSED:
            return []
        self.inner.on_resume()
        self.state = AgentState.RUNNING
        return self.process_pending_messages()

    @property
    def is_active(self) -> bool:
        return self.state is AgentState.RUNNING

    # ------------------------------------------------------------------
    # Mailbox
    # ------------------------------------------------------------------

    def enqueue(self, message: Any) -> bool:
        """Queue *message*. Returns False when the agent is stopped."""
        if self.state is AgentState.STOPPED:
            return False
        self._mailbox.append(message)
        return True

    @property
    def pending_count(self) -> int:
        return len(self._mailbox)

    @property
    def should_process_mailbox(self) -> bool:
        return bool(self._mailbox) and self.is_active

    def process_pending_messages(self) -> list[HandleResult]:
        """Drain the mailbox in FIFO order.

        Returns one result per handled message; reply results carry the raw
        reply message.  A ``stop`` result stops the agent immediately.
        """
        results: list[HandleResult] = []
        if not self.is_active:
            return results

        while self._mailbox:
            message = self._mailbox.popleft()
            result = self.dispatch(message)
            if result is None:
                continue
            results.append(result)
            if result.is_stop:
                self.stop()
                break
        return results

    def dispatch(self, message: Any) -> HandleResult | None:
        """Invoke the handler for *message*; None when none is registered."""
        if type(message) not in self._handlers:
            logger.debug("%s has no handler for %s", self, type(message).__name__)
            return None
        method_name = handler_table(type(self.inner))[type(message)]
        return HandleResult.coerce(getattr(self.inner, method_name)(message))

    def dispatch_envelope(self, envelope: Envelope) -> HandleResult | None:
        """Network-side dispatch; reply results carry an :class:`Envelope`."""
        for message_type, handler in self._handlers.items():
            if envelope.carries(message_type):
                return handler(self.inner, envelope)
        return None

    def process(self) -> AgentProcess[_L]:
        """Wrap a networked agent in an :class:`AgentProcess`."""
        if self.connection is None:
            raise HandlerError(f"{self} is not connected to a network")
        return AgentProcess(self)


@dataclass
class AgentProcess(Generic[_L]):
    """A networked agent running its receive loop as an asyncio task."""

    agent: Agent[_L]
    _task: asyncio.Task[Agent[_L]] | None = field(default=None, init=False)

    @property
    def network(self) -> Network:
        return self.agent.connection.network

    async def start(self) -> None:
        start_message = self.agent.start()
        if start_message is not None:
            await self.network.send(Envelope.package(start_message, self.network.codec))
        self._task = asyncio.create_task(self._run(), name=f"arbiter-{self.agent.id}")

    async def _run(self) -> Agent[_L]:
        agent = self.agent
        network = self.network
        while agent.is_active:
            envelope = await network.receive()
            if envelope is None:
                logger.debug("Network closed for %s", agent)
                break
            result = agent.dispatch_envelope(envelope)
            if result is None:
                continue
            if result.is_reply:
                await network.send(result.message)
            elif result.is_stop:
                stop_message = agent.stop()
                if stop_message is not None:
                    await network.send(Envelope.package(stop_message, network.codec))
                break
        return agent

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def join(self) -> Agent[_L]:
        if self._task is None:
            raise HandlerError(f"{self.agent} was never started")
        return await self._task

    async def cancel(self) -> Agent[_L]:
        """Cancel a receive loop that will not stop by itself."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self.agent.stop()
        return self.agent
