"""Engine agents: an id, a bundle of behaviors, and a merged event stream."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

from arbiter.engine.machine import (
    Actions,
    Behavior,
    ConfigurableBehavior,
    Event,
    MessageAction,
    MessageEvent,
    StateChangeAction,
)
from arbiter.errors import AgentBuildError

if TYPE_CHECKING:
    from arbiter.engine.environment import Middleware
    from arbiter.engine.messager import Messager

logger = logging.getLogger(__name__)


class AgentBuilder:
    """Collects behaviors for an agent before it joins a world."""

    def __init__(self, agent_id: str) -> None:
        if not agent_id:
            raise AgentBuildError("Agent id must not be empty")
        self.id = agent_id
        self.behaviors: list[Behavior] = []

    def with_behavior(self, behavior: Behavior) -> AgentBuilder:
        self.behaviors.append(behavior)
        return self

    def with_behavior_from_config(self, config: ConfigurableBehavior) -> AgentBuilder:
        return self.with_behavior(config.create_behavior())

    def build(self, middleware: Middleware, messager: Messager) -> EngineAgent:
        if messager.id != self.id:
            msg = f"Messager for {messager.id!r} cannot be used by agent {self.id!r}"
            raise AgentBuildError(msg)
        return EngineAgent(
            agent_id=self.id,
            sender=ActionSender(middleware, messager),
            middleware=middleware,
            messager=messager,
            behaviors=list(self.behaviors),
        )


class ActionSender:
    """Routes behavior actions to the environment and the message bus."""

    def __init__(self, middleware: Middleware, messager: Messager) -> None:
        self._middleware = middleware
        self._messager = messager

    async def execute(self, actions: Actions) -> None:
        for action in actions:
            if isinstance(action, StateChangeAction):
                await self._middleware.send(action.location, action.state)
            elif isinstance(action, MessageAction):
                await self._messager.send(action.message)
            else:
                raise TypeError(f"Unknown action {action!r}")


class EngineAgent:
    """A built agent, ready to run inside a world."""

    def __init__(
        self,
        agent_id: str,
        sender: ActionSender,
        middleware: Middleware,
        messager: Messager,
        behaviors: list[Behavior],
    ) -> None:
        self.id = agent_id
        self.sender = sender
        self.behaviors = behaviors
        self._middleware = middleware
        self._messager = messager

    async def events(self) -> AsyncIterator[Event]:
        """Merge state changes and addressed messages into one stream.

        The stream ends once both sources have closed.
        """
        queue: asyncio.Queue[Event | None] = asyncio.Queue()

        async def pump_state_changes() -> None:
            async for event in self._middleware.events():
                await queue.put(event)
            await queue.put(None)

        async def pump_messages() -> None:
            async for message in self._messager.messages():
                await queue.put(MessageEvent(message))
            await queue.put(None)

        pumps = [
            asyncio.create_task(pump_state_changes(), name=f"{self.id}-state"),
            asyncio.create_task(pump_messages(), name=f"{self.id}-messages"),
        ]
        open_sources = len(pumps)
        try:
            while open_sources:
                event = await queue.get()
                if event is None:
                    open_sources -= 1
                    continue
                yield event
        finally:
            for pump in pumps:
                pump.cancel()
            await asyncio.gather(*pumps, return_exceptions=True)
