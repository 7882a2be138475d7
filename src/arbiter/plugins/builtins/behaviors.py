"""Built-in configurable behaviors.

``TimedMessage`` answers one message with another and ``DatabaseWriter``
fills the environment with a fixed sequence of writes.  Both are exposed to
world config files through the ``register_behaviors`` hook.
"""

from __future__ import annotations

import asyncio
import logging

import pluggy
from pydantic import Field

from arbiter.engine.machine import (
    Actions,
    ConfigurableBehavior,
    ControlFlow,
    Event,
    Filter,
    MessageEvent,
    all_events,
    messages_only,
)
from arbiter.engine.messager import MessageTo

hookimpl = pluggy.HookimplMarker("arbiter")

logger = logging.getLogger(__name__)


class TimedMessage(ConfigurableBehavior):
    """Reply with ``send_data`` whenever ``receive_data`` arrives.

    ``delay`` is in milliseconds and is waited before each reply.  The
    behavior halts after ``max_count`` replies; ``None`` means never.
    """

    delay: int = Field(default=0, ge=0)
    receive_data: str
    send_data: str
    count: int = 0
    max_count: int | None = 3
    startup_message: str | None = None

    def startup(self) -> tuple[Filter | None, Actions]:
        logger.debug(
            "TimedMessage startup: receive_data=%s, send_data=%s, startup_message=%s",
            self.receive_data,
            self.send_data,
            self.startup_message,
        )
        actions = Actions()
        if self.startup_message is not None:
            logger.info("Sending startup message: %s", self.startup_message)
            actions.send(MessageTo(data=self.startup_message))
        return messages_only, actions

    async def process_event(self, event: Event) -> tuple[ControlFlow, Actions]:
        actions = Actions()
        if isinstance(event, MessageEvent) and event.message.data == self.receive_data:
            if self.delay:
                await asyncio.sleep(self.delay / 1000)
            logger.info("Message matches! Sending response: %s", self.send_data)
            actions.send(MessageTo(data=self.send_data))
            self.count += 1

        if self.max_count is not None and self.count >= self.max_count:
            logger.info("Reached max count (%d), halting behavior", self.max_count)
            return ControlFlow.HALT, actions
        return ControlFlow.CONTINUE, actions


class DatabaseWriter(ConfigurableBehavior):
    """Write ``key -> key * 10`` for keys ``0..max_writes-1``.

    The first write happens at startup, each later one in response to any
    event (usually the broadcast of the previous write).
    """

    max_writes: int = Field(ge=1)
    writes_completed: int = 0

    def startup(self) -> tuple[Filter | None, Actions]:
        logger.info("DatabaseWriter startup: will write %d times to database", self.max_writes)
        actions = Actions()
        self._write_next(actions)
        return all_events, actions

    async def process_event(self, event: Event) -> tuple[ControlFlow, Actions]:
        actions = Actions()
        if self.writes_completed >= self.max_writes:
            logger.info("DatabaseWriter: Already completed all writes, halting")
            return ControlFlow.HALT, actions

        self._write_next(actions)
        if self.writes_completed >= self.max_writes:
            logger.info("DatabaseWriter: Completed %d writes, halting", self.max_writes)
            return ControlFlow.HALT, actions
        return ControlFlow.CONTINUE, actions

    def _write_next(self, actions: Actions) -> None:
        key = self.writes_completed
        actions.state_change(key, key * 10)
        logger.info("DatabaseWriter: Wrote key=%d, value=%d", key, key * 10)
        self.writes_completed += 1


class BuiltinBehaviorsPlugin:
    """Registers the built-in behaviors under their class names."""

    @hookimpl
    def register_behaviors(self) -> dict[str, type[ConfigurableBehavior]]:
        return {
            TimedMessage.config_name(): TimedMessage,
            DatabaseWriter.config_name(): DatabaseWriter,
        }
