"""Databases and the in-memory environment that serializes writes to them.

Agents never touch the database directly.  They send ``(location, state)``
transactions through a :class:`Middleware`; the environment task applies
them in arrival order and then broadcasts each applied change so every
agent observes the same sequence of state changes.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Iterator
from typing import Any

from arbiter.core.network import BroadcastHub, Subscription
from arbiter.engine.machine import StateChangeEvent
from arbiter.errors import DatabaseError

logger = logging.getLogger(__name__)

DEFAULT_ENVIRONMENT_CAPACITY = 1000

_SHUTDOWN = object()


class Database(ABC):
    """Key/value store behind an environment."""

    @abstractmethod
    def get(self, location: Any) -> Any: ...

    @abstractmethod
    def set(self, location: Any, state: Any) -> None: ...


class DictDatabase(Database):
    """Dict-backed database."""

    def __init__(self, initial: dict[Any, Any] | None = None) -> None:
        self._data: dict[Any, Any] = dict(initial or {})

    def get(self, location: Any) -> Any:
        try:
            return self._data[location]
        except KeyError:
            raise DatabaseError(f"No state stored at {location!r}") from None

    def set(self, location: Any, state: Any) -> None:
        self._data[location] = state

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._data)

    def __contains__(self, location: object) -> bool:
        return location in self._data

    def as_dict(self) -> dict[Any, Any]:
        return dict(self._data)


class NullDatabase(Database):
    """Accepts every write and stores nothing."""

    def get(self, location: Any) -> None:
        return None

    def set(self, location: Any, state: Any) -> None:
        return None

    def __len__(self) -> int:
        return 0


class InMemoryEnvironment:
    """Applies transactions to a database and broadcasts the changes."""

    def __init__(
        self,
        database: Database | None = None,
        capacity: int = DEFAULT_ENVIRONMENT_CAPACITY,
    ) -> None:
        self._database: Database = database if database is not None else DictDatabase()
        self.capacity = capacity
        self._transactions: asyncio.Queue[Any] | None = None
        self._broadcast: BroadcastHub[StateChangeEvent] = BroadcastHub(capacity)
        self._task: asyncio.Task[Database] | None = None
        self._closed = False

    @property
    def database(self) -> Database:
        return self._database

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _queue(self) -> asyncio.Queue[Any]:
        # Created lazily so the queue binds to the loop that runs the world.
        if self._transactions is None:
            self._transactions = asyncio.Queue()
        return self._transactions

    def middleware(self) -> Middleware:
        return Middleware(self, self._broadcast.subscribe())

    def run(self) -> asyncio.Task[Database]:
        """Start applying transactions on the running event loop."""
        if self._task is not None:
            raise DatabaseError("Environment is already running")
        self._task = asyncio.create_task(self._apply_transactions(), name="arbiter-environment")
        return self._task

    async def _apply_transactions(self) -> Database:
        queue = self._queue()
        while True:
            item = await queue.get()
            if item is _SHUTDOWN:
                break
            location, state = item
            self._database.set(location, state)
            self._broadcast.publish(StateChangeEvent(location, state))
        return self._database

    async def _submit(self, location: Any, state: Any) -> None:
        if self._closed:
            raise DatabaseError("Failed to send transaction: environment is shut down")
        await self._queue().put((location, state))

    async def shutdown(self) -> Database:
        """Drain queued transactions, stop the task, and close the broadcast."""
        if self._closed:
            return self._database
        self._closed = True
        if self._task is not None:
            await self._queue().put(_SHUTDOWN)
            await self._task
        self._broadcast.close()
        logger.debug("Environment shut down")
        return self._database


class Middleware:
    """An agent's handle on the environment."""

    def __init__(self, environment: InMemoryEnvironment, receiver: Subscription[Any]) -> None:
        self._environment = environment
        self.receiver = receiver

    async def send(self, location: Any, state: Any) -> None:
        await self._environment._submit(location, state)

    async def events(self) -> AsyncIterator[StateChangeEvent]:
        while True:
            event = await self.receiver.receive()
            if event is None:
                return
            yield event

    def clone(self) -> Middleware:
        """Same sender, fresh subscription."""
        return Middleware(self._environment, self.receiver.resubscribe())


# --- Wire helpers ---


def create_transaction(location: Any, state: Any) -> bytes:
    """Encode a transaction as a JSON ``[location, state]`` pair."""
    try:
        return json.dumps([location, state]).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise DatabaseError(f"Failed to serialize transaction: {exc}") from exc


def read_transaction(raw: bytes) -> tuple[Any, Any]:
    try:
        location, state = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise DatabaseError(f"Failed to deserialize transaction: {exc}") from exc
    return location, state
