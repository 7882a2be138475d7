"""Networks that carry envelopes between agents running as asyncio tasks.

:class:`BroadcastHub` is the fan-out primitive: every subscriber receives
every item published after it subscribed, including items it published
itself.  Subscribers are bounded; a full subscriber drops its oldest item
and counts the loss in ``lagged`` rather than blocking the publisher.

The behavior engine reuses the hub for its state-change and message buses.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import threading
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from arbiter.core.handler import OBJECT_CODEC, Codec, Envelope

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

DEFAULT_NETWORK_CAPACITY = 1024


class BroadcastHub(Generic[_T]):
    """Bounded multi-subscriber broadcast channel."""

    def __init__(self, capacity: int = DEFAULT_NETWORK_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._subscribers: list[Subscription[_T]] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription[_T]:
        sub: Subscription[_T] = Subscription(self)
        if self._closed:
            sub._closed = True
        self._subscribers.append(sub)
        return sub

    def unsubscribe(self, sub: Subscription[_T]) -> None:
        if sub in self._subscribers:
            self._subscribers.remove(sub)

    def publish(self, item: _T) -> int:
        """Deliver *item* to every subscriber. Returns the receiver count."""
        if self._closed:
            raise RuntimeError("broadcast hub is closed")
        for sub in self._subscribers:
            sub._push(item)
        return len(self._subscribers)

    def close(self) -> None:
        """Close the hub; receivers drain what is buffered, then get None."""
        self._closed = True
        for sub in self._subscribers:
            sub._close()


class Subscription(Generic[_T]):
    """One receiver on a :class:`BroadcastHub`."""

    def __init__(self, hub: BroadcastHub[_T]) -> None:
        self._hub = hub
        self._buffer: deque[_T] = deque()
        self._waiter: asyncio.Event | None = None
        self._closed = False
        self.lagged = 0

    def _wake(self) -> None:
        if self._waiter is not None:
            self._waiter.set()

    def _push(self, item: _T) -> None:
        if len(self._buffer) >= self._hub.capacity:
            self._buffer.popleft()
            self.lagged += 1
        self._buffer.append(item)
        self._wake()

    def _close(self) -> None:
        self._closed = True
        self._wake()

    def pending(self) -> int:
        return len(self._buffer)

    def try_receive(self) -> _T | None:
        return self._buffer.popleft() if self._buffer else None

    async def receive(self) -> _T | None:
        """Wait for the next item; None once the hub is closed and drained."""
        while not self._buffer:
            if self._closed:
                return None
            self._waiter = asyncio.Event()
            await self._waiter.wait()
            self._waiter = None
        return self._buffer.popleft()

    def resubscribe(self) -> Subscription[_T]:
        """A fresh subscription to the same hub, starting empty."""
        return self._hub.subscribe()

    def unsubscribe(self) -> None:
        self._hub.unsubscribe(self)


# --- Addresses ---


_address_counter = itertools.count(1)
_address_lock = threading.Lock()


@dataclass(frozen=True)
class InMemoryAddress:
    """32-byte address; the first 8 bytes hold a little-endian counter."""

    raw: bytes

    def __post_init__(self) -> None:
        if len(self.raw) != 32:
            raise ValueError("InMemoryAddress must be exactly 32 bytes")

    @classmethod
    def generate(cls) -> InMemoryAddress:
        with _address_lock:
            value = next(_address_counter)
        return cls(value.to_bytes(8, "little") + bytes(24))

    def __str__(self) -> str:
        return f"agent-{self.raw[:4].hex()}"


# --- Networks ---


class Network(ABC):
    """Transport shared by networked agents."""

    codec: Codec = OBJECT_CODEC

    @classmethod
    @abstractmethod
    def generate_address(cls) -> Any:
        """Create a fresh address for an agent on this kind of network."""

    @abstractmethod
    def join(self) -> Network:
        """A handle on the same network with its own receive side."""

    @abstractmethod
    async def send(self, envelope: Envelope) -> None: ...

    @abstractmethod
    async def receive(self) -> Envelope | None:
        """Next envelope, or None once the network is closed."""

    @abstractmethod
    def close(self) -> None: ...


class InMemoryNetwork(Network):
    """In-process broadcast network carrying message objects."""

    codec = OBJECT_CODEC

    def __init__(
        self,
        capacity: int = DEFAULT_NETWORK_CAPACITY,
        *,
        _hub: BroadcastHub[Envelope] | None = None,
    ) -> None:
        self._hub: BroadcastHub[Envelope] = _hub or BroadcastHub(capacity)
        self._subscription = self._hub.subscribe()

    @classmethod
    def generate_address(cls) -> InMemoryAddress:
        return InMemoryAddress.generate()

    def join(self) -> InMemoryNetwork:
        return InMemoryNetwork(_hub=self._hub)

    async def send(self, envelope: Envelope) -> None:
        receivers = self._hub.publish(envelope)
        logger.debug("Published %s to %d receivers", envelope.type_key, receivers)

    async def receive(self) -> Envelope | None:
        return await self._subscription.receive()

    @property
    def lagged(self) -> int:
        return self._subscription.lagged

    def close(self) -> None:
        self._hub.close()


@dataclass
class Connection:
    """An agent's address plus its handle on a network."""

    address: Any
    network: Network

    @classmethod
    def open(cls, network_cls: type[Network] = InMemoryNetwork) -> Connection:
        """Create a brand new network and connect to it."""
        return cls(address=network_cls.generate_address(), network=network_cls())

    def join(self) -> Connection:
        return Connection(address=self.address, network=self.network.join())
