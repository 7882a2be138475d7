"""Message handlers, handle results, and the envelope wire format.

A lifecycle object declares which message types it handles by decorating
methods with :func:`handles`.  The :class:`Agent` turns those methods into
:data:`MessageHandlerFn` callables via :func:`create_handler`, which unpack
an :class:`Envelope`, invoke the method, and re-package any reply.

Two codecs decide what travels inside an envelope:

- :class:`ObjectCodec`: the message object itself (in-memory networks).
- :class:`JsonCodec`: JSON bytes produced by a pydantic ``TypeAdapter``.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Protocol, TypeVar

from pydantic import TypeAdapter, ValidationError

from arbiter.errors import HandlerError

HANDLES_ATTR = "__arbiter_handles__"

_F = TypeVar("_F", bound=Callable[..., Any])


class ResultKind(StrEnum):
    """What a handler asked the agent to do after handling a message."""

    MESSAGE = "message"
    NONE = "none"
    STOP = "stop"


@dataclass(frozen=True)
class HandleResult:
    """Outcome of a single handler invocation."""

    kind: ResultKind
    message: Any = None

    @classmethod
    def reply(cls, message: Any) -> HandleResult:
        return cls(ResultKind.MESSAGE, message)

    @classmethod
    def none(cls) -> HandleResult:
        return cls(ResultKind.NONE)

    @classmethod
    def stop(cls) -> HandleResult:
        return cls(ResultKind.STOP)

    @classmethod
    def coerce(cls, value: Any) -> HandleResult:
        """Normalize a handler's return value.

        ``None`` means no reply, a :class:`HandleResult` passes through, and
        anything else is a reply message.
        """
        if value is None:
            return cls.none()
        if isinstance(value, HandleResult):
            return value
        return cls.reply(value)

    @property
    def is_reply(self) -> bool:
        return self.kind is ResultKind.MESSAGE

    @property
    def is_stop(self) -> bool:
        return self.kind is ResultKind.STOP


# --- Handler declaration ---


def handles(message_type: type) -> Callable[[_F], _F]:
    """Mark a lifecycle method as the handler for *message_type*.

    Usage::

        class Counter(LifeCycle):
            @handles(Increment)
            def on_increment(self, message: Increment) -> None:
                self.total += message.value
    """

    def decorator(func: _F) -> _F:
        declared: tuple[type, ...] = getattr(func, HANDLES_ATTR, ())
        setattr(func, HANDLES_ATTR, (*declared, message_type))
        return func

    return decorator


@lru_cache(maxsize=None)
def handler_table(cls: type) -> MappingProxyType[type, str]:
    """Map each handled message type to its method name on *cls*.

    Walks the MRO from the base up so subclasses override their parents.
    The table is cached per class and read-only.
    """
    table: dict[type, str] = {}
    for klass in reversed(cls.__mro__):
        for name, member in vars(klass).items():
            for message_type in getattr(member, HANDLES_ATTR, ()):
                table[message_type] = name
    return MappingProxyType(table)


def message_type_key(message_type: type) -> str:
    """Stable identity of a message type on the wire."""
    return f"{message_type.__module__}.{message_type.__qualname__}"


# --- Codecs ---


class Codec(Protocol):
    """Converts messages to and from envelope payloads."""

    def encode(self, message: Any) -> Any: ...

    def decode(self, payload: Any, message_type: type) -> Any: ...


class ObjectCodec:
    """Identity codec: the payload is the message object."""

    def encode(self, message: Any) -> Any:
        return message

    def decode(self, payload: Any, message_type: type) -> Any:
        if not isinstance(payload, message_type):
            msg = f"Failed to unpackage message of type {message_type_key(message_type)}"
            raise HandlerError(msg)
        return payload


class JsonCodec:
    """JSON-bytes codec backed by pydantic ``TypeAdapter``s."""

    def __init__(self) -> None:
        self._adapters: dict[type, TypeAdapter[Any]] = {}

    def _adapter(self, message_type: type) -> TypeAdapter[Any]:
        adapter = self._adapters.get(message_type)
        if adapter is None:
            adapter = TypeAdapter(message_type)
            self._adapters[message_type] = adapter
        return adapter

    def encode(self, message: Any) -> bytes:
        return self._adapter(type(message)).dump_json(message)

    def decode(self, payload: Any, message_type: type) -> Any:
        try:
            return self._adapter(message_type).validate_json(payload)
        except ValidationError as exc:
            msg = f"Failed to unpackage message of type {message_type_key(message_type)}: {exc}"
            raise HandlerError(msg) from exc


OBJECT_CODEC = ObjectCodec()


# --- Envelope ---


@dataclass(frozen=True)
class Envelope:
    """A packaged message plus the key of its type."""

    payload: Any
    type_key: str

    @classmethod
    def package(cls, message: Any, codec: Codec = OBJECT_CODEC) -> Envelope:
        return cls(payload=codec.encode(message), type_key=message_type_key(type(message)))

    def carries(self, message_type: type) -> bool:
        return self.type_key == message_type_key(message_type)

    def unpackage(self, message_type: type, codec: Codec = OBJECT_CODEC) -> Any | None:
        """Decode the payload, or return None if it holds another type."""
        if not self.carries(message_type):
            return None
        return codec.decode(self.payload, message_type)


MessageHandlerFn = Callable[[Any, Envelope], HandleResult]


def create_handler(message_type: type, codec: Codec = OBJECT_CODEC) -> MessageHandlerFn:
    """Build the dispatch function for *message_type*.

    The returned callable takes the lifecycle object and an envelope.  A
    reply message is re-packaged with the same codec, so the result's
    ``message`` is always an :class:`Envelope` for replies.
    """

    def handle(inner: Any, envelope: Envelope) -> HandleResult:
        method_name = handler_table(type(inner)).get(message_type)
        if method_name is None:
            msg = f"{type(inner).__name__} has no handler for {message_type.__name__}"
            raise HandlerError(msg)
        message = envelope.unpackage(message_type, codec)
        if message is None:
            msg = f"Failed to unpackage message of type {message_type_key(message_type)}"
            raise HandlerError(msg)
        result = HandleResult.coerce(getattr(inner, method_name)(message))
        if result.is_reply:
            return HandleResult.reply(Envelope.package(result.message, codec))
        return result

    return handle
