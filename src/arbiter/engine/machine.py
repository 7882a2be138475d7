"""Behaviors, the events they react to, and the actions they emit.

A :class:`Behavior` is the unit of agent logic in the engine.  At startup
it returns an optional :data:`Filter` plus initial :class:`Actions`; a
behavior without a filter takes no further part in the world.  Afterwards
every matching :data:`Event` is passed to :meth:`Behavior.process_event`,
which answers with a :class:`ControlFlow` and more actions.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import BaseModel

from arbiter.errors import ConfigError

if TYPE_CHECKING:
    from arbiter.engine.messager import MessageFrom, MessageTo


# --- Events ---


@dataclass(frozen=True)
class StateChangeEvent:
    location: Any
    state: Any


@dataclass(frozen=True)
class MessageEvent:
    message: MessageFrom


Event = StateChangeEvent | MessageEvent


# --- Actions ---


@dataclass(frozen=True)
class StateChangeAction:
    location: Any
    state: Any


@dataclass(frozen=True)
class MessageAction:
    message: MessageTo


Action = StateChangeAction | MessageAction


class Actions:
    """Ordered batch of actions returned by a behavior."""

    def __init__(self, actions: Iterable[Action] = ()) -> None:
        self._actions: list[Action] = list(actions)

    def add(self, action: Action) -> Actions:
        self._actions.append(action)
        return self

    def extend(self, actions: Iterable[Action]) -> Actions:
        self._actions.extend(actions)
        return self

    def state_change(self, location: Any, state: Any) -> Actions:
        return self.add(StateChangeAction(location, state))

    def send(self, message: MessageTo) -> Actions:
        return self.add(MessageAction(message))

    def is_empty(self) -> bool:
        return not self._actions

    def __iter__(self) -> Iterator[Action]:
        return iter(self._actions)

    def __len__(self) -> int:
        return len(self._actions)

    def __repr__(self) -> str:
        return f"Actions({self._actions!r})"


class ControlFlow(StrEnum):
    HALT = "halt"
    CONTINUE = "continue"


# --- Filters ---

Filter = Callable[[Event], bool]


def all_events(event: Event) -> bool:
    return True


def messages_only(event: Event) -> bool:
    return isinstance(event, MessageEvent)


def state_changes_only(event: Event) -> bool:
    return isinstance(event, StateChangeEvent)


# --- Behaviors ---


class Behavior:
    """Base class for agent behaviors.

    The defaults describe a behavior that does nothing: no filter at
    startup, and halt on the first event.
    """

    def startup(self) -> tuple[Filter | None, Actions]:
        return None, Actions()

    async def process_event(self, event: Event) -> tuple[ControlFlow, Actions]:
        return ControlFlow.HALT, Actions()


class ConfigurableBehavior(BaseModel, Behavior):
    """A behavior whose parameters can be loaded from world config.

    ``behavior_name`` is the key used in TOML; it defaults to the class name.
    """

    model_config = {"extra": "forbid"}

    behavior_name: ClassVar[str | None] = None

    @classmethod
    def config_name(cls) -> str:
        return cls.behavior_name or cls.__name__

    def create_behavior(self) -> Behavior:
        return self


class BehaviorRegistry:
    """Maps config names to :class:`ConfigurableBehavior` classes."""

    def __init__(self, behaviors: Iterable[type[ConfigurableBehavior]] = ()) -> None:
        self._behaviors: dict[str, type[ConfigurableBehavior]] = {}
        for behavior_cls in behaviors:
            self.register(behavior_cls)

    def register(
        self,
        behavior_cls: type[ConfigurableBehavior],
        name: str | None = None,
    ) -> None:
        if not (isinstance(behavior_cls, type) and issubclass(behavior_cls, ConfigurableBehavior)):
            raise TypeError(f"{behavior_cls!r} is not a ConfigurableBehavior subclass")
        self._behaviors[name or behavior_cls.config_name()] = behavior_cls

    def get(self, name: str) -> type[ConfigurableBehavior]:
        try:
            return self._behaviors[name]
        except KeyError:
            known = ", ".join(sorted(self._behaviors)) or "none"
            raise ConfigError(f"Unknown behavior '{name}' (known: {known})") from None

    def build(self, name: str, params: dict[str, Any]) -> ConfigurableBehavior:
        from pydantic import ValidationError

        behavior_cls = self.get(name)
        try:
            return behavior_cls.model_validate(params)
        except ValidationError as exc:
            raise ConfigError(f"Invalid parameters for behavior '{name}': {exc}") from exc

    def names(self) -> list[str]:
        return sorted(self._behaviors)

    def __contains__(self, name: object) -> bool:
        return name in self._behaviors

    def __len__(self) -> int:
        return len(self._behaviors)
