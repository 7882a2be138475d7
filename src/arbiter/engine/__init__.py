"""Behavior engine: environments, messaging, behaviors, worlds, universes.

The engine builds on the core network primitives and pydantic.
It must never import from services, commands, or output.
"""

from arbiter.engine.agent import ActionSender, AgentBuilder, EngineAgent
from arbiter.engine.environment import (
    Database,
    DictDatabase,
    InMemoryEnvironment,
    Middleware,
    NullDatabase,
)
from arbiter.engine.machine import (
    Actions,
    Behavior,
    BehaviorRegistry,
    ConfigurableBehavior,
    ControlFlow,
    MessageAction,
    MessageEvent,
    StateChangeAction,
    StateChangeEvent,
    all_events,
    messages_only,
    state_changes_only,
)
from arbiter.engine.messager import Message, MessageFrom, Messager, MessageTo, To
from arbiter.engine.universe import Universe
from arbiter.engine.world import World

__all__ = [
    "ActionSender",
    "Actions",
    "AgentBuilder",
    "Behavior",
    "BehaviorRegistry",
    "ConfigurableBehavior",
    "ControlFlow",
    "Database",
    "DictDatabase",
    "EngineAgent",
    "InMemoryEnvironment",
    "Message",
    "MessageAction",
    "MessageEvent",
    "MessageFrom",
    "MessageTo",
    "Messager",
    "Middleware",
    "NullDatabase",
    "StateChangeAction",
    "StateChangeEvent",
    "To",
    "Universe",
    "World",
    "all_events",
    "messages_only",
    "state_changes_only",
]
