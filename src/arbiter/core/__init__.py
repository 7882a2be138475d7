"""Core messaging layer: agents, handlers, runtime, and networks.

This layer depends only on stdlib and pydantic.
It must never import from engine, services, commands, or output.
"""

from arbiter.core.agent import Agent, AgentId, AgentProcess, AgentState, LifeCycle
from arbiter.core.handler import Envelope, HandleResult, JsonCodec, ObjectCodec, handles
from arbiter.core.network import Connection, InMemoryAddress, InMemoryNetwork, Network
from arbiter.core.runtime import Runtime, RuntimeStatistics

__all__ = [
    "Agent",
    "AgentId",
    "AgentProcess",
    "AgentState",
    "Connection",
    "Envelope",
    "HandleResult",
    "InMemoryAddress",
    "InMemoryNetwork",
    "JsonCodec",
    "LifeCycle",
    "Network",
    "ObjectCodec",
    "Runtime",
    "RuntimeStatistics",
    "handles",
]
