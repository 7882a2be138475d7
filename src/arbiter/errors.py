"""Exception hierarchy shared by the core runtime and the behavior engine.

Library code raises these; the service layer converts expected failures
into ``ServiceResult(ok=False, ...)`` before anything reaches the CLI.
"""

from __future__ import annotations


class ArbiterError(Exception):
    """Base class for every error raised by arbiter."""

    kind: str = "ArbiterError"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


# --- Core messaging ---


class AgentNotFoundError(ArbiterError, KeyError):
    """An agent id or name is not registered with the runtime."""

    kind = "AgentNotFoundError"

    @classmethod
    def for_id(cls, agent_id: object) -> AgentNotFoundError:
        return cls(f"Agent with ID {agent_id} not found")

    @classmethod
    def for_name(cls, name: str) -> AgentNotFoundError:
        return cls(f"Agent '{name}' not found")


class DuplicateAgentError(ArbiterError):
    """An agent name is already taken."""

    kind = "DuplicateAgentError"


class HandlerError(ArbiterError):
    """A handler is missing or a payload cannot be unpacked."""

    kind = "HandlerError"


# --- Behavior engine ---


class MessagerError(ArbiterError):
    kind = "MessagerError"


class AgentBuildError(ArbiterError):
    kind = "AgentBuildError"


class WorldError(ArbiterError):
    kind = "WorldError"


class UniverseError(ArbiterError):
    kind = "UniverseError"


class DatabaseError(ArbiterError):
    kind = "DatabaseError"


class BehaviorError(ArbiterError):
    kind = "BehaviorError"


class ConfigError(ArbiterError):
    """A world or behavior configuration cannot be loaded."""

    kind = "ConfigError"
