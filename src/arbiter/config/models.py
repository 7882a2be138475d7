"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, arbiter.toml only contains overrides.
An empty arbiter.toml (or none at all) is a valid configuration.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from arbiter.engine.environment import DEFAULT_ENVIRONMENT_CAPACITY
from arbiter.engine.messager import DEFAULT_MESSAGER_CAPACITY

# --- arbiter.toml sections ---


class WorldConfig(BaseModel):
    """[world] section."""

    model_config = {"frozen": True}

    capacity: int = Field(default=DEFAULT_ENVIRONMENT_CAPACITY, gt=0)
    messager_capacity: int = Field(default=DEFAULT_MESSAGER_CAPACITY, gt=0)
    timeout: float | None = None


class CheckSpec(BaseModel):
    """One entry of ``[ci] checks``."""

    model_config = {"frozen": True}

    name: str
    command: str


def _default_checks() -> list[CheckSpec]:
    return [
        CheckSpec(name="fmt", command="ruff format --check ."),
        CheckSpec(name="lint", command="ruff check ."),
        CheckSpec(name="test", command="pytest -q"),
    ]


class CiConfig(BaseModel):
    """[ci] section."""

    model_config = {"frozen": True}

    checks: list[CheckSpec] = Field(default_factory=_default_checks)


def default_tasks() -> dict[str, str]:
    return {
        "fmt": "ruff format .",
        "lint": "ruff check --fix .",
        "test": "pytest",
    }


class PluginsConfig(BaseModel):
    """[plugins] section."""

    model_config = {"frozen": True}

    local_dir: str = ".arbiter/plugins"
    disabled: list[str] = Field(default_factory=list)


class ArbiterConfig(BaseModel):
    """Root configuration composing all sections."""

    model_config = {"frozen": True}

    world: WorldConfig = Field(default_factory=WorldConfig)
    tasks: dict[str, str] = Field(default_factory=default_tasks)
    ci: CiConfig = Field(default_factory=CiConfig)
    plugins: PluginsConfig = Field(default_factory=PluginsConfig)
