"""Pluggy hook specifications for arbiter.

One setup-time hook lets plugins contribute configurable behaviors to the
registry used by ``World.from_config``.  Two lifecycle hooks report when a
world starts and finishes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from arbiter.engine.machine import ConfigurableBehavior

hookspec = pluggy.HookspecMarker("arbiter")


class ArbiterHookSpec:
    """Hook specifications for the arbiter plugin system."""

    @hookspec
    def register_behaviors(self) -> dict[str, type[ConfigurableBehavior]] | None:
        """Return config name -> behavior class mappings."""

    @hookspec
    def world_started(self, world_id: str, agent_ids: list[str]) -> None:
        """Called once a world's environment is running."""

    @hookspec
    def world_finished(self, world_id: str, database_size: int) -> None:
        """Called after a world's environment has shut down."""
