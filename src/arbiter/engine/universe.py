"""The :class:`Universe` runs many worlds concurrently.

At the moment it is a registry of worlds keyed by id.  Worlds never talk to
each other; a failing world does not interrupt the others.
"""

from __future__ import annotations

import asyncio
import logging

from arbiter.engine.world import World
from arbiter.errors import UniverseError

logger = logging.getLogger(__name__)


class Universe:
    """A collection of worlds run in parallel."""

    def __init__(self) -> None:
        self._pending: dict[str, World] | None = {}
        self.worlds: dict[str, World] = {}
        self.failures: dict[str, BaseException] = {}

    def add_world(self, world: World) -> None:
        """Add *world*, replacing any world with the same id."""
        if self._pending is None:
            raise UniverseError("Cannot add worlds to a universe that has already run.")
        self._pending[world.id] = world

    @property
    def world_ids(self) -> list[str]:
        pending = self._pending if self._pending is not None else self.worlds
        return sorted(pending)

    @property
    def is_online(self) -> bool:
        """True once :meth:`run_worlds` has been called."""
        return self._pending is None

    async def run_worlds(self, timeout: float | None = None) -> dict[str, World]:
        """Run every world to completion.

        Raises :class:`UniverseError` after all worlds have finished if any
        of them failed; successful worlds are still available in ``worlds``.
        """
        if self._pending is None:
            raise UniverseError("Universe is already running.")
        pending, self._pending = self._pending, None

        ids = list(pending)
        outcomes = await asyncio.gather(
            *(pending[world_id].run(timeout=timeout) for world_id in ids),
            return_exceptions=True,
        )
        for world_id, outcome in zip(ids, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                logger.error("World %s failed: %s", world_id, outcome)
                self.failures[world_id] = outcome
            else:
                self.worlds[world_id] = outcome

        if self.failures:
            failed = ", ".join(sorted(self.failures))
            raise UniverseError(f"Worlds failed: {failed}")
        return self.worlds
