"""SimulationService: run worlds, universes, and the leader/follower demo.

World files are loaded with the behavior registry assembled from every
plugin (built-ins included), then run to completion on a fresh event loop.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING, Any

from arbiter.engine.universe import Universe
from arbiter.engine.world import World
from arbiter.errors import ArbiterError, BehaviorError, ConfigError, UniverseError, WorldError
from arbiter.services.base import BaseService
from arbiter.services.result import ServiceError, ServiceResult

if TYPE_CHECKING:
    from arbiter.config.settings import ArbiterSettings
    from arbiter.plugins.manager import PluginManager

logger = logging.getLogger(__name__)

_ERROR_CODES: dict[type[ArbiterError], str] = {
    ConfigError: "INVALID_CONFIG",
    BehaviorError: "BEHAVIOR_FAILED",
    WorldError: "WORLD_FAILED",
    UniverseError: "WORLDS_FAILED",
}


def _error_code(exc: ArbiterError) -> str:
    for exc_type, code in _ERROR_CODES.items():
        if isinstance(exc, exc_type):
            return code
    return "SIMULATION_FAILED"


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    return repr(value)


def world_summary(world: World, agent_ids: list[str]) -> dict[str, Any]:
    """Describe a finished world: its agents and final database."""
    database = world.environment.database
    as_dict = getattr(database, "as_dict", None)
    contents = as_dict() if callable(as_dict) else {}
    return {
        "world_id": world.id,
        "agents": agent_ids,
        "agent_count": len(agent_ids),
        "database": {str(k): _jsonable(v) for k, v in contents.items()},
        "database_size": len(contents),
    }


class SimulationService(BaseService):
    """Loads and runs simulations."""

    def __init__(
        self,
        settings: ArbiterSettings,
        plugin_manager: PluginManager | None = None,
    ) -> None:
        super().__init__(settings)
        self._plugin_manager = plugin_manager
        self._load_warnings: list[str] = []

    @property
    def plugin_manager(self) -> PluginManager:
        """Plugin manager, discovered lazily on first use."""
        if self._plugin_manager is None:
            from arbiter.plugins.manager import PluginManager

            manager = PluginManager()
            try:
                manager.discover_and_load(
                    local_dir=self._settings.plugin_dir,
                    disabled=list(self._settings.plugins.disabled),
                )
            except Exception as exc:
                logger.warning("Plugin discovery failed: %s", exc, exc_info=True)
                self._load_warnings.append(f"Plugin discovery failed: {exc}")
            self._plugin_manager = manager
        return self._plugin_manager

    def _load_world(self, path: Path) -> World:
        world_config = self._settings.world
        return World.from_config(
            path,
            self.plugin_manager.behavior_registry(),
            capacity=world_config.capacity,
            messager_capacity=world_config.messager_capacity,
            plugin_manager=self.plugin_manager,
        )

    def _timeout(self, timeout: float | None) -> float | None:
        return timeout if timeout is not None else self._settings.world.timeout

    # ------------------------------------------------------------------
    # Worlds
    # ------------------------------------------------------------------

    def run_world(self, path: str | Path, *, timeout: float | None = None) -> ServiceResult:
        """Load the world in *path* and run it until every behavior halts."""
        op = "run_world"
        try:
            world = self._load_world(Path(path))
            agent_ids = sorted(world.agents)
            asyncio.run(world.run(timeout=self._timeout(timeout)))
        except ArbiterError as exc:
            return ServiceResult(
                ok=False,
                op=op,
                warnings=list(self._load_warnings),
                error=ServiceError(
                    code=_error_code(exc),
                    message=exc.message,
                    detail={"path": str(path)},
                ),
            )

        return ServiceResult(
            ok=True,
            op=op,
            data=world_summary(world, agent_ids),
            warnings=[*self._load_warnings, *world.warnings],
        )

    def run_universe(
        self,
        paths: Iterable[str | Path],
        *,
        timeout: float | None = None,
    ) -> ServiceResult:
        """Run every world in *paths* concurrently inside one universe."""
        op = "run_universe"
        universe = Universe()
        agent_ids: dict[str, list[str]] = {}
        try:
            for path in paths:
                world = self._load_world(Path(path))
                if world.id in agent_ids:
                    raise ConfigError(f"Duplicate world id '{world.id}' in {path}")
                agent_ids[world.id] = sorted(world.agents)
                universe.add_world(world)
        except ArbiterError as exc:
            return ServiceResult(
                ok=False,
                op=op,
                warnings=list(self._load_warnings),
                error=ServiceError(code=_error_code(exc), message=exc.message),
            )

        if not agent_ids:
            return ServiceResult(
                ok=False,
                op=op,
                error=ServiceError(code="NO_WORLDS", message="No worlds given"),
            )

        error: ServiceError | None = None
        try:
            asyncio.run(universe.run_worlds(timeout=self._timeout(timeout)))
        except UniverseError as exc:
            error = ServiceError(
                code=_error_code(exc),
                message=exc.message,
                detail={"failed": sorted(universe.failures)},
            )

        warnings = list(self._load_warnings)
        for world in universe.worlds.values():
            warnings.extend(world.warnings)
        data = {
            "worlds": [
                world_summary(universe.worlds[world_id], agent_ids[world_id])
                for world_id in sorted(universe.worlds)
            ],
            "failures": {
                world_id: str(exc) for world_id, exc in sorted(universe.failures.items())
            },
            "world_count": len(agent_ids),
        }
        return ServiceResult(ok=error is None, op=op, data=data, warnings=warnings, error=error)

    # ------------------------------------------------------------------
    # Leader/follower demo
    # ------------------------------------------------------------------

    def leader_follower(
        self,
        *,
        leaders: int = 3,
        followers: int = 12,
        ticks: int = 100,
        seed: int | None = None,
        width: float = 800.0,
        height: float = 600.0,
    ) -> ServiceResult:
        """Run the leader/follower demo and report final positions."""
        from arbiter.simulations.leader import LeaderFollowerSimulation

        op = "simulate"
        if min(leaders, followers, ticks) < 0:
            return ServiceResult(
                ok=False,
                op=op,
                error=ServiceError(
                    code="INVALID_ARGUMENT",
                    message="leaders, followers and ticks must not be negative",
                ),
            )
        try:
            simulation = LeaderFollowerSimulation(width, height, seed=seed)
        except ValueError as exc:
            return ServiceResult(
                ok=False,
                op=op,
                error=ServiceError(code="INVALID_ARGUMENT", message=str(exc)),
            )

        for is_leader, count in ((True, leaders), (False, followers)):
            for _ in range(count):
                position = simulation.random_position()
                simulation.add_agent(position.x, position.y, is_leader)
        simulation.run(ticks)

        stats = simulation.runtime.statistics()
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "ticks": simulation.ticks,
                "leaders": leaders,
                "followers": followers,
                "seed": seed,
                "width": width,
                "height": height,
                "running_agents": stats.running_agents,
                "agents": simulation.positions(),
            },
        )
