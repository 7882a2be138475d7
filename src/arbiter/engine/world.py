"""Worlds: one environment, one message bus, and the agents that share them.

A world runs once.  :meth:`World.run` consumes its agents, drives every
agent's behaviors until they halt, shuts the environment down, and returns
the world with the final database still attached.
"""

from __future__ import annotations

import asyncio
import logging
import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Any

from arbiter.config.logging import bind_world
from arbiter.engine.agent import AgentBuilder, EngineAgent
from arbiter.engine.environment import (
    DEFAULT_ENVIRONMENT_CAPACITY,
    Database,
    InMemoryEnvironment,
)
from arbiter.engine.machine import Behavior, BehaviorRegistry, ControlFlow, Filter
from arbiter.engine.messager import DEFAULT_MESSAGER_CAPACITY, Messager
from arbiter.errors import BehaviorError, ConfigError, WorldError

if TYPE_CHECKING:
    from arbiter.plugins.manager import PluginManager

logger = logging.getLogger(__name__)

DEFAULT_WORLD_ID = "world"


class World:
    """A self-contained simulation."""

    def __init__(
        self,
        world_id: str = DEFAULT_WORLD_ID,
        *,
        database: Database | None = None,
        capacity: int = DEFAULT_ENVIRONMENT_CAPACITY,
        messager_capacity: int = DEFAULT_MESSAGER_CAPACITY,
        plugin_manager: PluginManager | None = None,
    ) -> None:
        self.id = world_id
        self.agents: dict[str, EngineAgent] = {}
        self.environment = InMemoryEnvironment(database, capacity)
        self.messager = Messager(messager_capacity)
        self.plugin_manager = plugin_manager
        self.warnings: list[str] = []
        self.has_run = False

    def __repr__(self) -> str:
        return f"<World {self.id!r} agents={len(self.agents)}>"

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def add_agent(self, builder: AgentBuilder) -> EngineAgent:
        if builder.id in self.agents:
            raise WorldError(f"Agent '{builder.id}' already exists in world '{self.id}'")
        agent = builder.build(self.environment.middleware(), self.messager.for_agent(builder.id))
        self.agents[builder.id] = agent
        return agent

    @classmethod
    def from_config(
        cls,
        path: str | Path,
        registry: BehaviorRegistry,
        **kwargs: Any,
    ) -> World:
        """Load a world from TOML.

        ``id`` names the world; every other key is an agent id holding an
        array of single-key tables, the key naming a registered behavior::

            id = "timed_message_world"

            [[ping]]
            TimedMessage = { receive_data = "pong", send_data = "ping" }
        """
        config_path = Path(path)
        logger.info("Reading world config from %s", config_path)
        try:
            data = tomllib.loads(config_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            raise ConfigError(f"World config not found: {config_path}") from None
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML in {config_path}: {exc}") from exc

        world_id = data.pop("id", DEFAULT_WORLD_ID)
        if not isinstance(world_id, str):
            raise ConfigError(f"World id must be a string, got {world_id!r}")

        world = cls(world_id, **kwargs)
        for agent_id, entries in data.items():
            if not isinstance(entries, list):
                raise ConfigError(f"Agent '{agent_id}' must be an array of behavior tables")
            builder = AgentBuilder(agent_id)
            for entry in entries:
                if not isinstance(entry, dict) or len(entry) != 1:
                    msg = f"Agent '{agent_id}': each behavior table needs exactly one key"
                    raise ConfigError(msg)
                ((name, params),) = entry.items()
                builder.with_behavior_from_config(registry.build(name, params or {}))
            world.add_agent(builder)
        return world

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    async def run(self, timeout: float | None = None) -> World:
        """Run every agent until its behaviors halt."""
        agents, self.agents = self.agents, {}
        if not agents:
            raise WorldError("No agents found. Has the world already been ran?")

        with bind_world(self.id):
            await self._run_agents(agents, timeout)
        return self

    async def _run_agents(self, agents: dict[str, EngineAgent], timeout: float | None) -> None:
        self.has_run = True
        self.environment.run()
        self._notify("world_started", world_id=self.id, agent_ids=sorted(agents))

        tasks: list[asyncio.Task[None]] = []
        try:
            for agent in agents.values():
                logger.info("Engaging behaviors for agent %s in world %s", agent.id, self.id)
                engaged = await self._start_behaviors(agent)
                if not engaged:
                    logger.debug("Agent %s has no processing behaviors, not creating task", agent.id)
                    continue
                tasks.append(
                    asyncio.create_task(self._drive(agent, engaged), name=f"{self.id}/{agent.id}")
                )

            if tasks:
                try:
                    await asyncio.wait_for(asyncio.gather(*tasks), timeout)
                except TimeoutError:
                    raise WorldError(
                        f"World '{self.id}' did not finish within {timeout} seconds"
                    ) from None
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.debug("All agent tasks completed, shutting down environment of %s", self.id)
            database = await self.environment.shutdown()
            self.messager.close()

        self._notify("world_finished", world_id=self.id, database_size=_size_of(database))

    async def _start_behaviors(self, agent: EngineAgent) -> list[tuple[Behavior, Filter]]:
        engaged: list[tuple[Behavior, Filter]] = []
        for behavior in agent.behaviors:
            try:
                event_filter, actions = behavior.startup()
            except Exception as exc:
                msg = f"A behavior of agent '{agent.id}' failed to start: {exc}"
                raise BehaviorError(msg) from exc
            await agent.sender.execute(actions)
            if event_filter is not None:
                engaged.append((behavior, event_filter))
        return engaged

    async def _drive(self, agent: EngineAgent, engaged: list[tuple[Behavior, Filter]]) -> None:
        logger.debug("Agent %s has %d processing behaviors", agent.id, len(engaged))
        events = agent.events()
        try:
            async for event in events:
                remaining: list[tuple[Behavior, Filter]] = []
                for behavior, event_filter in engaged:
                    if not event_filter(event):
                        remaining.append((behavior, event_filter))
                        continue
                    try:
                        flow, actions = await behavior.process_event(event)
                    except Exception:
                        logger.exception("Error processing event for agent %s", agent.id)
                        remaining.append((behavior, event_filter))
                        continue
                    try:
                        await agent.sender.execute(actions)
                    except Exception:
                        logger.exception("Failed to execute actions for agent %s", agent.id)
                    if flow is ControlFlow.CONTINUE:
                        remaining.append((behavior, event_filter))
                    else:
                        logger.debug("Behavior of agent %s requested halt", agent.id)
                engaged = remaining
                if not engaged:
                    logger.debug("No behaviors remaining for agent %s", agent.id)
                    break
        finally:
            await events.aclose()
        logger.debug("Event stream ended for agent %s", agent.id)

    def _notify(self, hook_name: str, **payload: Any) -> None:
        if self.plugin_manager is None:
            return
        self.warnings.extend(self.plugin_manager.notify(hook_name, **payload))


def _size_of(database: Database) -> int:
    try:
        return len(database)  # type: ignore[arg-type]
    except TypeError:
        return 0
