"""Tests for building and running worlds."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import pluggy
import pytest

from arbiter.engine.agent import AgentBuilder
from arbiter.engine.machine import Actions, Behavior, BehaviorRegistry, Filter
from arbiter.engine.world import World
from arbiter.errors import BehaviorError, ConfigError, WorldError
from arbiter.plugins.builtins.behaviors import DatabaseWriter, TimedMessage
from arbiter.plugins.manager import PluginManager

hookimpl = pluggy.HookimplMarker("arbiter")

TIMEOUT = 5.0


@pytest.fixture
def registry() -> BehaviorRegistry:
    return BehaviorRegistry([TimedMessage, DatabaseWriter])


def _ping(**overrides: Any) -> TimedMessage:
    params: dict[str, Any] = {
        "receive_data": "pong",
        "send_data": "ping",
        "max_count": 2,
        "startup_message": "ping",
    }
    params.update(overrides)
    return TimedMessage(**params)


def _pong(**overrides: Any) -> TimedMessage:
    params: dict[str, Any] = {"receive_data": "ping", "send_data": "pong", "max_count": 2}
    params.update(overrides)
    return TimedMessage(**params)


class StartupOnly(Behavior):
    """Writes once at startup and never processes events."""

    def startup(self) -> tuple[Filter | None, Actions]:
        return None, Actions().state_change("startup", True)


class BrokenStartup(Behavior):
    def startup(self) -> tuple[Filter | None, Actions]:
        raise RuntimeError("boom")


class Recorder:
    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []

    @hookimpl
    def world_started(self, world_id: str, agent_ids: list[str]) -> None:
        self.calls.append(("started", (world_id, agent_ids)))

    @hookimpl
    def world_finished(self, world_id: str, database_size: int) -> None:
        self.calls.append(("finished", (world_id, database_size)))


class FailingHooks:
    @hookimpl
    def world_finished(self, world_id: str, database_size: int) -> None:
        raise RuntimeError("plugin exploded")


class TestAddAgent:
    def test_duplicate_agent_id(self) -> None:
        world = World("w")
        world.add_agent(AgentBuilder("a"))
        with pytest.raises(WorldError, match="already exists"):
            world.add_agent(AgentBuilder("a"))

    def test_repr(self) -> None:
        world = World("w")
        world.add_agent(AgentBuilder("a"))
        assert repr(world) == "<World 'w' agents=1>"


class TestRun:
    def test_echoer(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.INFO, logger="arbiter")
        world = World("echo_world")
        world.add_agent(
            AgentBuilder("echoer").with_behavior(
                TimedMessage(
                    receive_data="Hello, world!",
                    send_data="Hello, world!",
                    max_count=2,
                    startup_message="Hello, world!",
                )
            )
        )
        asyncio.run(world.run(timeout=TIMEOUT))

        assert "Engaging behaviors for agent echoer in world echo_world" in caplog.text
        assert "Sending startup message: Hello, world!" in caplog.text
        assert caplog.text.count("Message matches! Sending response: Hello, world!") == 2
        assert "Reached max count (2), halting behavior" in caplog.text

    def test_ping_pong_single_agent(self) -> None:
        ping, pong = _ping(), _pong()
        world = World("single")
        world.add_agent(AgentBuilder("agent").with_behavior(ping).with_behavior(pong))
        asyncio.run(world.run(timeout=TIMEOUT))
        assert ping.count == 2
        assert pong.count == 2

    def test_ping_pong_two_agents(self) -> None:
        ping, pong = _ping(), _pong()
        world = World("double")
        world.add_agent(AgentBuilder("ping").with_behavior(ping))
        world.add_agent(AgentBuilder("pong").with_behavior(pong))
        asyncio.run(world.run(timeout=TIMEOUT))
        assert ping.count == 2
        assert pong.count == 2

    def test_delay_is_awaited(self) -> None:
        ping, pong = _ping(delay=5), _pong(delay=5)
        world = World("slow")
        world.add_agent(AgentBuilder("ping").with_behavior(ping))
        world.add_agent(AgentBuilder("pong").with_behavior(pong))
        asyncio.run(world.run(timeout=TIMEOUT))
        assert (ping.count, pong.count) == (2, 2)

    def test_database_writer(self) -> None:
        world = World("db")
        world.add_agent(AgentBuilder("writer").with_behavior(DatabaseWriter(max_writes=5)))
        asyncio.run(world.run(timeout=TIMEOUT))
        database = world.environment.database
        assert database.as_dict() == {0: 0, 1: 10, 2: 20, 3: 30, 4: 40}
        assert len(database) == 5

    def test_startup_actions_run_without_filter(self) -> None:
        world = World("startup")
        world.add_agent(AgentBuilder("quiet").with_behavior(StartupOnly()))
        asyncio.run(world.run(timeout=TIMEOUT))
        assert world.environment.database.get("startup") is True

    def test_world_without_agents(self) -> None:
        with pytest.raises(WorldError, match="No agents found"):
            asyncio.run(World("empty").run())

    def test_world_runs_once(self) -> None:
        world = World("once")
        world.add_agent(AgentBuilder("quiet").with_behavior(StartupOnly()))
        asyncio.run(world.run(timeout=TIMEOUT))
        assert world.has_run
        with pytest.raises(WorldError, match="Has the world already been ran"):
            asyncio.run(world.run())

    def test_failing_startup(self) -> None:
        world = World("broken")
        world.add_agent(AgentBuilder("bad").with_behavior(BrokenStartup()))
        with pytest.raises(BehaviorError, match="failed to start: boom"):
            asyncio.run(world.run(timeout=TIMEOUT))

    def test_timeout(self) -> None:
        world = World("forever")
        world.add_agent(AgentBuilder("waiter").with_behavior(_pong(max_count=None)))
        with pytest.raises(WorldError, match="did not finish within 0.05 seconds"):
            asyncio.run(world.run(timeout=0.05))


class TestLifecycleHooks:
    def test_hooks_receive_world_details(self) -> None:
        manager = PluginManager()
        recorder = Recorder()
        manager.register_plugin(recorder, name="recorder")
        world = World("hooked", plugin_manager=manager)
        world.add_agent(AgentBuilder("writer").with_behavior(DatabaseWriter(max_writes=3)))
        asyncio.run(world.run(timeout=TIMEOUT))
        assert recorder.calls == [
            ("started", ("hooked", ["writer"])),
            ("finished", ("hooked", 3)),
        ]
        assert world.warnings == []

    def test_hook_failure_becomes_warning(self) -> None:
        manager = PluginManager()
        manager.register_plugin(FailingHooks(), name="failing")
        world = World("hooked", plugin_manager=manager)
        world.add_agent(AgentBuilder("quiet").with_behavior(StartupOnly()))
        asyncio.run(world.run(timeout=TIMEOUT))
        assert world.warnings == ["Plugin hook world_finished failed: plugin exploded"]


class TestFromConfig:
    def test_loads_agents_and_behaviors(self, tmp_path: Path, registry: BehaviorRegistry) -> None:
        path = tmp_path / "world.toml"
        path.write_text(
            'id = "timed_message_world"\n\n'
            "[[ping]]\n"
            'TimedMessage = { receive_data = "pong", send_data = "ping", '
            'max_count = 2, startup_message = "ping" }\n\n'
            "[[pong]]\n"
            'TimedMessage = { receive_data = "ping", send_data = "pong", max_count = 2 }\n',
            encoding="utf-8",
        )
        world = World.from_config(path, registry)
        assert world.id == "timed_message_world"
        assert sorted(world.agents) == ["ping", "pong"]
        ping_behavior = world.agents["ping"].behaviors[0]
        assert isinstance(ping_behavior, TimedMessage)
        assert ping_behavior.startup_message == "ping"
        asyncio.run(world.run(timeout=TIMEOUT))

    def test_default_world_id(self, tmp_path: Path, registry: BehaviorRegistry) -> None:
        path = tmp_path / "world.toml"
        path.write_text("[[writer]]\nDatabaseWriter = { max_writes = 1 }\n", encoding="utf-8")
        assert World.from_config(path, registry).id == "world"

    def test_capacity_kwargs(self, tmp_path: Path, registry: BehaviorRegistry) -> None:
        path = tmp_path / "world.toml"
        path.write_text("[[writer]]\nDatabaseWriter = { max_writes = 1 }\n", encoding="utf-8")
        world = World.from_config(path, registry, capacity=7)
        assert world.environment.capacity == 7

    @pytest.mark.parametrize(
        ("body", "message"),
        [
            ("id = 3\n", "World id must be a string"),
            ('agent = "nope"\n', "must be an array of behavior tables"),
            ("[[agent]]\nA = {}\nB = {}\n", "exactly one key"),
            ("[[agent]]\nUnknown = {}\n", "Unknown behavior 'Unknown'"),
            ("[[agent]]\nDatabaseWriter = { max_writes = 0 }\n", "Invalid parameters"),
            ("not toml [", "Invalid TOML"),
        ],
    )
    def test_invalid_config(
        self, tmp_path: Path, registry: BehaviorRegistry, body: str, message: str
    ) -> None:
        path = tmp_path / "world.toml"
        path.write_text(body, encoding="utf-8")
        with pytest.raises(ConfigError, match=message):
            World.from_config(path, registry)

    def test_missing_file(self, tmp_path: Path, registry: BehaviorRegistry) -> None:
        with pytest.raises(ConfigError, match="World config not found"):
            World.from_config(tmp_path / "missing.toml", registry)
