"""Tests for structlog configuration."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import pytest
import structlog

from arbiter.config.logging import bind_world, configure_logging
from arbiter.engine.machine import BehaviorRegistry
from arbiter.engine.world import World
from arbiter.plugins.builtins.behaviors import DatabaseWriter


class TestConfigureLogging:
    def test_verbose_enables_debug(self) -> None:
        configure_logging(verbose=True, log_json=False)
        assert logging.getLogger("arbiter").level == logging.DEBUG
        assert logging.getLogger().level == logging.WARNING

    def test_non_verbose_sets_warning(self) -> None:
        configure_logging(verbose=False, log_json=False)
        assert logging.getLogger("arbiter").level == logging.WARNING

    def test_asyncio_stays_quiet(self) -> None:
        configure_logging(verbose=True)
        assert logging.getLogger("asyncio").level == logging.WARNING

    def test_single_root_handler(self) -> None:
        configure_logging()
        configure_logging()
        assert len(logging.getLogger().handlers) == 1

    def test_json_mode_output(self, capfd: pytest.CaptureFixture[str]) -> None:
        configure_logging(verbose=True, log_json=True)
        log = structlog.get_logger("arbiter.test")
        log.warning("json test", answer=42)
        captured = capfd.readouterr()
        parsed = json.loads(captured.err.strip())
        assert parsed["event"] == "json test"
        assert parsed["answer"] == 42
        assert parsed["level"] == "warning"
        assert parsed["logger"] == "arbiter.test"
        assert "timestamp" in parsed

    def test_stdlib_engine_logger_is_structured(self, capfd: pytest.CaptureFixture[str]) -> None:
        configure_logging(verbose=True, log_json=True)
        logging.getLogger("arbiter.engine.world").info("Engaging behaviors for agent %s", "a")
        parsed = json.loads(capfd.readouterr().err.strip())
        assert parsed["event"] == "Engaging behaviors for agent a"
        assert parsed["level"] == "info"
        assert parsed["logger"] == "arbiter.engine.world"

    def test_quiet_mode_hides_info(self, capfd: pytest.CaptureFixture[str]) -> None:
        configure_logging(verbose=False, log_json=True)
        logging.getLogger("arbiter.engine.world").info("hidden")
        assert capfd.readouterr().err == ""


class TestBindWorld:
    def test_world_id_merged_into_records(self, capfd: pytest.CaptureFixture[str]) -> None:
        configure_logging(verbose=True, log_json=True)
        with bind_world("database_world"):
            logging.getLogger("arbiter.engine.world").info("inside")
        logging.getLogger("arbiter.engine.world").info("outside")
        inside, outside = (json.loads(line) for line in capfd.readouterr().err.splitlines())
        assert inside["world_id"] == "database_world"
        assert "world_id" not in outside

    def test_world_run_tags_agent_logs(
        self, capfd: pytest.CaptureFixture[str], database_world: Path
    ) -> None:
        configure_logging(verbose=True, log_json=True)
        world = World.from_config(database_world, BehaviorRegistry([DatabaseWriter]))
        asyncio.run(world.run(timeout=5))
        records = [json.loads(line) for line in capfd.readouterr().err.splitlines()]
        engaged = [r for r in records if r["event"].startswith("Engaging behaviors")]
        assert engaged
        assert all(r["world_id"] == "database_world" for r in engaged)
