"""Shared pytest fixtures and test helpers for arbiter tests."""

from __future__ import annotations

import logging
from collections.abc import Generator
from pathlib import Path

import pytest
from click.testing import CliRunner

from arbiter.config.settings import ArbiterSettings


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's ARBITER_* variables out of the tests."""
    monkeypatch.delenv("ARBITER_CONFIG", raising=False)
    monkeypatch.delenv("ARBITER_VERBOSE", raising=False)
    monkeypatch.delenv("ARBITER_QUIET", raising=False)
    monkeypatch.delenv("ARBITER_JSON_OUTPUT", raising=False)


@pytest.fixture(autouse=True)
def _restore_logging() -> Generator[None]:
    """Undo configure_logging() calls made by CLI invocations."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    arbiter_logger = logging.getLogger("arbiter")
    arbiter_level = arbiter_logger.level
    yield
    root.handlers = original_handlers
    root.setLevel(original_level)
    arbiter_logger.setLevel(arbiter_level)


@pytest.fixture
def project_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Temporary project directory used as CWD."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def settings(project_root: Path) -> ArbiterSettings:
    """Settings rooted at the temporary project, with no plugins directory."""
    return ArbiterSettings.from_cli(project_root=project_root)


PING_PONG_WORLD = """\
id = "timed_message_world"

[[ping]]
TimedMessage = { delay = 1, receive_data = "pong", send_data = "ping", max_count = 2, startup_message = "ping" }

[[pong]]
TimedMessage = { delay = 1, receive_data = "ping", send_data = "pong", max_count = 2 }
"""

DATABASE_WORLD = """\
id = "database_world"

[[writer]]
DatabaseWriter = { max_writes = 5 }
"""


@pytest.fixture
def ping_pong_world(project_root: Path) -> Path:
    """Two TimedMessage agents bouncing ping/pong twice each."""
    path = project_root / "worlds" / "ping_pong.toml"
    path.parent.mkdir(exist_ok=True)
    path.write_text(PING_PONG_WORLD, encoding="utf-8")
    return path


@pytest.fixture
def database_world(project_root: Path) -> Path:
    """One DatabaseWriter agent making five writes."""
    path = project_root / "worlds" / "database.toml"
    path.parent.mkdir(exist_ok=True)
    path.write_text(DATABASE_WORLD, encoding="utf-8")
    return path
