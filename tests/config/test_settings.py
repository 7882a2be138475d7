"""Tests for ArbiterSettings: CLI flags, env vars, and the TOML source."""

from pathlib import Path

import click
import pytest

from arbiter.config.models import ArbiterConfig
from arbiter.config.settings import ArbiterSettings


class TestArbiterSettingsDefaults:
    def test_all_defaults(self, tmp_path: Path) -> None:
        """With no TOML and no env vars, all fields use code defaults."""
        settings = ArbiterSettings.from_cli(project_root=tmp_path)
        assert settings.project_root == tmp_path
        assert settings.config_path is None
        assert settings.json_output is False
        assert settings.quiet is False
        assert settings.world.capacity == 1000
        assert settings.world.messager_capacity == 512
        assert sorted(settings.tasks) == ["fmt", "lint", "test"]
        assert [check.name for check in settings.ci.checks] == ["fmt", "lint", "test"]

    def test_frozen(self, tmp_path: Path) -> None:
        settings = ArbiterSettings.from_cli(project_root=tmp_path)
        with pytest.raises(Exception):
            settings.quiet = True  # type: ignore[misc]

    def test_plugin_dir_is_relative_to_project(self, tmp_path: Path) -> None:
        settings = ArbiterSettings.from_cli(project_root=tmp_path)
        assert settings.plugin_dir == tmp_path / ".arbiter" / "plugins"

    def test_absolute_plugin_dir(self, tmp_path: Path) -> None:
        (tmp_path / "arbiter.toml").write_text(f'[plugins]\nlocal_dir = "{tmp_path.as_posix()}/p"\n')
        settings = ArbiterSettings.from_cli(project_root=tmp_path)
        assert settings.plugin_dir == tmp_path / "p"


class TestTomlSource:
    def test_loads_from_toml(self, tmp_path: Path) -> None:
        toml = tmp_path / "arbiter.toml"
        toml.write_text("[world]\ncapacity = 10\ntimeout = 2.5\n[tasks]\nbuild = 'make'\n")
        settings = ArbiterSettings.from_cli(project_root=tmp_path)
        assert settings.world.capacity == 10
        assert settings.world.timeout == 2.5
        assert settings.world.messager_capacity == 512  # default preserved
        assert settings.tasks == {"build": "make"}
        assert settings.config_path == toml

    def test_ci_checks_from_toml(self, tmp_path: Path) -> None:
        (tmp_path / "arbiter.toml").write_text(
            '[[ci.checks]]\nname = "unit"\ncommand = "pytest tests/unit"\n'
        )
        settings = ArbiterSettings.from_cli(project_root=tmp_path)
        assert [(c.name, c.command) for c in settings.ci.checks] == [("unit", "pytest tests/unit")]

    def test_walks_up_to_find_config(self, tmp_path: Path) -> None:
        (tmp_path / "arbiter.toml").write_text("[world]\nmessager_capacity = 8\n")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        settings = ArbiterSettings.from_cli(project_root=nested)
        assert settings.world.messager_capacity == 8

    def test_sections_match_config_model(self) -> None:
        sections = {"world", "tasks", "ci", "plugins"}
        assert set(ArbiterConfig.model_fields) == sections
        assert sections <= set(ArbiterSettings.model_fields)
        assert "network" not in ArbiterSettings.model_fields

    def test_project_root_defaults_to_config_parent(self, tmp_path: Path) -> None:
        toml = tmp_path / "proj" / "arbiter.toml"
        toml.parent.mkdir()
        toml.write_text("")
        settings = ArbiterSettings.from_cli(config_path=str(toml))
        assert settings.project_root == toml.parent

    def test_explicit_config_path(self, tmp_path: Path) -> None:
        custom = tmp_path / "custom" / "my.toml"
        custom.parent.mkdir(parents=True)
        custom.write_text("[world]\ncapacity = 3\n")
        settings = ArbiterSettings.from_cli(config_path=str(custom), project_root=tmp_path)
        assert settings.world.capacity == 3
        assert settings.config_path == custom

    def test_missing_explicit_config(self, tmp_path: Path) -> None:
        with pytest.raises(click.ClickException, match="Config file not found"):
            ArbiterSettings.from_cli(config_path=str(tmp_path / "nope.toml"))

    def test_invalid_toml(self, tmp_path: Path) -> None:
        (tmp_path / "arbiter.toml").write_text("[world\n")
        with pytest.raises(click.ClickException, match="Invalid TOML"):
            ArbiterSettings.from_cli(project_root=tmp_path)


class TestPriority:
    def test_cli_flags_override(self, tmp_path: Path) -> None:
        settings = ArbiterSettings.from_cli(
            project_root=tmp_path,
            json_output=True,
            quiet=True,
            verbose=True,
        )
        assert settings.json_output is True
        assert settings.quiet is True
        assert settings.verbose is True

    def test_env_overrides_toml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / "arbiter.toml").write_text("[world]\ncapacity = 10\n")
        monkeypatch.setenv("ARBITER_WORLD__CAPACITY", "20")
        settings = ArbiterSettings.from_cli(project_root=tmp_path)
        assert settings.world.capacity == 20

    def test_env_config_var(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        elsewhere = tmp_path / "elsewhere.toml"
        elsewhere.write_text("[world]\nmessager_capacity = 4\n")
        monkeypatch.setenv("ARBITER_CONFIG", str(elsewhere))
        project = tmp_path / "project"
        project.mkdir()
        settings = ArbiterSettings.from_cli(project_root=project)
        assert settings.world.messager_capacity == 4
        assert settings.project_root == project
