"""Tests for the arbiter.toml section models."""

import pytest
from pydantic import ValidationError

from arbiter.config.models import ArbiterConfig, CiConfig, WorldConfig, default_tasks


class TestDefaults:
    def test_empty_config_is_valid(self) -> None:
        config = ArbiterConfig.model_validate({})
        assert config.world.timeout is None
        assert config.tasks == default_tasks()

    def test_default_checks(self) -> None:
        commands = {check.name: check.command for check in CiConfig().checks}
        assert commands == {
            "fmt": "ruff format --check .",
            "lint": "ruff check .",
            "test": "pytest -q",
        }

    def test_default_tasks_are_fresh_copies(self) -> None:
        tasks = default_tasks()
        tasks["extra"] = "echo"
        assert "extra" not in default_tasks()


class TestValidation:
    @pytest.mark.parametrize("field", ["capacity", "messager_capacity"])
    def test_capacities_must_be_positive(self, field: str) -> None:
        with pytest.raises(ValidationError):
            WorldConfig.model_validate({field: 0})

    def test_frozen(self) -> None:
        config = WorldConfig()
        with pytest.raises(ValidationError):
            config.capacity = 5  # type: ignore[misc]

    def test_check_needs_command(self) -> None:
        with pytest.raises(ValidationError):
            CiConfig.model_validate({"checks": [{"name": "lint"}]})
