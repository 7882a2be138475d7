"""Tests for the format_result dispatcher and OutputSettings."""

import json

import pytest
from pydantic import ValidationError

from arbiter.output.formatters import OutputSettings, format_result
from arbiter.services.result import ServiceError, ServiceResult


def _ok(op: str = "test", **data: object) -> ServiceResult:
    return ServiceResult(ok=True, op=op, data=dict(data))


def _err(op: str = "test", msg: str = "fail") -> ServiceResult:
    return ServiceResult(ok=False, op=op, error=ServiceError(code="ERR", message=msg))


class TestOutputSettings:
    def test_defaults(self) -> None:
        s = OutputSettings()
        assert s.json_output is False
        assert s.quiet is False
        assert s.verbose is False

    def test_frozen(self) -> None:
        s = OutputSettings(json_output=True)
        with pytest.raises(ValidationError):
            s.quiet = True  # type: ignore[misc]


class TestFormatResultJSON:
    def test_json_mode_returns_valid_json(self) -> None:
        output = format_result(_ok("run_task", name="fmt"), settings=OutputSettings(json_output=True))
        data = json.loads(output)
        assert data["ok"] is True
        assert data["op"] == "run_task"
        assert data["data"]["name"] == "fmt"

    def test_json_mode_error(self) -> None:
        output = format_result(_err("ci", "Bad"), settings=OutputSettings(json_output=True))
        data = json.loads(output)
        assert data["ok"] is False
        assert data["error"]["message"] == "Bad"

    def test_json_wins_over_quiet(self) -> None:
        settings = OutputSettings(json_output=True, quiet=True)
        assert json.loads(format_result(_ok(), settings=settings))["op"] == "test"


class TestFormatResultQuiet:
    def test_quiet_success(self) -> None:
        assert format_result(_ok("ci"), settings=OutputSettings(quiet=True)) == "OK: ci"

    def test_quiet_error(self) -> None:
        output = format_result(_err("ci", "nope"), settings=OutputSettings(quiet=True))
        assert output == "ERROR: ci: nope"


class TestFormatResultRich:
    def test_default_is_rich(self) -> None:
        output = format_result(_ok("run_task", name="fmt", command="ruff format ."))
        assert "OK" in output
        assert "ruff format ." in output
