"""Tests for CheckService: running and aggregating CI checks."""

from __future__ import annotations

from pathlib import Path

import pytest

from arbiter.config.models import CheckSpec
from arbiter.config.settings import ArbiterSettings
from arbiter.services.checks import CheckService


@pytest.fixture
def ci_settings(project_root: Path) -> ArbiterSettings:
    (project_root / "arbiter.toml").write_text(
        "[[ci.checks]]\n"
        'name = "fmt"\n'
        'command = "echo formatted"\n\n'
        "[[ci.checks]]\n"
        'name = "lint"\n'
        'command = "echo lint error on line 3; exit 1"\n\n'
        "[[ci.checks]]\n"
        'name = "test"\n'
        'command = "true"\n'
    )
    return ArbiterSettings.from_cli(project_root=project_root)


class TestCheckService:
    def test_all_checks_run_despite_failure(self, ci_settings: ArbiterSettings) -> None:
        result = CheckService(ci_settings).run()
        assert not result.ok
        assert result.op == "ci"
        assert [check["name"] for check in result.data["checks"]] == ["fmt", "lint", "test"]
        assert result.data["total"] == 3
        assert result.data["passed"] == 2
        assert result.data["failed"] == 1

    def test_failure_error(self, ci_settings: ArbiterSettings) -> None:
        result = CheckService(ci_settings).run()
        assert result.error is not None
        assert result.error.code == "CHECKS_FAILED"
        assert result.error.message == "Some checks failed: lint"
        assert result.error.detail == {"failed": ["lint"]}

    def test_output_kept_only_for_failures(self, ci_settings: ArbiterSettings) -> None:
        checks = {c["name"]: c for c in CheckService(ci_settings).run().data["checks"]}
        assert checks["fmt"]["output"] == ""
        assert checks["fmt"]["passed"] is True
        assert "lint error on line 3" in checks["lint"]["output"]
        assert checks["lint"]["returncode"] == 1

    def test_all_passing(self, settings: ArbiterSettings) -> None:
        checks = [CheckSpec(name="a", command="true"), CheckSpec(name="b", command="exit 0")]
        result = CheckService(settings).run(checks)
        assert result.ok
        assert result.error is None
        assert result.data["passed"] == 2

    def test_only_selects_subset(self, ci_settings: ArbiterSettings) -> None:
        result = CheckService(ci_settings).run(only=["test", "fmt"])
        assert result.ok
        assert [check["name"] for check in result.data["checks"]] == ["fmt", "test"]

    def test_unknown_only_name(self, ci_settings: ArbiterSettings) -> None:
        result = CheckService(ci_settings).run(only=["fmt", "typo"])
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "UNKNOWN_CHECK"
        assert result.error.message == "Unknown check(s): typo"
        assert result.data == {}

    def test_no_checks(self, settings: ArbiterSettings) -> None:
        result = CheckService(settings).run([])
        assert result.ok
        assert result.data["total"] == 0

    def test_undecodable_output_does_not_stop_the_run(self, settings: ArbiterSettings) -> None:
        checks = [
            CheckSpec(name="binary", command="printf '\\377\\376bad'; exit 1"),
            CheckSpec(name="after", command="true"),
        ]
        result = CheckService(settings).run(checks)
        assert [check["name"] for check in result.data["checks"]] == ["binary", "after"]
        binary, after = result.data["checks"]
        assert binary["passed"] is False
        assert binary["output"].endswith("bad")
        assert "�" in binary["output"]
        assert after["passed"] is True
        assert result.error is not None
        assert result.error.detail == {"failed": ["binary"]}
