"""CheckService: CI aggregation.

Runs every configured check in order and never stops at the first failure,
so one invocation reports the state of the whole tree.  Output is captured
per check and only kept for the checks that failed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from arbiter.config.models import CheckSpec
from arbiter.services.base import BaseService
from arbiter.services.result import ServiceError, ServiceResult

logger = logging.getLogger(__name__)


class CheckService(BaseService):
    """Runs the ``[ci]`` checks and aggregates their outcome."""

    def run(
        self,
        checks: Iterable[CheckSpec] | None = None,
        *,
        only: Iterable[str] | None = None,
    ) -> ServiceResult:
        """Run *checks* (default: the configured ones), optionally a subset.

        The result is ``ok`` only if every check passed.
        """
        selected = list(self._settings.ci.checks if checks is None else checks)
        if only:
            wanted = list(dict.fromkeys(only))
            known = {check.name for check in selected}
            unknown = [name for name in wanted if name not in known]
            if unknown:
                return ServiceResult(
                    ok=False,
                    op="ci",
                    error=ServiceError(
                        code="UNKNOWN_CHECK",
                        message=f"Unknown check(s): {', '.join(unknown)}",
                        detail={"available": sorted(known)},
                    ),
                )
            selected = [check for check in selected if check.name in wanted]

        results = [self._run_check(check) for check in selected]
        failed = [entry["name"] for entry in results if not entry["passed"]]
        data: dict[str, Any] = {
            "checks": results,
            "total": len(results),
            "passed": len(results) - len(failed),
            "failed": len(failed),
        }

        if failed:
            return ServiceResult(
                ok=False,
                op="ci",
                data=data,
                error=ServiceError(
                    code="CHECKS_FAILED",
                    message=f"Some checks failed: {', '.join(failed)}",
                    detail={"failed": failed},
                ),
            )
        return ServiceResult(ok=True, op="ci", data=data)

    def _run_check(self, check: CheckSpec) -> dict[str, Any]:
        logger.info("Running check %s", check.name)
        outcome = self._run_shell(check.command, capture=True)
        if outcome.succeeded:
            logger.info("Check %s passed", check.name)
        else:
            logger.warning("Check %s failed with exit code %d", check.name, outcome.returncode)
        return {
            "name": check.name,
            "command": check.command,
            "passed": outcome.succeeded,
            "returncode": outcome.returncode,
            "duration_ms": outcome.duration_ms,
            "output": "" if outcome.succeeded else outcome.output,
        }
