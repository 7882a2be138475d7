"""TaskService: named developer task recipes.

Each recipe delegates to exactly one shell command taken from the
``[tasks]`` table of ``arbiter.toml``.  A recipe succeeds if and only if its
command exits with status 0.
"""

from __future__ import annotations

import logging
from typing import Any

from arbiter.services.base import BaseService
from arbiter.services.result import ServiceError, ServiceResult

logger = logging.getLogger(__name__)


class TaskService(BaseService):
    """Lists and runs task recipes."""

    def list_tasks(self) -> ServiceResult:
        items = [
            {"name": name, "command": command}
            for name, command in sorted(self._settings.tasks.items())
        ]
        return ServiceResult(ok=True, op="list_tasks", data={"items": items, "count": len(items)})

    def run_task(self, name: str, *, capture: bool = False) -> ServiceResult:
        """Run the recipe called *name*.

        By default the command shares the terminal, as a developer would
        expect from a task runner; *capture* collects its output instead.
        """
        command = self._settings.tasks.get(name)
        if command is None:
            return ServiceResult(
                ok=False,
                op="run_task",
                error=ServiceError(
                    code="UNKNOWN_TASK",
                    message=f"Unknown task '{name}'",
                    detail={"available": sorted(self._settings.tasks)},
                ),
            )

        logger.info("Running task %s: %s", name, command)
        outcome = self._run_shell(command, capture=capture)
        data: dict[str, Any] = {
            "name": name,
            "command": command,
            "returncode": outcome.returncode,
            "duration_ms": outcome.duration_ms,
        }
        if capture:
            data["output"] = outcome.output

        if not outcome.succeeded:
            return ServiceResult(
                ok=False,
                op="run_task",
                data=data,
                error=ServiceError(
                    code="TASK_FAILED",
                    message=f"Task '{name}' failed with exit code {outcome.returncode}",
                    detail={"returncode": outcome.returncode},
                ),
            )
        return ServiceResult(ok=True, op="run_task", data=data)
