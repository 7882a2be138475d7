"""BaseService: shared foundation for arbiter services.

Every service receives the resolved :class:`ArbiterSettings`.  Services that
shell out go through :meth:`BaseService._run_shell` so commands always run
from the project root and are timed the same way.
"""

from __future__ import annotations

import logging
import subprocess
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from arbiter.config.settings import ArbiterSettings

logger = logging.getLogger(__name__)

# Exit status a POSIX shell reports for a command it cannot execute.
COMMAND_NOT_RUN = 127


@dataclass(frozen=True)
class CommandOutcome:
    returncode: int
    output: str
    duration_ms: float

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0


class BaseService:
    """Base for service-layer classes."""

    def __init__(self, settings: ArbiterSettings) -> None:
        self._settings = settings

    def _run_shell(self, command: str, *, capture: bool = True) -> CommandOutcome:
        """Run *command* through the shell from the project root.

        With *capture*, stdout and stderr are merged into ``output``;
        otherwise the command inherits the terminal and ``output`` is empty.
        """
        start = time.perf_counter()
        try:
            completed = subprocess.run(
                command,
                shell=True,
                cwd=self._settings.project_root,
                stdout=subprocess.PIPE if capture else None,
                stderr=subprocess.STDOUT if capture else None,
                encoding="utf-8",
                errors="replace",
                check=False,
            )
        except OSError as exc:
            logger.warning("Could not run %r: %s", command, exc)
            return CommandOutcome(COMMAND_NOT_RUN, str(exc), _elapsed_ms(start))

        return CommandOutcome(completed.returncode, completed.stdout or "", _elapsed_ms(start))


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)
