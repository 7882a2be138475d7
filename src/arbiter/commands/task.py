"""Command: run a named task recipe."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from arbiter.commands._base import ArbiterCommand

if TYPE_CHECKING:
    from arbiter.commands._context import AppContext


@click.command(
    cls=ArbiterCommand,
    examples="""\
  arbiter task --list
  arbiter task test
  arbiter task lint""",
)
@click.argument("name", required=False)
@click.option("--list", "list_only", is_flag=True, help="List the configured tasks.")
@click.pass_obj
def task(app: AppContext, name: str | None, list_only: bool) -> None:
    """Run the task recipe NAME from the [tasks] table of arbiter.toml.

    Exits non-zero if and only if the task's command does.
    """
    from arbiter.services.tasks import TaskService

    svc = TaskService(app.settings)
    if list_only or name is None:
        app.emit(svc.list_tasks())
        return
    app.emit(svc.run_task(name))
