"""Command: run every CI check and report an aggregate result."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from arbiter.commands._base import ArbiterCommand

if TYPE_CHECKING:
    from arbiter.commands._context import AppContext


@click.command(
    cls=ArbiterCommand,
    examples="""\
  arbiter ci
  arbiter ci --only lint --only test
  arbiter --json ci""",
)
@click.option("--only", multiple=True, help="Run only the named check (repeatable).")
@click.pass_obj
def ci(app: AppContext, only: tuple[str, ...]) -> None:
    """Run all [ci] checks without stopping at the first failure."""
    from arbiter.services.checks import CheckService

    app.emit(CheckService(app.settings).run(only=only or None))
