"""Command: run several worlds concurrently."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from arbiter.commands._base import ArbiterCommand

if TYPE_CHECKING:
    from arbiter.commands._context import AppContext


@click.command(
    cls=ArbiterCommand,
    examples="""\
  arbiter universe worlds/a.toml worlds/b.toml
  arbiter universe worlds/*.toml --timeout 30""",
)
@click.argument("world_files", nargs=-1, required=True, type=click.Path(dir_okay=False))
@click.option("--timeout", type=float, default=None, help="Per-world timeout in seconds.")
@click.pass_obj
def universe(app: AppContext, world_files: tuple[str, ...], timeout: float | None) -> None:
    """Run every world in WORLD_FILES in parallel."""
    from arbiter.services.simulation import SimulationService

    svc = SimulationService(app.settings)
    app.emit(svc.run_universe(world_files, timeout=timeout))
