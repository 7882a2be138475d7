"""Command: run a single world from its TOML file."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from arbiter.commands._base import ArbiterCommand

if TYPE_CHECKING:
    from arbiter.commands._context import AppContext


@click.command(
    cls=ArbiterCommand,
    examples="""\
  arbiter run worlds/ping_pong.toml
  arbiter run worlds/ping_pong.toml --timeout 5
  arbiter --json run worlds/database.toml
  arbiter -v run worlds/database.toml       # also shows the final database""",
)
@click.argument("world_file", type=click.Path(dir_okay=False))
@click.option("--timeout", type=float, default=None, help="Give up after this many seconds.")
@click.pass_obj
def run(app: AppContext, world_file: str, timeout: float | None) -> None:
    """Run the world described by WORLD_FILE until every behavior halts."""
    from arbiter.services.simulation import SimulationService

    svc = SimulationService(app.settings)
    app.emit(svc.run_world(world_file, timeout=timeout))
