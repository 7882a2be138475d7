"""Command: the leader/follower demo."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from arbiter.commands._base import ArbiterCommand

if TYPE_CHECKING:
    from arbiter.commands._context import AppContext


@click.command(
    cls=ArbiterCommand,
    examples="""\
  arbiter simulate
  arbiter simulate --leaders 2 --followers 10 --ticks 500 --seed 7
  arbiter --json simulate --width 400 --height 300""",
)
@click.option("--leaders", type=click.IntRange(min=0), default=3, show_default=True)
@click.option("--followers", type=click.IntRange(min=0), default=12, show_default=True)
@click.option("--ticks", type=click.IntRange(min=0), default=100, show_default=True)
@click.option("--seed", type=int, default=None, help="Seed for reproducible runs.")
@click.option("--width", type=float, default=800.0, show_default=True)
@click.option("--height", type=float, default=600.0, show_default=True)
@click.pass_obj
def simulate(
    app: AppContext,
    leaders: int,
    followers: int,
    ticks: int,
    seed: int | None,
    width: float,
    height: float,
) -> None:
    """Run leaders and followers for a number of ticks and print their positions."""
    from arbiter.services.simulation import SimulationService

    svc = SimulationService(app.settings)
    app.emit(
        svc.leader_follower(
            leaders=leaders,
            followers=followers,
            ticks=ticks,
            seed=seed,
            width=width,
            height=height,
        )
    )
