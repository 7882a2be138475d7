"""Subcommand modules for arbiter.

Provides register_commands() which uses deferred imports to keep
``arbiter --help`` fast.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register every standalone command on the root CLI group."""
    # --- Simulations ---
    from arbiter.commands.run import run
    from arbiter.commands.simulate import simulate
    from arbiter.commands.universe import universe

    cli.add_command(run)
    cli.add_command(universe)
    cli.add_command(simulate)

    # --- Developer tasks ---
    from arbiter.commands.ci import ci
    from arbiter.commands.task import task

    cli.add_command(task)
    cli.add_command(ci)
