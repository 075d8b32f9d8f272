"""Main Typer application: entry point for the ``flakeforge`` CLI."""

from __future__ import annotations

import typer

from flakeforge.cli.run import EPILOG, run_cmd

app = typer.Typer(
    name="flakeforge",
    help="Find flaky failures by running a command until it fails.",
    add_completion=False,
    rich_markup_mode="rich",
)

# Option parsing stops at COMMAND so the target's own flags pass through.
app.command(
    epilog=EPILOG,
    context_settings={"allow_interspersed_args": False},
)(run_cmd)


def main() -> None:
    """Console-script entry point."""
    app()
