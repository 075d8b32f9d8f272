"""The ``flakeforge`` command: rerun a command in parallel until it fails."""

from __future__ import annotations

import contextlib
import logging
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from flakeforge import __version__
from flakeforge._internal.config import load_config
from flakeforge._internal.errors import FlakeForgeError
from flakeforge._internal.logging import setup_logging
from flakeforge.cli.progress import ProgressDisplay, average_suffix
from flakeforge.engine.coordinator import Coordinator, RunReport
from flakeforge.engine.pool import WorkerPool
from flakeforge.engine.protocol import Failure
from flakeforge.engine.scratch import run_scratch_root

console = Console(stderr=True)
progress_console = Console()

EPILOG = (
    "FlakeForge runs the provided command until it fails by exiting with a "
    "nonzero status. It only prints the output of the failed run."
)


def _version_callback(value: bool) -> None:
    """Print version and exit.

    Args:
        value: True if --version was passed.
    """
    if value:
        typer.echo(f"flakeforge {__version__}")
        raise typer.Exit


def _write_raw(output: bytes) -> None:
    """Write captured bytes to stderr untouched, ending with a newline."""
    if not output:
        return
    console.file.flush()
    stream = sys.stderr.buffer
    stream.write(output)
    if not output.endswith(b"\n"):
        stream.write(b"\n")
    stream.flush()


def _print_report(report: RunReport, command: list[str]) -> None:
    """Print the final summary to stderr.

    Args:
        report: Completed run report.
        command: The command that was run.
    """
    avg = average_suffix(report.average_latency)
    if report.interrupted:
        console.print(
            f"Quit after {report.successes} iteration(s){avg}",
            markup=False,
            highlight=False,
        )
        return

    console.print(
        f"[red]Failed after {report.successes} successful iteration(s):[/red]",
        highlight=False,
    )
    outcome = report.outcome
    if isinstance(outcome, Failure):
        console.print(f"Command failed: {outcome.description}:", markup=False, highlight=False)
        _write_raw(outcome.output)
    elif outcome is not None:
        console.print(
            f"Error running {command!r}: {outcome.description}",
            markup=False,
            highlight=False,
            soft_wrap=True,
        )


def run_cmd(
    command: list[str] = typer.Argument(
        ...,
        help="Command to run, followed by its arguments.",
        metavar="COMMAND [ARGS]...",
        show_default=False,
    ),
    parallelism: int | None = typer.Option(
        None,
        "--parallelism",
        "-p",
        help="Run this many processes in parallel (default: CPU count).",
        min=1,
    ),
    tmpdir: Path | None = typer.Option(
        None,
        "--tmpdir",
        help="Create a tmpdir here for each run ($FLAKEDIR).",
        file_okay=False,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) logging.",
    ),
    log_json: bool = typer.Option(
        False,
        "--log-json",
        help="Emit logs as JSON lines.",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Run COMMAND repeatedly in parallel until one invocation fails."""
    setup_logging(
        level=logging.DEBUG if verbose else logging.WARNING,
        json_format=log_json,
    )

    try:
        config = load_config()
    except FlakeForgeError as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc

    workers = parallelism if parallelism is not None else config.parallelism

    with contextlib.ExitStack() as stack:
        try:
            scratch_root = stack.enter_context(run_scratch_root(tmpdir))
        except OSError as exc:
            console.print(f"[red]Cannot create tmpdir:[/red] {escape(str(exc))}")
            raise typer.Exit(code=1) from exc

        try:
            pool = WorkerPool(command, workers, scratch_root=scratch_root)
        except FlakeForgeError as exc:
            console.print(f"[red]Error:[/red] {escape(str(exc))}")
            raise typer.Exit(code=1) from exc

        with ProgressDisplay(progress_console, live=progress_console.is_terminal) as progress:
            coordinator = Coordinator(
                pool,
                tick_interval=config.tick_interval,
                on_progress=progress.update,
            )
            report = coordinator.run()

    _print_report(report, command)
    raise typer.Exit(code=report.exit_code)
