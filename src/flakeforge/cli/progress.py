"""Progress line rendering for ``flakeforge``.

On a terminal a single transient line is redrawn in place; otherwise (CI
logs, pipes) each tick appends a new line.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.live import Live
from rich.text import Text

if TYPE_CHECKING:
    from types import TracebackType

    from rich.console import Console

    from flakeforge.engine.coordinator import RunStatistics


def format_duration(seconds: float) -> str:
    """Format a duration compactly: ``850µs``, ``12.3ms``, ``1.25s``, ``2m3.4s``."""
    if seconds < 1e-3:
        return f"{seconds * 1e6:.0f}µs"
    if seconds < 1.0:
        return f"{seconds * 1e3:.1f}ms"
    if seconds < 60.0:
        return f"{seconds:.2f}s"
    minutes, rest = divmod(seconds, 60.0)
    return f"{int(minutes)}m{rest:.1f}s"


def average_suffix(average_latency: float | None) -> str:
    """Return `` (avg = <dur>)`` or an empty string when there is no average yet."""
    if average_latency is None:
        return ""
    return f" (avg = {format_duration(average_latency)})"


def progress_line(stats: RunStatistics) -> str:
    """Build the progress text for the current statistics."""
    return f"{stats.successes} iterations{average_suffix(stats.average_latency())}..."


class ProgressDisplay:
    """Renders :class:`RunStatistics` once per coordinator tick.

    Use as a context manager around the run so the live line is cleared
    before the final report is printed.

    Attributes:
        live: Whether to redraw a single line in place.
    """

    def __init__(self, console: Console, *, live: bool) -> None:
        """Initialize the display.

        Args:
            console: Console receiving the progress output.
            live: Redraw in place (interactive terminal) instead of appending.
        """
        self._console = console
        self.live = live
        self._live: Live | None = None

    def __enter__(self) -> ProgressDisplay:
        if self.live:
            self._live = Live(
                Text(""),
                console=self._console,
                auto_refresh=False,
                transient=True,
            )
            self._live.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._live is not None:
            self._live.stop()
            self._live = None

    def update(self, stats: RunStatistics) -> None:
        """Show the current progress."""
        line = progress_line(stats)
        if self._live is not None:
            self._live.update(Text(line), refresh=True)
        else:
            self._console.print(line, markup=False, highlight=False, soft_wrap=True)
