"""Main control loop: count successes, show progress, stop on the first failure.

The :class:`Coordinator` consumes outcomes from a :class:`WorkerPool` and
moves through ``RUNNING -> DRAINING -> REPORTING``. The first failure, spawn
error or interrupt wins; after that the pool is cancelled and joined and a
:class:`RunReport` is returned. Nothing is printed here.
"""

from __future__ import annotations

import enum
import queue
import signal
import threading
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from flakeforge._internal.errors import EngineError
from flakeforge._internal.logging import get_logger
from flakeforge.engine.protocol import Failure, SpawnError, Success

if TYPE_CHECKING:
    from collections.abc import Callable

    from flakeforge.engine.pool import WorkerPool
    from flakeforge.engine.protocol import Outcome

logger = get_logger("engine.coordinator")

_HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class CoordinatorState(enum.Enum):
    """Lifecycle of a coordinator run."""

    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    REPORTING = "reporting"


@dataclass
class RunStatistics:
    """Progress counters, mutated only by the coordinator thread.

    Attributes:
        parallelism: Number of worker lanes.
        successes: Successful invocations observed so far.
        start_time: ``time.monotonic()`` at the start of the run.
    """

    parallelism: int
    successes: int = 0
    start_time: float = field(default_factory=time.monotonic)

    def record_success(self) -> None:
        self.successes += 1

    def elapsed(self, now: float | None = None) -> float:
        """Return seconds since the run started."""
        if now is None:
            now = time.monotonic()
        return now - self.start_time

    def average_latency(self, now: float | None = None) -> float | None:
        """Return the mean seconds per successful invocation on a single lane.

        Computed as ``parallelism * elapsed / successes``; None until the
        first success.
        """
        if self.successes == 0:
            return None
        return self.parallelism * self.elapsed(now) / self.successes


@dataclass(frozen=True)
class RunReport:
    """Final result of a run.

    Attributes:
        successes: Successful invocations counted before the run stopped.
        elapsed: Wall-clock seconds the run took.
        average_latency: Seconds per iteration per lane, or None.
        parallelism: Number of worker lanes.
        outcome: The terminal ``Failure``/``SpawnError``, or None when the
            run was interrupted.
    """

    successes: int
    elapsed: float
    average_latency: float | None
    parallelism: int
    outcome: Failure | SpawnError | None = None

    @property
    def interrupted(self) -> bool:
        """Return True if the run stopped without observing a failure."""
        return self.outcome is None

    @property
    def failed(self) -> bool:
        """Return True if the target command itself failed."""
        return isinstance(self.outcome, Failure)

    @property
    def exit_code(self) -> int:
        """Process exit status: 0 when interrupted, 1 otherwise."""
        return 0 if self.outcome is None else 1


class Coordinator:
    """Drives a worker pool until the first failure or an interrupt.

    Attributes:
        pool: The pool whose results are consumed.
        tick_interval: Seconds between ``on_progress`` calls.
        poll_interval: Upper bound on how long one queue read blocks, which
            also bounds the reaction time to an interrupt.
    """

    def __init__(
        self,
        pool: WorkerPool,
        *,
        tick_interval: float = 1.0,
        poll_interval: float = 0.1,
        on_progress: Callable[[RunStatistics], None] | None = None,
        handle_signals: bool = True,
    ) -> None:
        """Initialize the coordinator.

        Args:
            pool: Unstarted worker pool.
            tick_interval: Seconds between progress callbacks.
            poll_interval: Maximum seconds per blocking queue read.
            on_progress: Optional callback invoked with the statistics each tick.
            handle_signals: Install SIGINT/SIGTERM handlers during :meth:`run`
                (only possible on the main thread).
        """
        self.pool = pool
        self.tick_interval = tick_interval
        self.poll_interval = poll_interval
        self._on_progress = on_progress
        self._handle_signals = handle_signals
        self._stop_requested = threading.Event()
        self._state = CoordinatorState.IDLE
        self.stats = RunStatistics(parallelism=pool.parallelism)

    @property
    def state(self) -> CoordinatorState:
        """Return the current lifecycle state."""
        return self._state

    def request_stop(self) -> None:
        """Ask a running coordinator to shut down as if interrupted."""
        self._stop_requested.set()

    def run(self) -> RunReport:
        """Start the pool and block until the run is over.

        Returns:
            RunReport describing why the run stopped.

        Raises:
            EngineError: If the coordinator has already run.
        """
        if self._state is not CoordinatorState.IDLE:
            msg = f"coordinator cannot run from state {self._state.value}"
            raise EngineError(msg)

        original_handlers = self._install_signal_handlers()
        try:
            self.stats = RunStatistics(parallelism=self.pool.parallelism)
            self._state = CoordinatorState.RUNNING
            self.pool.start()
            terminal = self._consume()

            self._state = CoordinatorState.DRAINING
            logger.debug("Draining: cancelling workers")
            self.pool.cancel()
            self.pool.join()
        finally:
            if self._state is CoordinatorState.RUNNING:
                # _consume raised: still make sure no worker outlives the run
                self.pool.cancel()
                self.pool.join()
            self._restore_signal_handlers(original_handlers)

        self._state = CoordinatorState.REPORTING
        now = time.monotonic()
        return RunReport(
            successes=self.stats.successes,
            elapsed=self.stats.elapsed(now),
            average_latency=self.stats.average_latency(now),
            parallelism=self.stats.parallelism,
            outcome=terminal,
        )

    def _consume(self) -> Failure | SpawnError | None:
        """Read outcomes until a terminal one arrives or a stop is requested."""
        next_tick = time.monotonic() + self.tick_interval
        while True:
            if self._stop_requested.is_set():
                logger.info("Stop requested after %d iterations", self.stats.successes)
                return None

            timeout = min(self.poll_interval, max(0.0, next_tick - time.monotonic()))
            try:
                outcome: Outcome = self.pool.results.get(timeout=timeout)
            except queue.Empty:
                pass
            else:
                if isinstance(outcome, Success):
                    self.stats.record_success()
                else:
                    logger.info(
                        "Invocation %d ended the run: %s",
                        outcome.invocation_id,
                        outcome.description,
                    )
                    return outcome

            now = time.monotonic()
            if now >= next_tick:
                if self._on_progress is not None:
                    self._on_progress(self.stats)
                next_tick = now + self.tick_interval

    def _install_signal_handlers(self) -> dict[signal.Signals, object] | None:
        if not self._handle_signals:
            return None
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread; signal handlers not installed")
            return None

        def _signal_handler(signum: int, _frame: object) -> None:
            logger.info("Signal %d received, initiating graceful shutdown", signum)
            self._stop_requested.set()

        original = {sig: signal.getsignal(sig) for sig in _HANDLED_SIGNALS}
        for sig in _HANDLED_SIGNALS:
            signal.signal(sig, _signal_handler)
        return original

    @staticmethod
    def _restore_signal_handlers(original: dict[signal.Signals, object] | None) -> None:
        if original is None:
            return
        for sig, handler in original.items():
            signal.signal(sig, handler)  # type: ignore[arg-type]
