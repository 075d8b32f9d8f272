"""A fixed set of worker threads sharing one results queue and one cancellation token."""

from __future__ import annotations

import queue
import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING

from flakeforge._internal.errors import ConfigError, EngineError
from flakeforge._internal.logging import get_logger
from flakeforge.engine.cancel import AtomicCounter, CancellationToken
from flakeforge.engine.runner import ProcessRunner
from flakeforge.engine.worker import Worker

if TYPE_CHECKING:
    from collections.abc import Sequence

    from flakeforge.engine.killer import ProcessKiller
    from flakeforge.engine.protocol import Outcome

logger = get_logger("engine.pool")


class WorkerPool:
    """Manages the lifecycle of N worker threads.

    All workers share the command, the results queue, the cancellation
    token and the invocation id counter. Each worker owns its own runner,
    output buffer and (through unique ids) its own scratch directories.

    The results queue is bounded at ``parallelism`` items so that a slow
    consumer applies back-pressure instead of letting memory grow.

    Attributes:
        command: Command tuple run by every worker.
        parallelism: Number of worker threads.
        scratch_root: Root for per-invocation scratch directories, or None.
        results: Fan-in queue of outcomes, read by the coordinator.
    """

    def __init__(
        self,
        command: Sequence[str],
        parallelism: int,
        *,
        scratch_root: str | Path | None = None,
        killer: ProcessKiller | None = None,
    ) -> None:
        """Initialize the pool.

        Args:
            command: Program and arguments to run repeatedly.
            parallelism: Number of workers; must be >= 1.
            scratch_root: Existing directory for per-invocation scratch
                directories. None disables them.
            killer: Termination strategy shared by all runners.

        Raises:
            ConfigError: If ``command`` is empty or ``parallelism`` < 1.
        """
        if not command:
            msg = "command must not be empty"
            raise ConfigError(msg)
        if parallelism < 1:
            msg = f"parallelism must be >= 1, got: {parallelism}"
            raise ConfigError(msg)

        self.command = tuple(command)
        self.parallelism = parallelism
        self.scratch_root = Path(scratch_root) if scratch_root is not None else None
        self.results: queue.Queue[Outcome] = queue.Queue(maxsize=parallelism)

        self._killer = killer
        self._cancel = CancellationToken()
        self._ids = AtomicCounter()
        self._workers: list[Worker] = []
        self._threads: list[threading.Thread] = []

    @property
    def cancel_token(self) -> CancellationToken:
        """Return the shared cancellation token."""
        return self._cancel

    @property
    def invocations_started(self) -> int:
        """Return how many invocation ids have been handed out."""
        return self._ids.issued

    @property
    def is_alive(self) -> bool:
        """Return True if any worker thread is still running."""
        return any(t.is_alive() for t in self._threads)

    def start(self) -> None:
        """Spawn all worker threads.

        Raises:
            EngineError: If the pool was already started.
        """
        if self._threads:
            msg = "worker pool already started"
            raise EngineError(msg)

        for i in range(self.parallelism):
            worker = Worker(
                worker_id=i,
                command=self.command,
                runner=ProcessRunner(killer=self._killer),
                scratch_root=self.scratch_root,
            )
            thread = threading.Thread(
                target=worker.run_loop,
                args=(self._ids, self.results, self._cancel),
                name=f"flakeforge-worker-{i}",
                daemon=True,
            )
            self._workers.append(worker)
            self._threads.append(thread)

        for t in self._threads:
            t.start()

        logger.info("Started %d workers: %s", self.parallelism, list(self.command))

    def cancel(self) -> None:
        """Raise cancellation for every worker and kill in-flight invocations."""
        if self._cancel.cancel():
            logger.debug("Cancellation raised")

    def join(self, timeout: float | None = None) -> bool:
        """Wait for all worker threads to exit.

        Args:
            timeout: Overall seconds to wait, or None to wait indefinitely.

        Returns:
            True if every worker exited.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        for t in self._threads:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            t.join(timeout=remaining)

        stragglers = [t.name for t in self._threads if t.is_alive()]
        if stragglers:
            logger.warning("Workers did not exit in time: %s", ", ".join(stragglers))
            return False

        logger.info(
            "All %d workers stopped after %d invocations",
            self.parallelism,
            self.invocations_started,
        )
        return True
