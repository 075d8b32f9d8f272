"""A single execution lane that runs the target command until something fails."""

from __future__ import annotations

import queue
from typing import TYPE_CHECKING

from flakeforge._internal.logging import get_logger
from flakeforge.engine.protocol import SpawnError, Success
from flakeforge.engine.runner import ProcessRunner
from flakeforge.engine.scratch import SCRATCH_ENV_VAR, scratch_dir

if TYPE_CHECKING:
    from pathlib import Path

    from flakeforge._internal.types import Command
    from flakeforge.engine.cancel import AtomicCounter, CancellationToken
    from flakeforge.engine.protocol import Outcome

logger = get_logger("engine.worker")

# How long a blocked publish waits before re-checking cancellation.
_PUBLISH_POLL = 0.05


class Worker:
    """Runs invocations back to back and publishes every outcome.

    Each worker owns its :class:`ProcessRunner` and output buffer; nothing
    here is shared with other workers except what :meth:`run_loop` receives.

    Attributes:
        worker_id: Lane index, used for logging only.
        command: Immutable command shared by all workers.
        scratch_root: Directory under which per-invocation scratch
            directories are created, or None to disable them.
    """

    def __init__(
        self,
        worker_id: int,
        command: Command,
        *,
        runner: ProcessRunner | None = None,
        scratch_root: Path | None = None,
    ) -> None:
        self.worker_id = worker_id
        self.command = command
        self.scratch_root = scratch_root
        self._runner = runner if runner is not None else ProcessRunner()
        self._output = bytearray()
        self.completed = 0

    def run_loop(
        self,
        ids: AtomicCounter,
        results: queue.Queue[Outcome],
        cancel: CancellationToken,
    ) -> None:
        """Run invocations until cancellation or the first non-success outcome.

        Args:
            ids: Shared counter handing out invocation ids.
            results: Fan-in queue read by the coordinator.
            cancel: Shared cancellation token.
        """
        logger.debug("Worker %d: started", self.worker_id)
        while not cancel.is_set():
            invocation_id = ids.next()
            outcome = self.run_once(invocation_id, cancel)
            self.completed += 1

            if not _publish(results, outcome, cancel):
                logger.debug(
                    "Worker %d: dropped outcome of invocation %d after cancellation",
                    self.worker_id,
                    invocation_id,
                )
                break
            if not isinstance(outcome, Success):
                break
        logger.debug("Worker %d: exiting after %d invocations", self.worker_id, self.completed)

    def run_once(self, invocation_id: int, cancel: CancellationToken) -> Outcome:
        """Execute a single invocation, with its scratch directory if configured.

        Never raises: any error is converted to a ``SpawnError`` so that the
        worker thread always terminates cleanly.
        """
        try:
            if self.scratch_root is None:
                return self._runner.execute(
                    self.command,
                    cancel,
                    output=self._output,
                    invocation_id=invocation_id,
                )
            with scratch_dir(self.scratch_root, invocation_id) as path:
                return self._runner.execute(
                    self.command,
                    cancel,
                    output=self._output,
                    invocation_id=invocation_id,
                    env={SCRATCH_ENV_VAR: str(path)},
                )
        except OSError as exc:
            logger.debug("Invocation %d: setup failed: %s", invocation_id, exc)
            return SpawnError(invocation_id=invocation_id, error=exc)
        except Exception as exc:
            logger.exception("Worker %d: invocation %d crashed", self.worker_id, invocation_id)
            return SpawnError(invocation_id=invocation_id, error=exc)


def _publish(
    results: queue.Queue[Outcome],
    outcome: Outcome,
    cancel: CancellationToken,
) -> bool:
    """Put ``outcome`` on ``results`` unless cancellation is raised first.

    Returns:
        True if the outcome was enqueued.
    """
    while not cancel.is_set():
        try:
            results.put(outcome, timeout=_PUBLISH_POLL)
        except queue.Full:
            continue
        return True
    return False
