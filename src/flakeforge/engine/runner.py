"""Run one invocation of the target command and classify its outcome."""

from __future__ import annotations

import os
import subprocess
from typing import TYPE_CHECKING

from flakeforge._internal.logging import get_logger
from flakeforge.engine.killer import default_killer
from flakeforge.engine.protocol import Failure, SpawnError, Success

if TYPE_CHECKING:
    from collections.abc import Sequence

    from flakeforge._internal.types import EnvOverrides
    from flakeforge.engine.cancel import CancellationToken
    from flakeforge.engine.killer import ProcessKiller
    from flakeforge.engine.protocol import Outcome

logger = get_logger("engine.runner")

_READ_CHUNK = 64 * 1024


class ProcessRunner:
    """Starts a subprocess, captures its combined output and waits for it.

    The runner is synchronous: :meth:`execute` blocks the calling thread
    until the child exits or the cancellation token kills it. Stdout and
    stderr share one pipe, so the captured bytes keep the interleaving the
    OS delivered.

    Attributes:
        killer: Strategy used to terminate the child on cancellation.
    """

    def __init__(self, killer: ProcessKiller | None = None) -> None:
        """Initialize the runner.

        Args:
            killer: Termination strategy. Defaults to :func:`default_killer`.
        """
        self.killer = killer if killer is not None else default_killer()

    def execute(
        self,
        command: Sequence[str],
        cancel: CancellationToken,
        *,
        output: bytearray,
        invocation_id: int = 0,
        env: EnvOverrides | None = None,
    ) -> Outcome:
        """Run ``command`` once.

        ``output`` is cleared and refilled; it is reused across calls, so the
        bytes are copied into the outcome on failure and discarded otherwise.

        Args:
            command: Program and arguments.
            cancel: Token whose cancellation kills the running child.
            output: Reusable buffer receiving the combined stdout/stderr.
            invocation_id: Sequence id recorded on the outcome.
            env: Variables layered over ``os.environ`` for the child.

        Returns:
            ``Success`` on exit status 0, ``Failure`` on a nonzero status or a
            signal, ``SpawnError`` if the process could not be started.
        """
        del output[:]
        child_env = {**os.environ, **env} if env else None

        try:
            proc = subprocess.Popen(
                list(command),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                env=child_env,
                **self.killer.popen_kwargs,
            )
        except OSError as exc:
            logger.debug("Invocation %d: failed to start: %s", invocation_id, exc)
            return SpawnError(invocation_id=invocation_id, error=exc)

        logger.debug("Invocation %d: started pid=%d", invocation_id, proc.pid)
        try:
            with cancel.on_cancel(lambda: self.killer.kill(proc)):
                self._drain(proc, output)
                returncode = proc.wait()
        finally:
            if proc.returncode is None:
                self.killer.kill(proc)
                proc.wait()
            if proc.stdout is not None:
                proc.stdout.close()

        if returncode == 0:
            return Success(invocation_id=invocation_id)

        failure = Failure(
            invocation_id=invocation_id,
            output=bytes(output),
            returncode=returncode,
        )
        logger.debug("Invocation %d: %s", invocation_id, failure.description)
        return failure

    @staticmethod
    def _drain(proc: subprocess.Popen[bytes], output: bytearray) -> None:
        """Copy everything from the child's pipe into ``output`` until EOF."""
        assert proc.stdout is not None
        while chunk := proc.stdout.read1(_READ_CHUNK):
            output += chunk
