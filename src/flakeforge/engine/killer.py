"""How a running invocation is forcibly terminated on cancellation.

Two implementations exist. On POSIX the child is started as the leader of
a new process group and the whole group is sent ``SIGKILL``, so that
grandchildren spawned by shell scripts or test harnesses die with it.
Elsewhere only the direct child can be killed.
"""

from __future__ import annotations

import os
import signal
from typing import TYPE_CHECKING, Any, Protocol

from flakeforge._internal.logging import get_logger

if TYPE_CHECKING:
    import subprocess

logger = get_logger("engine.killer")


class ProcessKiller(Protocol):
    """Capability to start a cancellable child and kill it on demand."""

    @property
    def popen_kwargs(self) -> dict[str, Any]:
        """Extra keyword arguments for ``subprocess.Popen``."""
        ...

    def kill(self, proc: subprocess.Popen[bytes]) -> None:
        """Forcibly terminate ``proc`` (and its descendants, if possible)."""
        ...


class ProcessGroupKiller:
    """Kill the child's entire process group with SIGKILL (POSIX only)."""

    @property
    def popen_kwargs(self) -> dict[str, Any]:
        return {"process_group": 0}

    def kill(self, proc: subprocess.Popen[bytes]) -> None:
        # The leader may have exited while descendants still hold the pipe;
        # the pgid stays valid as long as any group member is alive.
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            return
        except PermissionError:
            logger.debug("killpg(%d) denied, killing process only", proc.pid)
            proc.kill()
            return
        logger.debug("Killed process group %d", proc.pid)


class DirectKiller:
    """Kill only the direct child process."""

    @property
    def popen_kwargs(self) -> dict[str, Any]:
        return {}

    def kill(self, proc: subprocess.Popen[bytes]) -> None:
        if proc.poll() is not None:
            return
        try:
            proc.kill()
        except ProcessLookupError:
            return
        logger.debug("Killed process %d", proc.pid)


def default_killer() -> ProcessKiller:
    """Return the strongest killer available on this platform."""
    if os.name == "posix":
        return ProcessGroupKiller()
    return DirectKiller()
