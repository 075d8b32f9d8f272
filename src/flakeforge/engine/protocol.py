"""Outcome types passed from workers to the coordinator."""

from __future__ import annotations

import signal
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Success:
    """The invocation exited with status 0.

    Attributes:
        invocation_id: Sequence id of the invocation.
    """

    invocation_id: int


@dataclass(frozen=True)
class Failure:
    """The target command exited nonzero or was killed by a signal.

    Attributes:
        invocation_id: Sequence id of the invocation.
        output: Combined stdout/stderr captured from this invocation only.
        returncode: ``Popen.returncode``; negative values are signal numbers.
    """

    invocation_id: int
    output: bytes = field(repr=False)
    returncode: int

    @property
    def signaled(self) -> bool:
        """Return True if the process was terminated by a signal."""
        return self.returncode < 0

    @property
    def description(self) -> str:
        """Human-readable reason, e.g. ``status 3`` or ``got signal SIGKILL``."""
        if self.signaled:
            signum = -self.returncode
            try:
                name = signal.Signals(signum).name
            except ValueError:
                name = str(signum)
            return f"got signal {name}"
        return f"status {self.returncode}"


@dataclass(frozen=True)
class SpawnError:
    """The invocation could not be started or its scratch directory failed.

    Attributes:
        invocation_id: Sequence id of the invocation.
        error: The underlying exception.
    """

    invocation_id: int
    error: BaseException

    @property
    def description(self) -> str:
        """Return the error message."""
        return str(self.error)


Outcome = Success | Failure | SpawnError
