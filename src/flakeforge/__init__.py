"""FlakeForge: reproduce flaky failures by running a command until it fails."""

from __future__ import annotations

from flakeforge.engine.coordinator import Coordinator, RunReport, RunStatistics
from flakeforge.engine.pool import WorkerPool
from flakeforge.engine.protocol import Failure, Outcome, SpawnError, Success
from flakeforge.engine.runner import ProcessRunner

__version__ = "0.1.0"

__all__ = [
    "Coordinator",
    "Failure",
    "Outcome",
    "ProcessRunner",
    "RunReport",
    "RunStatistics",
    "SpawnError",
    "Success",
    "WorkerPool",
]
