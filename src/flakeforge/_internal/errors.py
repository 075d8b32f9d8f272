"""Custom exception hierarchy for FlakeForge."""

from __future__ import annotations


class FlakeForgeError(Exception):
    """Base exception for all FlakeForge errors.

    All custom exceptions in FlakeForge inherit from this class, making it
    easy to catch any FlakeForge-specific error with a single except clause.
    A failing target command is *not* an exception: it is reported as a
    ``Failure`` outcome.
    """


class ConfigError(FlakeForgeError):
    """Raised when configuration is invalid or missing.

    Examples:
        - ``FLAKEFORGE_PARALLELISM`` is not an integer.
        - A worker pool is built with parallelism below 1 or an empty command.
    """


class EngineError(FlakeForgeError):
    """Raised when the execution engine is driven incorrectly.

    Examples:
        - ``WorkerPool.start()`` is called twice.
        - A coordinator is asked to run more than once.
    """
