"""Diagnostic logging for flakeforge runs.

Stderr is shared with the report and, on failure, with the raw output of
the failing command. Diagnostics therefore stay quiet by default: only
WARNING and above reach stderr unless ``-v`` lowers the level.

Every record carries the emitting thread's name, so lines from
``flakeforge-worker-3`` can be told apart from the coordinator running on
``MainThread``.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime

_ROOT_LOGGER = "flakeforge"

_TEXT_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s"


class _JsonFormatter(logging.Formatter):
    """Emit one JSON object per record for ``--log-json``.

    Meant for piping a long soak run into a log collector and filtering
    by ``thread`` to follow a single worker lane.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def setup_logging(
    level: int = logging.WARNING,
    *,
    json_format: bool = False,
) -> logging.Logger:
    """Attach a single stderr handler to the ``flakeforge`` logger.

    WARNING is the default so a normal run prints nothing but the progress
    line and the report; scratch cleanup problems and swallowed callback
    errors still surface. Calling this again only changes the level.

    Args:
        level: Threshold for both the logger and its handler.
        json_format: Emit JSON lines instead of the text format.

    Returns:
        The ``flakeforge`` logger.
    """
    logger = logging.getLogger(_ROOT_LOGGER)
    logger.setLevel(level)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    if json_format:
        formatter: logging.Formatter = _JsonFormatter()
    else:
        formatter = logging.Formatter(_TEXT_FORMAT, datefmt="%H:%M:%S")

    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # A host application's root handlers must not repeat our lines
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return ``flakeforge.<name>``, e.g. ``get_logger("engine.runner")``."""
    return logging.getLogger(f"{_ROOT_LOGGER}.{name}")
