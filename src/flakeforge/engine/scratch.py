"""Scratch directories exposed to invocations as ``$FLAKEDIR``."""

from __future__ import annotations

import contextlib
import shutil
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from flakeforge._internal.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = get_logger("engine.scratch")

SCRATCH_ENV_VAR = "FLAKEDIR"
RUN_ROOT_PREFIX = "flake-"


@contextlib.contextmanager
def run_scratch_root(parent: str | Path | None) -> Iterator[Path | None]:
    """Create one fresh directory under ``parent`` for the whole run.

    Yields None when ``parent`` is None (scratch directories disabled).
    The directory and everything left in it are removed on exit.

    Raises:
        OSError: If the directory cannot be created.
    """
    if parent is None:
        yield None
        return

    root = Path(tempfile.mkdtemp(prefix=RUN_ROOT_PREFIX, dir=parent))
    logger.debug("Created run scratch root %s", root)
    try:
        yield root
    finally:
        _remove(root)


@contextlib.contextmanager
def scratch_dir(root: Path, invocation_id: int) -> Iterator[Path]:
    """Create ``root/<invocation_id>`` for one invocation and remove it afterwards.

    Removal failures are logged and swallowed; creation failures raise.

    Raises:
        OSError: If the directory cannot be created (including when it
            already exists).
    """
    path = root / str(invocation_id)
    path.mkdir(mode=0o755)
    try:
        yield path
    finally:
        _remove(path)


def _remove(path: Path) -> None:
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        pass
    except OSError:
        logger.warning("Failed to remove scratch directory %s", path, exc_info=True)
