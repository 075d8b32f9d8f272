"""Shared test fixtures for the FlakeForge test suite."""

from __future__ import annotations

import stat
import textwrap
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from collections.abc import Callable


# =============================================================================
# Pytest configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-apply markers based on test directory structure."""
    for item in items:
        test_path = str(item.fspath)
        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/e2e/" in test_path:
            item.add_marker(pytest.mark.e2e)


# =============================================================================
# Script fixtures
# =============================================================================


@pytest.fixture
def make_script(tmp_path: Path) -> Callable[..., str]:
    """Factory writing an executable ``/bin/sh`` script into ``tmp_path``.

    Usage: ``make_script("echo hi; exit 3", name="fail.sh")`` returns the
    absolute path of the script.
    """

    def _make(body: str, *, name: str = "script.sh") -> str:
        path = tmp_path / name
        path.write_text("#!/bin/sh\n" + textwrap.dedent(body))
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(path)

    return _make


@pytest.fixture
def nth_call_fails(tmp_path: Path, make_script: Callable[..., str]) -> Callable[..., str]:
    """Factory for a script that prints ``hello`` and exits 0 until call ``n``.

    On call ``n`` it exits with ``status`` without printing anything. A
    counter file keeps state between calls, so only use it with
    parallelism 1.
    """

    def _make(n: int, *, status: int = 3) -> str:
        counter = tmp_path / "counter"
        return make_script(
            f"""\
            n=$(cat "{counter}" 2>/dev/null || echo 0)
            n=$((n + 1))
            echo "$n" > "{counter}"
            if [ "$n" -ge {n} ]; then
                exit {status}
            fi
            echo hello
            """,
            name="nth_call_fails.sh",
        )

    return _make
