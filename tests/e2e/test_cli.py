"""End-to-end tests for the FlakeForge CLI."""

from __future__ import annotations

import os
import signal
import threading
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from typer.testing import CliRunner

from flakeforge import __version__
from flakeforge.cli.app import app

if TYPE_CHECKING:
    from collections.abc import Callable

pytestmark = pytest.mark.skipif(os.name != "posix", reason="needs /bin/sh and process groups")

runner = CliRunner()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("FLAKEFORGE_PARALLELISM", raising=False)
    monkeypatch.delenv("FLAKEFORGE_TICK_INTERVAL", raising=False)
    monkeypatch.delenv("FLAKEDIR", raising=False)
    monkeypatch.delenv("FORCE_COLOR", raising=False)


# ---------------------------------------------------------------------------
# Tests: version, help and usage errors
# ---------------------------------------------------------------------------


def test_version_flag():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_help_output():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "--parallelism" in result.output
    assert "--tmpdir" in result.output


def test_missing_command_is_usage_error():
    result = runner.invoke(app, [])
    assert result.exit_code == 2


def test_zero_parallelism_is_usage_error():
    result = runner.invoke(app, ["-p", "0", "true"])
    assert result.exit_code == 2


def test_invalid_env_config_exits_1(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("FLAKEFORGE_PARALLELISM", "many")
    result = runner.invoke(app, ["false"])
    assert result.exit_code == 1
    assert "FLAKEFORGE_PARALLELISM" in result.output


# ---------------------------------------------------------------------------
# Tests: runs
# ---------------------------------------------------------------------------


@pytest.mark.timeout(30)
def test_false_reports_failure():
    result = runner.invoke(app, ["-p", "4", "/bin/false"])
    assert result.exit_code == 1
    assert "Failed after 0 successful iteration(s):" in result.output
    assert "Command failed: status 1:" in result.output


@pytest.mark.timeout(30)
def test_tenth_call_failure(nth_call_fails: Callable[..., str]):
    result = runner.invoke(app, ["-p", "1", nth_call_fails(10, status=3)])
    assert result.exit_code == 1
    assert "Failed after 9 successful iteration(s):" in result.output
    assert "Command failed: status 3:" in result.output
    assert "hello" not in result.output


@pytest.mark.timeout(30)
def test_prints_failing_output_and_passes_flags_through():
    result = runner.invoke(
        app,
        ["-p", "2", "sh", "-c", 'echo "flag=$1"; echo oops >&2; exit 9', "sh", "-p"],
    )
    assert result.exit_code == 1
    assert "flag=-p" in result.output
    assert "oops" in result.output
    assert "status 9" in result.output


@pytest.mark.timeout(30)
def test_failing_output_is_written_byte_for_byte():
    """Tabs, carriage returns and invalid UTF-8 reach stderr unchanged."""
    result = runner.invoke(
        app,
        ["-p", "1", "sh", "-c", r"printf 'a\tb\r\nc\377d'; exit 1"],
    )
    assert result.exit_code == 1
    # Older Click mixes stderr into stdout and leaves stderr_bytes unset
    stderr = result.stderr_bytes or result.stdout_bytes
    assert b"status 1:\na\tb\r\nc\xffd\n" in stderr


@pytest.mark.timeout(30)
def test_missing_binary_reports_error(tmp_path: Path):
    missing = str(tmp_path / "no-such-binary")
    result = runner.invoke(app, ["-p", "2", missing])
    assert result.exit_code == 1
    assert "Error running" in result.output
    assert "no-such-binary" in result.output


@pytest.mark.timeout(30)
def test_tmpdir_sets_flakedir_and_cleans_up(
    tmp_path: Path, make_script: Callable[..., str]
):
    parent = tmp_path / "scratch"
    parent.mkdir()
    log = tmp_path / "dirs.log"
    script = make_script(
        f"""\
        [ -d "$FLAKEDIR" ] || exit 42
        echo "$FLAKEDIR" >> "{log}"
        [ "$(wc -l < "{log}")" -ge 5 ] && exit 1
        exit 0
        """
    )
    result = runner.invoke(app, ["-p", "1", "--tmpdir", str(parent), script])

    assert result.exit_code == 1, result.output
    assert "status 1" in result.output
    dirs = [Path(d) for d in log.read_text().split()]
    assert len(dirs) == 5
    assert all(d.parent.parent == parent for d in dirs)
    assert all(d.parent.name.startswith("flake-") for d in dirs)
    assert list(parent.iterdir()) == []


@pytest.mark.timeout(30)
def test_unusable_tmpdir_exits_1(tmp_path: Path):
    result = runner.invoke(app, ["--tmpdir", str(tmp_path / "missing"), "true"])
    assert result.exit_code == 1
    assert "Cannot create tmpdir" in result.output


@pytest.mark.timeout(30)
def test_progress_lines_when_not_a_terminal(
    monkeypatch: pytest.MonkeyPatch, nth_call_fails: Callable[..., str]
):
    monkeypatch.setenv("FLAKEFORGE_TICK_INTERVAL", "0.05")
    script = nth_call_fails(200)
    result = runner.invoke(app, ["-p", "1", script])
    assert result.exit_code == 1
    assert "iterations" in result.output


@pytest.mark.timeout(30)
def test_interrupt_exits_zero():
    timer = threading.Timer(1.0, os.kill, args=(os.getpid(), signal.SIGINT))
    timer.start()
    try:
        result = runner.invoke(app, ["-p", "2", "sleep", "30"])
    finally:
        timer.cancel()

    assert result.exit_code == 0, result.output
    assert "Quit after 0 iteration(s)" in result.output
