"""Shared coordination primitives: a one-shot cancellation token and an id counter."""

from __future__ import annotations

import contextlib
import itertools
import threading
from typing import TYPE_CHECKING

from flakeforge._internal.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

logger = get_logger("engine.cancel")


class CancellationToken:
    """One-shot broadcast cancellation signal.

    Every worker observes the same token. Once :meth:`cancel` has been
    called the token stays cancelled for the rest of the run.

    Besides the flag itself, the token keeps a registry of callbacks so that
    cancellation can be pushed into blocking operations (a running
    subprocess) instead of waiting for them to notice the flag.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: dict[int, Callable[[], None]] = {}
        self._keys = itertools.count()

    def is_set(self) -> bool:
        """Return True once cancellation has been raised."""
        return self._event.is_set()

    def cancel(self) -> bool:
        """Raise the cancellation signal.

        Registered callbacks run exactly once, on the calling thread.
        Further calls are no-ops.

        Returns:
            True if this call raised the signal, False if it was already raised.
        """
        with self._lock:
            if self._event.is_set():
                return False
            self._event.set()
            callbacks = list(self._callbacks.values())
            self._callbacks.clear()

        for callback in callbacks:
            _run_callback(callback)
        return True

    @contextlib.contextmanager
    def on_cancel(self, callback: Callable[[], None]) -> Iterator[None]:
        """Run ``callback`` if the token is cancelled while the block is active.

        If the token is already cancelled, the callback runs immediately.

        Args:
            callback: Zero-argument callable, typically a process kill.
        """
        with self._lock:
            already_cancelled = self._event.is_set()
            key = next(self._keys)
            if not already_cancelled:
                self._callbacks[key] = callback

        if already_cancelled:
            _run_callback(callback)

        try:
            yield
        finally:
            with self._lock:
                self._callbacks.pop(key, None)


def _run_callback(callback: Callable[[], None]) -> None:
    try:
        callback()
    except Exception:
        logger.warning("Cancellation callback %r failed", callback, exc_info=True)


class AtomicCounter:
    """Thread-safe monotonically increasing integer, starting at 1."""

    def __init__(self, start: int = 1) -> None:
        self._lock = threading.Lock()
        self._next = start

    def next(self) -> int:
        """Claim and return the next value."""
        with self._lock:
            value = self._next
            self._next += 1
            return value

    @property
    def issued(self) -> int:
        """Return the last value handed out (0 if none)."""
        with self._lock:
            return self._next - 1
