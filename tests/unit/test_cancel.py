"""Tests for the cancellation token and the id counter."""

from __future__ import annotations

import threading

from flakeforge.engine.cancel import AtomicCounter, CancellationToken


class TestCancellationToken:
    def test_starts_uncancelled(self):
        token = CancellationToken()
        assert not token.is_set()

    def test_cancel_is_idempotent(self):
        token = CancellationToken()
        assert token.cancel() is True
        assert token.cancel() is False
        assert token.is_set()

    def test_callback_runs_once(self):
        token = CancellationToken()
        calls: list[str] = []
        with token.on_cancel(lambda: calls.append("kill")):
            token.cancel()
            token.cancel()
        assert calls == ["kill"]

    def test_callback_after_block_is_not_run(self):
        token = CancellationToken()
        calls: list[str] = []
        with token.on_cancel(lambda: calls.append("kill")):
            pass
        token.cancel()
        assert calls == []

    def test_late_registration_runs_immediately(self):
        token = CancellationToken()
        token.cancel()
        calls: list[str] = []
        with token.on_cancel(lambda: calls.append("kill")):
            assert calls == ["kill"]

    def test_failing_callback_does_not_block_others(self):
        token = CancellationToken()
        calls: list[str] = []

        def _boom() -> None:
            raise RuntimeError("boom")

        with token.on_cancel(_boom), token.on_cancel(lambda: calls.append("kill")):
            assert token.cancel() is True
        assert calls == ["kill"]

    def test_callbacks_from_other_threads_all_fire(self):
        token = CancellationToken()
        registered = threading.Barrier(5)
        release = threading.Event()
        fired: list[int] = []
        lock = threading.Lock()

        def _register(i: int) -> None:
            def _record() -> None:
                with lock:
                    fired.append(i)

            with token.on_cancel(_record):
                registered.wait(timeout=5.0)
                release.wait(timeout=5.0)

        threads = [threading.Thread(target=_register, args=(i,)) for i in range(4)]
        for t in threads:
            t.start()
        registered.wait(timeout=5.0)
        token.cancel()
        release.set()
        for t in threads:
            t.join(timeout=5.0)
        assert sorted(fired) == [0, 1, 2, 3]


class TestAtomicCounter:
    def test_starts_at_one(self):
        counter = AtomicCounter()
        assert counter.issued == 0
        assert counter.next() == 1
        assert counter.next() == 2
        assert counter.issued == 2

    def test_unique_across_threads(self):
        counter = AtomicCounter()
        seen: list[int] = []
        lock = threading.Lock()

        def _claim() -> None:
            local = [counter.next() for _ in range(500)]
            with lock:
                seen.extend(local)

        threads = [threading.Thread(target=_claim) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(seen) == 4000
        assert sorted(seen) == list(range(1, 4001))
