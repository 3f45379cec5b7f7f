"""
Unit tests for the worker thread pool.
"""

import threading
import time

import pytest

from pyrack.core.thread_pool import ThreadPool


@pytest.fixture
def pool():
    pool = ThreadPool(min_workers=1, max_workers=2, queue_size=10, idle_timeout=0.1)
    pool.start()
    yield pool
    pool.shutdown(wait=False)


class TestThreadPool:
    """Tests for ThreadPool."""

    def test_runs_submitted_task(self, pool):
        done = threading.Event()
        results = []

        def task(value):
            results.append(value)
            done.set()

        assert pool.submit(task, args=(42,)) is True
        assert done.wait(timeout=2.0)
        assert results == [42]

    def test_failing_task_keeps_worker_alive(self, pool):
        done = threading.Event()

        def broken():
            raise RuntimeError("boom")

        pool.submit(broken)
        pool.submit(done.set)

        assert done.wait(timeout=2.0)

    def test_full_queue_rejects(self):
        pool = ThreadPool(min_workers=1, max_workers=1, queue_size=1)
        pool.start()
        release = threading.Event()
        started = threading.Event()

        def blocker():
            started.set()
            release.wait(timeout=5.0)

        try:
            assert pool.submit(blocker)
            assert started.wait(timeout=2.0)
            assert pool.submit(blocker)          # fills the queue
            assert pool.submit(blocker) is False  # no room left
        finally:
            release.set()
            pool.shutdown(wait=True, timeout=5.0)

    def test_submit_before_start(self):
        with pytest.raises(RuntimeError):
            ThreadPool().submit(lambda: None)

    def test_invalid_sizes(self):
        with pytest.raises(ValueError):
            ThreadPool(min_workers=4, max_workers=2)

    def test_stats(self, pool):
        stats = pool.stats
        assert stats["workers"]["total"] == 1
        assert stats["tasks"]["queued"] == 0


class TestDroppedTasks:
    """Tasks that never run call their on_drop callback."""

    def _busy_pool(self):
        pool = ThreadPool(min_workers=1, max_workers=1, queue_size=10)
        pool.start()
        release = threading.Event()
        started = threading.Event()

        def blocker():
            started.set()
            release.wait(timeout=5.0)

        pool.submit(blocker)
        assert started.wait(timeout=2.0)
        return pool, release

    def test_task_waiting_past_timeout_is_dropped(self):
        pool, release = self._busy_pool()
        ran = []
        dropped = threading.Event()
        try:
            pool.submit(lambda: ran.append(True), timeout=0.05, on_drop=dropped.set)
            time.sleep(0.2)
            release.set()

            assert dropped.wait(timeout=2.0)
            assert ran == []
        finally:
            release.set()
            pool.shutdown(wait=True, timeout=5.0)

    def test_shutdown_drops_queued_tasks(self):
        pool, release = self._busy_pool()
        ran = []
        dropped = []
        for index in range(3):
            pool.submit(lambda: ran.append(True), on_drop=lambda index=index: dropped.append(index))

        timer = threading.Timer(0.3, release.set)
        timer.start()
        try:
            pool.shutdown(wait=False)
        finally:
            timer.cancel()
            release.set()

        assert sorted(dropped) == [0, 1, 2]
        assert ran == []

    def test_failing_on_drop_is_logged(self, caplog):
        pool, release = self._busy_pool()

        def broken():
            raise OSError("client gone")

        pool.submit(lambda: None, on_drop=broken)
        timer = threading.Timer(0.3, release.set)
        timer.start()
        try:
            pool.shutdown(wait=False)
        finally:
            timer.cancel()
            release.set()

        assert "on_drop callback failed" in caplog.text
