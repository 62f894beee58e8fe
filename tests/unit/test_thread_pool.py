"""
Unit tests for the worker pool.
"""

import threading
import time

import pytest

from minihttp.core.thread_pool import Task, ThreadPool


def noop():
    pass


@pytest.fixture
def pool():
    pool = ThreadPool(max_workers=2, queue_size=4, poll_interval=0.02, force_join_timeout=1.0)
    pool.start()
    yield pool
    pool.shutdown(grace_period=0.5)


class TestThreadPool:
    """Tests for ThreadPool class."""

    def test_runs_tasks(self, pool: ThreadPool):
        """Test that submitted tasks run with their arguments."""
        results = []
        done = threading.Event()

        def work(value, scale=1):
            results.append(value * scale)
            if len(results) == 3:
                done.set()

        for value in (1, 2, 3):
            assert pool.submit(work, args=(value,), kwargs={"scale": 10})

        assert done.wait(2.0)
        assert sorted(results) == [10, 20, 30]

    def test_workers_started(self, pool: ThreadPool):
        """Test that all workers exist after start()."""
        assert pool.stats["workers"]["total"] == 2
        assert pool.active_workers == 2

    def test_submit_before_start(self):
        """Test that an unstarted pool refuses work."""
        with pytest.raises(RuntimeError):
            ThreadPool(max_workers=1).submit(noop)

    def test_submit_after_shutdown(self, pool: ThreadPool):
        """Test that a stopped pool refuses work."""
        pool.shutdown(grace_period=0.5)

        with pytest.raises(RuntimeError):
            pool.submit(noop)

    def test_failing_task_does_not_kill_worker(self):
        """Test that an exception is contained and counted."""
        pool = ThreadPool(max_workers=1, queue_size=4, poll_interval=0.02)
        pool.start()
        done = threading.Event()

        def boom():
            raise ValueError("boom")

        pool.submit(boom)
        pool.submit(done.set)

        assert done.wait(2.0)
        time.sleep(0.05)
        assert pool.stats["tasks"]["failed"] == 1
        assert pool.active_workers == 1
        assert pool.shutdown(grace_period=1.0) is True

    def test_graceful_shutdown_waits(self):
        """Test that in-flight and queued work finishes within the grace period."""
        pool = ThreadPool(max_workers=1, queue_size=4, poll_interval=0.02)
        pool.start()
        finished = []

        def slow(n):
            time.sleep(0.1)
            finished.append(n)

        pool.submit(slow, args=(1,))
        pool.submit(slow, args=(2,))

        assert pool.shutdown(grace_period=2.0) is True
        assert finished == [1, 2]

    def test_forced_shutdown_cancels_running_task(self):
        """Test that a task outliving the grace period gets its cancel hook."""
        pool = ThreadPool(max_workers=1, queue_size=4, poll_interval=0.02)
        pool.start()
        started = threading.Event()
        release = threading.Event()

        def stuck():
            started.set()
            release.wait(5.0)

        pool.submit(stuck, on_cancel=release.set)
        assert started.wait(2.0)

        begin = time.monotonic()
        assert pool.shutdown(grace_period=0.2) is False
        assert release.is_set()
        assert time.monotonic() - begin < 3.0

    def test_forced_shutdown_drops_queued_tasks(self):
        """Test that queued tasks are cancelled, not run, after the grace period."""
        pool = ThreadPool(max_workers=1, queue_size=4, poll_interval=0.02)
        pool.start()
        started = threading.Event()
        release = threading.Event()
        ran = []
        cancelled = []

        def stuck():
            started.set()
            release.wait(5.0)

        pool.submit(stuck, on_cancel=release.set)
        assert started.wait(2.0)
        pool.submit(ran.append, args=("queued",), on_cancel=lambda: cancelled.append("queued"))

        assert pool.shutdown(grace_period=0.2) is False
        assert cancelled == ["queued"]
        assert ran == []

    def test_shutdown_from_inside_a_task(self):
        """Test that a task may shut down the pool it runs on."""
        pool = ThreadPool(max_workers=2, queue_size=4, poll_interval=0.02)
        pool.start()
        result = []
        done = threading.Event()

        def stop_pool():
            result.append(pool.shutdown(grace_period=1.0))
            done.set()

        pool.submit(stop_pool)

        assert done.wait(5.0)
        assert result == [True]

    def test_shutdown_idempotent(self, pool: ThreadPool):
        """Test that shutting down twice is harmless."""
        assert pool.shutdown(grace_period=0.5) is True
        assert pool.shutdown(grace_period=0.5) is True


class TestBackpressure:
    """Tests for the bounded queue."""

    def _saturate(self):
        pool = ThreadPool(max_workers=1, queue_size=1, poll_interval=0.02)
        pool.start()
        started = threading.Event()
        release = threading.Event()

        def stuck():
            started.set()
            release.wait(5.0)

        pool.submit(stuck, on_cancel=release.set)
        assert started.wait(2.0)
        assert pool.submit(noop, block=False)  # fills the only queue slot
        return pool, release

    def test_non_blocking_submit_refused(self):
        """Test that a full queue refuses a non-blocking submit."""
        pool, release = self._saturate()
        try:
            assert pool.submit(noop, block=False) is False
            assert pool.queued_tasks == 1
        finally:
            release.set()
            pool.shutdown(grace_period=1.0)

    def test_blocking_submit_times_out(self):
        """Test that a blocking submit gives up after its timeout."""
        pool, release = self._saturate()
        try:
            begin = time.monotonic()
            assert pool.submit(noop, timeout=0.1) is False
            assert time.monotonic() - begin >= 0.09
        finally:
            release.set()
            pool.shutdown(grace_period=1.0)

    def test_blocking_submit_released_by_shutdown(self):
        """Test that shutdown wakes a submitter waiting for queue space."""
        pool, release = self._saturate()
        result = []
        submitter = threading.Thread(target=lambda: result.append(pool.submit(noop)))
        submitter.start()
        time.sleep(0.1)

        pool.shutdown(grace_period=0.2)
        submitter.join(2.0)

        assert not submitter.is_alive()
        assert result == [False]
        assert release.is_set()


class TestTask:
    """Tests for Task class."""

    def test_cancel_without_hook(self):
        Task(func=noop).cancel()

    def test_cancel_hook_error_is_contained(self):
        """Test that a failing cancel hook doesn't raise."""
        def bad_hook():
            raise OSError("already closed")

        Task(func=noop, on_cancel=bad_hook).cancel()
