"""
Unit tests for the worker thread pool.
"""

import threading

import pytest

from adminserver.core.thread_pool import ThreadPool


class TestThreadPool:
    def test_runs_submitted_tasks(self):
        pool = ThreadPool(workers=2)
        pool.start()

        done = threading.Event()
        results = []

        def task(value, scale=1):
            results.append(value * scale)
            if len(results) == 3:
                done.set()

        pool.submit(task, args=(1,))
        pool.submit(task, args=(2,), kwargs={"scale": 10})
        pool.submit(task, args=(3,))

        assert done.wait(2.0)
        pool.shutdown(timeout=2.0)

        assert sorted(results) == [1, 3, 20]
        assert pool.stats["tasks"]["completed"] == 3

    def test_worker_survives_failing_task(self):
        pool = ThreadPool(workers=1)
        pool.start()
        done = threading.Event()

        def fail():
            raise ValueError("boom")

        pool.submit(fail)
        pool.submit(done.set)

        assert done.wait(2.0)
        pool.shutdown(timeout=2.0)
        assert pool.stats["tasks"]["failed"] == 1

    def test_submit_before_start(self):
        with pytest.raises(RuntimeError):
            ThreadPool(workers=1).submit(print)

    def test_submit_after_shutdown(self):
        pool = ThreadPool(workers=1)
        pool.start()
        pool.shutdown(timeout=2.0)

        assert pool.is_running is False
        with pytest.raises(RuntimeError):
            pool.submit(print)

    def test_shutdown_from_worker_does_not_deadlock(self):
        pool = ThreadPool(workers=2)
        pool.start()
        finished = threading.Event()

        def stop_pool():
            pool.shutdown(timeout=2.0)
            finished.set()

        pool.submit(stop_pool)

        assert finished.wait(5.0)

    def test_rejects_zero_workers(self):
        with pytest.raises(ValueError):
            ThreadPool(workers=0)
