"""Tests for the bounded background task pool."""

import logging
import threading

import pytest

from songhub.services.search.background import BackgroundTaskPool


@pytest.fixture
def pool():
    pool = BackgroundTaskPool(max_workers=1, max_pending=2, name="test-bg")
    yield pool
    pool.shutdown(wait=True)


class TestBackgroundTaskPool:
    def test_runs_tasks(self, pool):
        done = []
        assert pool.submit(done.append, 1) is True
        assert pool.submit(done.append, 2) is True
        assert pool.wait_idle(timeout=5)
        assert sorted(done) == [1, 2]
        assert pool.pending == 0

    def test_drops_when_full(self, pool, caplog):
        gate = threading.Event()
        assert pool.submit(gate.wait, 5)
        assert pool.submit(gate.wait, 5)

        with caplog.at_level(logging.WARNING):
            assert pool.submit(gate.wait, 5, name="third") is False
        assert "dropping third" in caplog.text

        gate.set()
        assert pool.wait_idle(timeout=5)
        # Capacity is released once tasks finish
        assert pool.submit(lambda: None) is True

    def test_failures_are_logged_not_raised(self, pool, caplog):
        def boom():
            raise RuntimeError("kaboom")

        with caplog.at_level(logging.ERROR):
            assert pool.submit(boom, name="boom")
            assert pool.wait_idle(timeout=5)
        assert "Background task boom failed" in caplog.text
        assert pool.pending == 0

    def test_kwargs_passed_through(self, pool):
        seen = {}

        def record(key, value=None):
            seen[key] = value

        pool.submit(record, "a", value=3)
        pool.wait_idle(timeout=5)
        assert seen == {"a": 3}

    def test_closed_pool_rejects(self):
        pool = BackgroundTaskPool(max_workers=1)
        pool.shutdown()
        assert pool.submit(lambda: None) is False
        assert pool.pending == 0

    def test_wait_idle_times_out(self, pool):
        gate = threading.Event()
        pool.submit(gate.wait, 5)
        try:
            assert pool.wait_idle(timeout=0.01) is False
        finally:
            gate.set()
        assert pool.wait_idle(timeout=5) is True
