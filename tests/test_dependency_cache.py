"""Tests for the shared dependency cache."""

import threading
import time

import pytest

from src.cache import InMemoryDependencyCache


@pytest.fixture
def cache():
    return InMemoryDependencyCache()


class TestInMemoryDependencyCache:
    def test_missing_key_returns_none(self, cache):
        assert cache.get("image:alpine") is None

    def test_get_or_create_stores_value(self, cache):
        assert cache.get_or_create("image:alpine", lambda: "sha256:abc") == "sha256:abc"
        assert cache.get("image:alpine") == "sha256:abc"
        assert cache.keys() == {"image:alpine"}

    def test_existing_value_is_never_replaced(self, cache):
        cache.get_or_create("k", lambda: "first")
        assert cache.get_or_create("k", lambda: "second") == "first"
        assert cache.get("k") == "first"

    def test_failed_factory_leaves_key_unset(self, cache):
        def failing():
            raise RuntimeError("pull failed")

        with pytest.raises(RuntimeError):
            cache.get_or_create("k", failing)

        assert cache.get("k") is None
        assert cache.get_or_create("k", lambda: "retry") == "retry"

    def test_concurrent_writers_run_factory_once(self, cache):
        calls = []
        barrier = threading.Barrier(8)
        results = []

        def factory():
            calls.append(1)
            time.sleep(0.05)
            return "value"

        def worker():
            barrier.wait()
            results.append(cache.get_or_create("shared", factory))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(calls) == 1
        assert results == ["value"] * 8

    def test_slow_key_does_not_block_other_keys(self, cache):
        release = threading.Event()
        started = threading.Event()

        def slow():
            started.set()
            release.wait(timeout=5)
            return "slow"

        thread = threading.Thread(target=cache.get_or_create, args=("slow", slow))
        thread.start()
        started.wait(timeout=5)
        try:
            assert cache.get_or_create("fast", lambda: "fast") == "fast"
        finally:
            release.set()
            thread.join()
        assert cache.get("slow") == "slow"

    def test_clear(self, cache):
        cache.get_or_create("k", lambda: "v")
        cache.clear()
        assert cache.keys() == set()
