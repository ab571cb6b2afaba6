"""Tests for the in-memory and Redis-backed run locks."""

from __future__ import annotations

import fakeredis
import pytest

from account_lifecycle.config import Settings
from account_lifecycle.locking.redis_run_lock import RedisRunLock
from account_lifecycle.locking.run_lock import InMemoryRunLock, RunInProgressError, build_run_lock


@pytest.fixture()
def redis_client() -> fakeredis.FakeStrictRedis:
    client = fakeredis.FakeStrictRedis()
    client.flushall()
    return client


def test_in_memory_lock_rejects_second_holder():
    lock = InMemoryRunLock()
    with lock.hold():
        with pytest.raises(RunInProgressError):
            with lock.hold():
                pass
    with lock.hold():
        pass


def test_in_memory_lock_is_released_on_error():
    lock = InMemoryRunLock()
    with pytest.raises(ZeroDivisionError):
        with lock.hold():
            1 / 0
    with lock.hold():
        pass


def test_redis_lock_rejects_concurrent_holder(redis_client):
    first = RedisRunLock(redis_client, ttl_seconds=60, key_prefix="test")
    second = RedisRunLock(redis_client, ttl_seconds=60, key_prefix="test")

    with first.hold():
        assert redis_client.exists("test:inactive-cleanup")
        with pytest.raises(RunInProgressError):
            with second.hold():
                pass

    assert not redis_client.exists("test:inactive-cleanup")
    with second.hold():
        pass


def test_redis_lock_does_not_release_foreign_token(redis_client):
    lock = RedisRunLock(redis_client, ttl_seconds=60, key_prefix="test")

    with lock.hold():
        # Simulate expiry followed by another replica taking over.
        redis_client.set("test:inactive-cleanup", "someone-else")

    assert redis_client.get("test:inactive-cleanup") == b"someone-else"


def test_redis_lock_sets_expiry(redis_client):
    lock = RedisRunLock(redis_client, ttl_seconds=30, key_prefix="test")
    with lock.hold():
        ttl_ms = redis_client.pttl("test:inactive-cleanup")
        assert 0 < ttl_ms <= 30_000


def test_memory_backend_is_default():
    assert isinstance(build_run_lock(Settings(run_lock_backend="memory")), InMemoryRunLock)
