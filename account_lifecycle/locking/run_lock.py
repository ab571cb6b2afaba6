"""Single-writer locks serialising lifecycle runs."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from threading import Lock
from typing import ContextManager, Iterator, Protocol

from ..config import Settings

logger = logging.getLogger(__name__)


class RunInProgressError(RuntimeError):
    """Raised when another lifecycle run already holds the lock."""


class RunLock(Protocol):
    def hold(self) -> ContextManager[None]: ...


class InMemoryRunLock:
    """Process-local, non-blocking run lock."""

    def __init__(self, name: str = "inactive-cleanup") -> None:
        self._name = name
        self._lock = Lock()

    @contextmanager
    def hold(self) -> Iterator[None]:
        """Hold the lock for the duration of the block or raise ``RunInProgressError``."""
        if not self._lock.acquire(blocking=False):
            raise RunInProgressError(f"{self._name} run already in progress")
        try:
            yield
        finally:
            self._lock.release()


def build_run_lock(settings: Settings) -> RunLock:
    """Instantiate the configured run lock backend, preferring Redis when available."""
    if settings.run_lock_backend == "redis" and settings.redis_url:
        try:
            import redis

            from .redis_run_lock import RedisRunLock

            client = redis.from_url(settings.redis_url)
            # ensure connectivity early to fail fast and fall back
            client.ping()
            logger.info("run lock configured for redis backend at %s", settings.redis_url)
            return RedisRunLock(client, ttl_seconds=settings.run_lock_ttl_seconds)
        except Exception as exc:  # pragma: no cover - depends on a live redis
            logger.warning("redis run lock unavailable, falling back to in-memory: %s", exc)

    logger.info("run lock using in-memory backend")
    return InMemoryRunLock()
