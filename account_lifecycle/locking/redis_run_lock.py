"""Redis-backed run lock shared by every service replica."""

from __future__ import annotations

import secrets
from contextlib import contextmanager
from typing import Final, Iterator

from redis import Redis
from redis.exceptions import ResponseError

from .run_lock import RunInProgressError


class RedisRunLock:
    """Distributed lock implemented with ``SET NX PX`` and a token-checked release."""

    _RELEASE_SCRIPT: Final[str] = """
    if redis.call('GET', KEYS[1]) == ARGV[1] then
        return redis.call('DEL', KEYS[1])
    end
    return 0
    """

    def __init__(
        self,
        client: Redis,
        *,
        ttl_seconds: int,
        name: str = "inactive-cleanup",
        key_prefix: str = "lock"
    ) -> None:
        """Initialise the Redis client, lock key, expiry and Lua script cache."""
        self._client = client
        self._name = name
        self._key = f"{key_prefix}:{name}"
        self._ttl_ms = ttl_seconds * 1000
        self._script = client.register_script(self._RELEASE_SCRIPT)

    @contextmanager
    def hold(self) -> Iterator[None]:
        """Hold the lock for the block; the TTL frees it if this process dies mid-run."""
        token = secrets.token_hex(16)
        if not self._client.set(self._key, token, nx=True, px=self._ttl_ms):
            raise RunInProgressError(f"{self._name} run already in progress")
        try:
            yield
        finally:
            self._release(token)

    def _release(self, token: str) -> None:
        try:
            self._script(keys=[self._key], args=[token])
        except ResponseError as exc:
            if "unknown command" in str(exc).lower():
                self._release_fallback(token)
                return
            raise

    def _release_fallback(self, token: str) -> None:
        """Fallback pure-Python release used when Lua is unavailable."""
        current = self._client.get(self._key)
        if isinstance(current, bytes):
            current = current.decode("utf-8")
        if current == token:
            self._client.delete(self._key)
