"""
app/cache/backends.py

Key-value backends behind the query cache.

Backends raise CacheError for any infrastructure failure; the query cache
turns those into misses or logged no-ops.
"""

from __future__ import annotations

import bisect
import fnmatch
import threading
import time
from collections.abc import Callable, Iterator
from typing import Protocol, runtime_checkable

import redis

from app.config import CacheSettings
from app.domain.errors import CacheError


@runtime_checkable
class KeyValueCache(Protocol):
    """
    Minimal key-value contract used by the query cache.
    """

    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        ...

    def delete(self, *keys: str) -> int:
        ...

    def scan(self, pattern: str = "*") -> Iterator[str]:
        ...

    def ttl(self, key: str) -> int | None:
        ...


@runtime_checkable
class PrefixDeletingCache(Protocol):
    """
    Optional capability: delete every key under a prefix in one call.
    """

    def delete_prefix(self, prefix: str) -> int:
        ...


class RedisKeyValueCache:
    """
    Redis-backed cache with short socket timeouts.
    """

    _DELETE_BATCH = 500

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_settings(cls, settings: CacheSettings) -> RedisKeyValueCache:
        client = redis.Redis.from_url(
            settings.redis_url,
            socket_timeout=settings.timeout_seconds,
            socket_connect_timeout=settings.timeout_seconds,
            decode_responses=True,
        )
        return cls(client)

    def get(self, key: str) -> str | None:
        try:
            return self._client.get(key)
        except redis.RedisError as exc:
            raise CacheError(f"redis GET failed: {exc}") from exc

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            self._client.set(key, value, ex=max(1, int(ttl_seconds)))
        except redis.RedisError as exc:
            raise CacheError(f"redis SET failed: {exc}") from exc

    def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            return int(self._client.unlink(*keys))
        except redis.RedisError as exc:
            raise CacheError(f"redis UNLINK failed: {exc}") from exc

    def scan(self, pattern: str = "*") -> Iterator[str]:
        try:
            yield from self._client.scan_iter(match=pattern, count=self._DELETE_BATCH)
        except redis.RedisError as exc:
            raise CacheError(f"redis SCAN failed: {exc}") from exc

    def ttl(self, key: str) -> int | None:
        try:
            remaining = int(self._client.ttl(key))
        except redis.RedisError as exc:
            raise CacheError(f"redis TTL failed: {exc}") from exc
        return remaining if remaining >= 0 else None

    def delete_prefix(self, prefix: str) -> int:
        """
        Delete keys matched server-side by `prefix*`, unlinking in batches.
        """

        pattern = f"{_escape_glob(prefix)}*"
        deleted = 0
        batch: list[str] = []
        try:
            for key in self._client.scan_iter(match=pattern, count=self._DELETE_BATCH):
                batch.append(key)
                if len(batch) >= self._DELETE_BATCH:
                    deleted += int(self._client.unlink(*batch))
                    batch.clear()
            if batch:
                deleted += int(self._client.unlink(*batch))
        except redis.RedisError as exc:
            raise CacheError(f"redis prefix delete failed: {exc}") from exc
        return deleted


class InMemoryKeyValueCache:
    """
    Process-local backend with TTL expiry and a sorted key index.

    The sorted index makes prefix deletion a range operation. Used for
    development without Redis and in tests.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._values: dict[str, tuple[str, float]] = {}
        self._sorted_keys: list[str] = []
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._live_entry(key)
            return entry[0] if entry is not None else None

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            if key not in self._values:
                bisect.insort(self._sorted_keys, key)
            self._values[key] = (value, self._clock() + max(1, int(ttl_seconds)))

    def delete(self, *keys: str) -> int:
        with self._lock:
            return sum(1 for key in keys if self._remove(key))

    def scan(self, pattern: str = "*") -> Iterator[str]:
        with self._lock:
            keys = [key for key in self._sorted_keys if self._live_entry(key) is not None]
        return iter([key for key in keys if fnmatch.fnmatchcase(key, pattern)])

    def ttl(self, key: str) -> int | None:
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                return None
            return max(0, int(entry[1] - self._clock()))

    def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            start = bisect.bisect_left(self._sorted_keys, prefix)
            end = start
            while end < len(self._sorted_keys) and self._sorted_keys[end].startswith(prefix):
                end += 1
            doomed = self._sorted_keys[start:end]
            del self._sorted_keys[start:end]
            for key in doomed:
                self._values.pop(key, None)
            return len(doomed)

    def _live_entry(self, key: str) -> tuple[str, float] | None:
        entry = self._values.get(key)
        if entry is None:
            return None
        if entry[1] <= self._clock():
            self._remove(key)
            return None
        return entry

    def _remove(self, key: str) -> bool:
        if self._values.pop(key, None) is None:
            return False
        position = bisect.bisect_left(self._sorted_keys, key)
        if position < len(self._sorted_keys) and self._sorted_keys[position] == key:
            del self._sorted_keys[position]
        return True


def _escape_glob(value: str) -> str:
    return "".join(f"\\{char}" if char in "*?[]\\" else char for char in value)


def build_backend(settings: CacheSettings) -> KeyValueCache:
    if settings.backend == "memory":
        return InMemoryKeyValueCache()
    return RedisKeyValueCache.from_settings(settings)
