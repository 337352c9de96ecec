"""Counter store abstraction for rate limiting and brute force tracking.

Provides a pluggable key-value backend with atomic increment primitives,
implemented in-memory (single process, tests) and on Redis (shared across
instances). The store is the only owner of counter state; callers never
read-modify-write a counter themselves.
"""

import asyncio
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

import redis
import redis.asyncio as aioredis

from shield.app.core.config import settings
from shield.app.core.logging import get_logger

logger = get_logger(__name__)

# TTL sentinels, as returned by Redis TTL
TTL_NO_EXPIRY = -1
TTL_MISSING = -2

STORE_ERRORS = (redis.RedisError, ConnectionError, OSError)


class CounterStore(ABC):
    """Abstract base class for counter stores.

    Increment operations must be atomic: concurrent callers incrementing the
    same key observe distinct, serialized values.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the raw stored value, or None if the key is absent."""

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        """Store a raw value, with an expiry when ttl_seconds is given."""

    @abstractmethod
    async def incr_with_expiry(self, key: str, ttl_seconds: int) -> int:
        """Increment and set the expiry as one atomic unit.

        Returns:
            The counter value after the increment.
        """

    @abstractmethod
    async def incr_with_ttl(self, key: str, ttl_seconds: int) -> tuple[int, int, bool]:
        """Increment and read the remaining TTL as one atomic unit.

        A key left without an expiry gets ttl_seconds inside the same unit.

        Returns:
            (value after increment, TTL in seconds, whether the expiry was added)
        """

    @abstractmethod
    async def expire(self, key: str, ttl_seconds: int) -> None:
        """Set the expiry of an existing key."""

    @abstractmethod
    async def ttl(self, key: str) -> int:
        """Remaining TTL in seconds, TTL_NO_EXPIRY or TTL_MISSING."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a key."""

    @abstractmethod
    async def scan_keys(self, prefix: str) -> list[str]:
        """List keys starting with prefix."""

    async def ping(self) -> bool:
        """Check the store is reachable."""
        return True

    async def close(self) -> None:
        """Release connections held by the store."""


@dataclass
class _CounterEntry:
    """Internal entry with TTL tracking."""

    value: str
    expires_at: Optional[float] = None

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class InMemoryCounterStore(CounterStore):
    """In-memory counter store with TTL support.

    Suitable for single-instance deployments and tests. The clock is
    injectable so expiry can be driven deterministically.

    Note: counts are not shared between processes and are lost on restart.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._data: dict[str, _CounterEntry] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    def _live_entry(self, key: str) -> Optional[_CounterEntry]:
        entry = self._data.get(key)
        if entry is not None and entry.is_expired(self._clock()):
            del self._data[key]
            return None
        return entry

    def _ttl_of(self, entry: Optional[_CounterEntry]) -> int:
        if entry is None:
            return TTL_MISSING
        if entry.expires_at is None:
            return TTL_NO_EXPIRY
        return max(0, math.ceil(entry.expires_at - self._clock()))

    def _incr(self, key: str) -> _CounterEntry:
        entry = self._live_entry(key)
        if entry is None:
            entry = _CounterEntry(value="0")
            self._data[key] = entry
        try:
            entry.value = str(int(entry.value) + 1)
        except ValueError:
            raise ValueError(f"value at {key!r} is not an integer") from None
        return entry

    async def get(self, key: str) -> Optional[str]:
        async with self._lock:
            entry = self._live_entry(key)
            return entry.value if entry is not None else None

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        async with self._lock:
            expires_at = self._clock() + ttl_seconds if ttl_seconds else None
            self._data[key] = _CounterEntry(value=str(value), expires_at=expires_at)

    async def incr_with_expiry(self, key: str, ttl_seconds: int) -> int:
        async with self._lock:
            entry = self._incr(key)
            entry.expires_at = self._clock() + ttl_seconds
            return int(entry.value)

    async def incr_with_ttl(self, key: str, ttl_seconds: int) -> tuple[int, int, bool]:
        async with self._lock:
            entry = self._incr(key)
            repaired = entry.expires_at is None
            if repaired:
                entry.expires_at = self._clock() + ttl_seconds
            return int(entry.value), self._ttl_of(entry), repaired

    async def expire(self, key: str, ttl_seconds: int) -> None:
        async with self._lock:
            entry = self._live_entry(key)
            if entry is not None:
                entry.expires_at = self._clock() + ttl_seconds

    async def ttl(self, key: str) -> int:
        async with self._lock:
            return self._ttl_of(self._live_entry(key))

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._data.pop(key, None)

    async def scan_keys(self, prefix: str) -> list[str]:
        async with self._lock:
            return [key for key in list(self._data) if key.startswith(prefix) and self._live_entry(key)]

    async def clear(self) -> None:
        async with self._lock:
            self._data.clear()


class RedisCounterStore(CounterStore):
    """Redis-based counter store.

    Multi-step updates go through MULTI/EXEC pipelines so an increment can
    never land without its companion command.

    Example:
        >>> store = RedisCounterStore("redis://localhost:6379/0")
        >>> await store.incr_with_expiry("rate_limit:203.0.113.1:/api/jobs", 60)
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        redis_client: Optional[aioredis.Redis] = None,
        socket_timeout: Optional[float] = None,
    ) -> None:
        self._redis_url = redis_url or settings.redis_url
        self._redis = redis_client
        self._socket_timeout = socket_timeout or settings.store_timeout_seconds

    def _get_client(self) -> aioredis.Redis:
        if self._redis is None:
            self._redis = aioredis.from_url(
                self._redis_url,
                decode_responses=True,
                socket_timeout=self._socket_timeout,
                socket_connect_timeout=self._socket_timeout,
            )
        return self._redis

    async def get(self, key: str) -> Optional[str]:
        value = await self._get_client().get(key)
        if isinstance(value, bytes):
            return value.decode("utf-8", errors="replace")
        return value

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        await self._get_client().set(key, value, ex=ttl_seconds)

    async def incr_with_expiry(self, key: str, ttl_seconds: int) -> int:
        async with self._get_client().pipeline(transaction=True) as pipe:
            pipe.incr(key)
            pipe.expire(key, ttl_seconds)
            count, _ = await pipe.execute()
        return int(count)

    async def incr_with_ttl(self, key: str, ttl_seconds: int) -> tuple[int, int, bool]:
        # EXPIRE NX (Redis 7+) only applies to a key that has no expiry
        async with self._get_client().pipeline(transaction=True) as pipe:
            pipe.incr(key)
            pipe.expire(key, ttl_seconds, nx=True)
            pipe.ttl(key)
            count, repaired, ttl = await pipe.execute()
        return int(count), int(ttl), bool(repaired)

    async def expire(self, key: str, ttl_seconds: int) -> None:
        await self._get_client().expire(key, ttl_seconds)

    async def ttl(self, key: str) -> int:
        return int(await self._get_client().ttl(key))

    async def delete(self, key: str) -> None:
        await self._get_client().delete(key)

    async def scan_keys(self, prefix: str) -> list[str]:
        keys = []
        async for key in self._get_client().scan_iter(match=f"{prefix}*", count=500):
            keys.append(key.decode() if isinstance(key, bytes) else key)
        return keys

    async def ping(self) -> bool:
        return bool(await self._get_client().ping())

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


@dataclass
class CounterSnapshot:
    """Outcome of one counting round trip against the store.

    Store failures are represented here instead of being raised, so the
    degraded path is an ordinary branch for callers.

    Attributes:
        available: False when the store failed or timed out
        count: Counter value after this request's increment
        ttl_seconds: Remaining window in seconds, None if the key had no expiry
        error: Failure reason when unavailable
        anomaly: Recovered inconsistency ("missing_ttl", "malformed_count")
    """
    available: bool
    count: int = 0
    ttl_seconds: Optional[int] = None
    error: Optional[str] = None
    anomaly: Optional[str] = None

    @classmethod
    def unavailable(cls, error: str) -> "CounterSnapshot":
        return cls(available=False, error=error)


def parse_count(raw: object) -> Optional[int]:
    """Parse a stored counter value, returning None when it is malformed."""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return None
    return value if value >= 0 else None


async def _count(store: CounterStore, key: str, window_seconds: int) -> CounterSnapshot:
    raw = await store.get(key)
    if raw is None:
        count = await store.incr_with_expiry(key, window_seconds)
        return CounterSnapshot(available=True, count=count, ttl_seconds=window_seconds)

    if parse_count(raw) is None:
        # Treated as zero: restart the window with this request counted.
        logger.warning(
            "Malformed counter value, resetting window",
            extra={"key": key, "raw_value": str(raw)[:64]},
        )
        await store.set(key, "1", window_seconds)
        return CounterSnapshot(
            available=True, count=1, ttl_seconds=window_seconds, anomaly="malformed_count"
        )

    count, ttl, repaired = await store.incr_with_ttl(key, window_seconds)
    if repaired:
        # Either the key never had an expiry or it expired between GET and
        # INCR and was recreated without one. The store already restored it.
        logger.warning(
            "Counter had no expiry, restored window TTL",
            extra={"key": key},
        )
        return CounterSnapshot(available=True, count=count, ttl_seconds=None, anomaly="missing_ttl")

    return CounterSnapshot(available=True, count=count, ttl_seconds=ttl if ttl > 0 else None)


async def read_and_count(
    store: CounterStore,
    key: str,
    window_seconds: int,
    timeout: Optional[float] = None,
) -> CounterSnapshot:
    """Count one request against key, bounded by timeout.

    Every call increments the counter exactly once. A fresh key is created
    together with its expiry; an existing key is incremented together with a
    TTL read and, when it has none, its expiry.

    Args:
        store: Counter store
        key: Counter key
        window_seconds: Window length used as TTL for new keys
        timeout: Upper bound for the whole exchange (defaults to settings)

    Returns:
        CounterSnapshot; unavailable on any store error or timeout
    """
    timeout = settings.store_timeout_seconds if timeout is None else timeout
    try:
        return await asyncio.wait_for(_count(store, key, window_seconds), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Counter store timed out after {timeout}s", extra={"key": key})
        return CounterSnapshot.unavailable("timeout")
    except STORE_ERRORS as e:
        logger.error(f"Counter store error: {e}", extra={"key": key})
        return CounterSnapshot.unavailable("store_error")
    except Exception as e:
        logger.exception(f"Unexpected counter store error: {e}", extra={"key": key})
        return CounterSnapshot.unavailable("unexpected")


# Global store instance (singleton pattern)
_store_instance: Optional[CounterStore] = None


def get_counter_store(
    backend: Optional[str] = None,
    redis_url: Optional[str] = None,
    force_new: bool = False,
) -> CounterStore:
    """Get or create the global counter store.

    Args:
        backend: 'memory', 'redis', or None to follow settings.redis_enabled
        redis_url: Redis connection URL, defaults to settings.redis_url
        force_new: Create a new instance even if one exists

    Returns:
        A CounterStore instance
    """
    global _store_instance

    if _store_instance is not None and not force_new:
        return _store_instance

    use_redis = settings.redis_enabled if backend is None else backend == "redis"
    if use_redis:
        _store_instance = RedisCounterStore(redis_url or settings.redis_url)
        logger.info("Using Redis counter store")
    else:
        _store_instance = InMemoryCounterStore()
        logger.debug("Using in-memory counter store")
    return _store_instance


def reset_counter_store() -> None:
    """Reset the global store instance (for testing)."""
    global _store_instance
    _store_instance = None
