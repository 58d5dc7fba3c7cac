"""Fixed-window rate limiting per client address, backed by a shared counter store.

The counter is read and then written back, which is not atomic: two
concurrent requests from the same address can both read the same value.
Each invocation is its own process, so this approximation is accepted.

While a client is over the threshold every request re-arms the expiry
without incrementing. A client that keeps hammering stays blocked until it
has been quiet for a full window.
"""

from __future__ import annotations

from typing import Protocol

import redis.asyncio as aioredis
from loguru import logger
from redis.exceptions import RedisError

from p2irc.core.constants import RATE_LIMIT_KEY_PREFIX, RATE_LIMIT_WINDOW_SECONDS
from p2irc.core.errors import RateLimitExceeded, RateStoreError


class CounterStore(Protocol):
    """Key-value store with get and set-with-expiry."""

    async def get(self, key: str) -> int | None:
        """Return the counter, None if absent. Raise RateStoreError on failure."""
        ...

    async def set(self, key: str, value: int, ttl: int) -> None:
        """Store the counter with an expiry in seconds. Raise RateStoreError on failure."""
        ...


class RedisCounterStore:
    """CounterStore on Redis GET / SET EX."""

    def __init__(self, client: aioredis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> RedisCounterStore:
        return cls(aioredis.Redis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> int | None:
        try:
            value = await self._client.get(key)
        except RedisError as exc:
            raise RateStoreError(code="store_read_failed", original_error=exc) from exc
        if value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise RateStoreError(
                code="store_bad_value",
                details={"key": key, "value": value},
                original_error=exc,
            ) from exc

    async def set(self, key: str, value: int, ttl: int) -> None:
        try:
            await self._client.set(key, value, ex=ttl)
        except RedisError as exc:
            raise RateStoreError(code="store_write_failed", original_error=exc) from exc

    async def close(self) -> None:
        await self._client.aclose()


class RateLimiter:
    """Allow at most max_per_minute requests per key within a renewable one-minute window."""

    def __init__(
        self,
        store: CounterStore | None,
        max_per_minute: int,
        *,
        key_prefix: str = RATE_LIMIT_KEY_PREFIX,
        window: int = RATE_LIMIT_WINDOW_SECONDS,
    ) -> None:
        if max_per_minute and store is None:
            raise ValueError("a counter store is required when rate limiting is enabled")
        self._store = store
        self._max = max_per_minute
        self._prefix = key_prefix
        self._window = window

    @property
    def enabled(self) -> bool:
        return self._max > 0

    def key_for(self, remote_addr: str) -> str:
        return self._prefix + remote_addr

    async def check(self, remote_addr: str) -> None:
        """Count one request for remote_addr.

        Raises RateLimitExceeded when over the threshold and RateStoreError
        when the store cannot be read or written; both deny delivery.
        """
        if not self.enabled or self._store is None:
            return
        key = self.key_for(remote_addr)
        count = await self._store.get(key)
        if count is None:
            await self._store.set(key, 1, self._window)
            return
        if count >= self._max:
            await self._store.set(key, count, self._window)
            logger.info("Rate limit hit for {} ({} >= {})", remote_addr, count, self._max)
            raise RateLimitExceeded(code="rate_limited", details={"key": key, "count": count})
        await self._store.set(key, count + 1, self._window)
