"""Test the fixed-window rate limiter and the Redis counter store."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from p2irc.core.errors import RateLimitExceeded, RateStoreError
from p2irc.gateway.rate_limit import RateLimiter, RedisCounterStore
from tests.mocks import FakeCounterStore

ADDR = "203.0.113.7"


class TestRateLimiter:
    @pytest.mark.asyncio
    async def test_disabled_never_touches_store(self):
        # Arrange
        store = MagicMock()
        limiter = RateLimiter(store, 0)

        # Act
        for _ in range(10):
            await limiter.check(ADDR)

        # Assert
        store.get.assert_not_called()
        store.set.assert_not_called()
        assert limiter.enabled is False

    @pytest.mark.asyncio
    async def test_disabled_without_store(self):
        await RateLimiter(None, 0).check(ADDR)

    def test_enabled_requires_store(self):
        with pytest.raises(ValueError):
            RateLimiter(None, 2)

    @pytest.mark.asyncio
    async def test_first_request_sets_counter_with_one_minute_expiry(self):
        # Arrange
        store = FakeCounterStore()
        limiter = RateLimiter(store, 2)

        # Act
        await limiter.check(ADDR)

        # Assert
        assert store.writes == [(f"sendirc_{ADDR}", 1, 60)]

    @pytest.mark.asyncio
    async def test_key_uses_prefix(self):
        store = FakeCounterStore()
        limiter = RateLimiter(store, 2, key_prefix="custom:")
        await limiter.check(ADDR)
        assert store.writes[0][0] == f"custom:{ADDR}"
        assert limiter.key_for(ADDR) == f"custom:{ADDR}"

    @pytest.mark.asyncio
    async def test_request_after_threshold_is_denied(self):
        # Arrange
        store = FakeCounterStore()
        limiter = RateLimiter(store, 3)

        # Act
        for _ in range(3):
            await limiter.check(ADDR)

        # Assert
        with pytest.raises(RateLimitExceeded):
            await limiter.check(ADDR)

    @pytest.mark.asyncio
    async def test_keys_are_independent(self):
        store = FakeCounterStore()
        limiter = RateLimiter(store, 1)
        await limiter.check("198.51.100.1")
        await limiter.check("198.51.100.2")
        with pytest.raises(RateLimitExceeded):
            await limiter.check("198.51.100.1")

    @pytest.mark.asyncio
    async def test_permitted_again_after_quiet_window(self):
        # Arrange
        store = FakeCounterStore()
        limiter = RateLimiter(store, 2)
        await limiter.check(ADDR)
        await limiter.check(ADDR)

        # Act
        store.advance(60)

        # Assert
        await limiter.check(ADDR)

    @pytest.mark.asyncio
    async def test_denied_request_refreshes_expiry_without_incrementing(self):
        # Arrange
        store = FakeCounterStore()
        limiter = RateLimiter(store, 2)
        await limiter.check(ADDR)
        await limiter.check(ADDR)
        store.advance(30)

        # Act
        with pytest.raises(RateLimitExceeded):
            await limiter.check(ADDR)

        # Assert
        key = limiter.key_for(ADDR)
        assert store.writes[-1] == (key, 2, 60)
        assert store.expires_at(key) == 90

    @pytest.mark.asyncio
    async def test_sustained_requests_keep_window_hot(self):
        # Arrange
        store = FakeCounterStore()
        limiter = RateLimiter(store, 1)
        await limiter.check(ADDR)

        # Act / Assert: 70s after the first request, but never 60s quiet
        for _ in range(2):
            store.advance(35)
            with pytest.raises(RateLimitExceeded):
                await limiter.check(ADDR)

    @pytest.mark.asyncio
    async def test_under_threshold_touch_resets_window(self):
        store = FakeCounterStore()
        limiter = RateLimiter(store, 3)
        await limiter.check(ADDR)
        store.advance(50)
        await limiter.check(ADDR)
        assert store.expires_at(limiter.key_for(ADDR)) == 110

    @pytest.mark.asyncio
    async def test_store_read_failure_denies(self):
        store = FakeCounterStore()
        store.fail_reads = True
        with pytest.raises(RateStoreError):
            await RateLimiter(store, 2).check(ADDR)

    @pytest.mark.asyncio
    async def test_store_write_failure_denies(self):
        store = FakeCounterStore()
        store.fail_writes = True
        with pytest.raises(RateStoreError):
            await RateLimiter(store, 2).check(ADDR)


class TestRedisCounterStore:
    @pytest.mark.asyncio
    async def test_absent_key_is_none(self):
        client = AsyncMock()
        client.get.return_value = None
        assert await RedisCounterStore(client).get("k") is None

    @pytest.mark.asyncio
    async def test_value_parsed_as_int(self):
        client = AsyncMock()
        client.get.return_value = "3"
        assert await RedisCounterStore(client).get("k") == 3

    @pytest.mark.asyncio
    async def test_read_error_becomes_store_error(self):
        # Arrange
        client = AsyncMock()
        client.get.side_effect = RedisConnectionError("refused")

        # Act & Assert
        with pytest.raises(RateStoreError) as exc_info:
            await RedisCounterStore(client).get("k")
        assert isinstance(exc_info.value.original_error, RedisConnectionError)

    @pytest.mark.asyncio
    async def test_non_integer_value_is_store_error(self):
        client = AsyncMock()
        client.get.return_value = "garbage"
        with pytest.raises(RateStoreError):
            await RedisCounterStore(client).get("k")

    @pytest.mark.asyncio
    async def test_set_uses_expiry(self):
        client = AsyncMock()
        await RedisCounterStore(client).set("k", 2, 60)
        client.set.assert_awaited_once_with("k", 2, ex=60)

    @pytest.mark.asyncio
    async def test_write_error_becomes_store_error(self):
        client = AsyncMock()
        client.set.side_effect = RedisConnectionError("refused")
        with pytest.raises(RateStoreError):
            await RedisCounterStore(client).set("k", 1, 60)

    @pytest.mark.asyncio
    async def test_limiter_over_redis_store(self):
        # Arrange
        client = AsyncMock()
        client.get.return_value = "2"
        limiter = RateLimiter(RedisCounterStore(client), 2)

        # Act & Assert
        with pytest.raises(RateLimitExceeded):
            await limiter.check(ADDR)
        client.set.assert_awaited_once_with(f"sendirc_{ADDR}", 2, ex=60)

    @pytest.mark.asyncio
    async def test_close(self):
        client = AsyncMock()
        await RedisCounterStore(client).close()
        client.aclose.assert_awaited_once()
