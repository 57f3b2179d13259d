"""Tests for the Redis-backed transfer rate limiter."""

import pytest
from unittest.mock import AsyncMock

from src.core.service.transfer.rate_limiter import TransferRateLimiter


@pytest.mark.asyncio
class TestTransferRateLimiter:

    @pytest.fixture
    def redis_client(self):
        client = AsyncMock()
        client.get.return_value = None
        return client

    async def test_allows_under_limit(self, redis_client):
        redis_client.get.return_value = "2"
        limiter = TransferRateLimiter(redis_client, daily_limit=3)

        result = await limiter.check_rate_limit("alice")

        assert result["allowed"] is True
        assert result["rate_limit_info"]["daily_remaining"] == 1
        key = redis_client.get.call_args.args[0]
        assert key.startswith("transfer:rate_limit:alice:")

    async def test_blocks_at_limit(self, redis_client):
        redis_client.get.return_value = "3"
        limiter = TransferRateLimiter(redis_client, daily_limit=3)

        result = await limiter.check_rate_limit("alice")

        assert result["allowed"] is False
        assert result["rate_limit_info"]["daily_remaining"] == 0

    async def test_fails_open_when_redis_errors(self, redis_client):
        redis_client.get.side_effect = ConnectionError("redis down")
        limiter = TransferRateLimiter(redis_client, daily_limit=3)

        result = await limiter.check_rate_limit("alice")

        assert result["allowed"] is True

    async def test_increment_sets_expiry(self, redis_client):
        limiter = TransferRateLimiter(redis_client, daily_limit=3)

        await limiter.increment_count("alice")

        key = redis_client.incr.call_args.args[0]
        redis_client.expire.assert_awaited_once_with(key, TransferRateLimiter.RATE_LIMIT_WINDOW)
