"""Rate limiter for transfer submissions."""

from typing import Dict, Optional
from datetime import datetime, timedelta

from redis.asyncio import Redis

from src.infra.config.redis import get_redis
from src.infra.config.settings import get_settings
from src.core.logger.logger import logger

settings = get_settings()


class TransferRateLimiter:
    """Daily cap on transfer submissions per user."""

    RATE_LIMIT_WINDOW = 86400  # 24 hours in seconds
    KEY_PREFIX = "transfer:rate_limit"

    def __init__(self, redis_client: Optional[Redis] = None, daily_limit: Optional[int] = None):
        """Initialize rate limiter; Redis is connected lazily when not given."""
        self.redis = redis_client
        self.daily_limit = daily_limit or settings.TRANSFER_DAILY_LIMIT

    def _key(self, user_id: str) -> str:
        return f"{self.KEY_PREFIX}:{user_id}:{datetime.utcnow().strftime('%Y%m%d')}"

    @staticmethod
    def _next_reset_timestamp() -> int:
        now = datetime.utcnow()
        tomorrow = now + timedelta(days=1)
        next_reset = datetime(tomorrow.year, tomorrow.month, tomorrow.day, 0, 0, 0)
        return int(next_reset.timestamp())

    async def check_rate_limit(self, user_id: str) -> Dict:
        """
        Check if user has exceeded the daily submission limit.

        Args:
            user_id: Identifier of the submitting user

        Returns:
            Dict with ``allowed`` and ``rate_limit_info``
        """
        try:
            if not self.redis:
                self.redis = await get_redis()

            current_count = await self.redis.get(self._key(user_id))
            current_count = int(current_count) if current_count else 0

            rate_limit_info = {
                "daily_limit": self.daily_limit,
                "daily_used": current_count,
                "daily_remaining": max(0, self.daily_limit - current_count),
                "next_reset": self._next_reset_timestamp()
            }
            return {"allowed": current_count < self.daily_limit, "rate_limit_info": rate_limit_info}

        except Exception as e:
            logger.error(f"Transfer rate limit check failed: {e}")
            # If Redis fails, allow the request
            return {
                "allowed": True,
                "rate_limit_info": {
                    "daily_limit": self.daily_limit,
                    "daily_used": 0,
                    "daily_remaining": self.daily_limit,
                    "next_reset": 0
                }
            }

    async def increment_count(self, user_id: str):
        """
        Record one accepted submission for the user.

        Args:
            user_id: Identifier of the submitting user
        """
        try:
            if not self.redis:
                self.redis = await get_redis()

            key = self._key(user_id)
            await self.redis.incr(key)
            await self.redis.expire(key, self.RATE_LIMIT_WINDOW)

            logger.info("Incremented transfer count", extra={"user_id": user_id})

        except Exception as e:
            logger.error(f"Failed to increment transfer rate limit count: {e}")
