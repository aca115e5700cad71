"""Redis-backed failed-attempt rate limiting for login and OTP requests."""

from typing import Optional

import redis.asyncio as redis
import structlog

from authcore.config import get_settings

logger = structlog.get_logger(__name__)

# Global Redis client
_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create the Redis client.

    Returns:
        Redis client or None if connection fails (graceful degradation)
    """
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    settings = get_settings()

    try:
        _redis_client = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
        await _redis_client.ping()
        logger.info("redis_connected", url=settings.redis_url.split("@")[-1])
        return _redis_client
    except Exception as e:
        logger.warning("redis_connection_failed", error=str(e))
        _redis_client = None
        return None


async def close_redis() -> None:
    """Close the Redis connection."""
    global _redis_client

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("redis_connection_closed")


class RateLimiter:
    """Counts failed attempts per identifier in a fixed window.

    The identifier is whatever the caller authenticates with (username or
    mobile number). Once ``max_attempts`` failures land inside the window,
    further attempts are refused until the window key expires.
    """

    def __init__(
        self,
        max_attempts: Optional[int] = None,
        window_minutes: Optional[int] = None,
    ):
        settings = get_settings()
        self.max_attempts = max_attempts or settings.rate_limit_attempts
        self.window_seconds = (window_minutes or settings.rate_limit_window_minutes) * 60

    @staticmethod
    def _key(identifier: str) -> str:
        return f"auth_failures:{identifier}"

    async def is_rate_limited(self, identifier: str) -> bool:
        """Check whether an identifier has exhausted its failure budget.

        Returns:
            True if further attempts should be refused
        """
        client = await get_redis()
        if client is None:
            # Graceful degradation: allow if Redis unavailable
            return False

        try:
            current = await client.get(self._key(identifier))
        except Exception as e:
            logger.warning("rate_limit_check_failed", error=str(e))
            return False

        limited = current is not None and int(current) >= self.max_attempts
        if limited:
            logger.warning("rate_limit_exceeded", max_attempts=self.max_attempts)
        return limited

    async def record_attempt(self, identifier: str, success: bool) -> None:
        """Record the outcome of an attempt. Only failures count."""
        if success:
            return

        client = await get_redis()
        if client is None:
            return

        try:
            key = self._key(identifier)
            count = await client.incr(key)
            if count == 1:
                # First failure opens the window
                await client.expire(key, self.window_seconds)
        except Exception as e:
            logger.warning("rate_limit_record_failed", error=str(e))

    async def retry_after(self, identifier: str) -> int:
        """Seconds until the identifier's failure window resets.

        Falls back to the full window when Redis cannot say.
        """
        client = await get_redis()
        if client is None:
            return self.window_seconds

        try:
            ttl = await client.ttl(self._key(identifier))
        except Exception as e:
            logger.warning("rate_limit_ttl_failed", error=str(e))
            return self.window_seconds

        # -2 means no key, -1 means no expiry
        return ttl if ttl > 0 else self.window_seconds

    async def remaining_attempts(self, identifier: str) -> int:
        """Failures left before the identifier is blocked.

        Returns:
            Remaining attempts or -1 if Redis unavailable
        """
        client = await get_redis()
        if client is None:
            return -1

        try:
            current = await client.get(self._key(identifier))
        except Exception as e:
            logger.warning("rate_limit_remaining_failed", error=str(e))
            return -1

        if current is None:
            return self.max_attempts
        return max(0, self.max_attempts - int(current))
