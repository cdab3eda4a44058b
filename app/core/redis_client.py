"""Redis client configuration and utilities."""

import json
import secrets
from typing import Any, cast

import redis

from app.config import settings

# Global Redis client instance
_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis:
    """
    Get or create Redis client instance.

    Returns:
        Redis client instance
    """
    global _redis_client

    if _redis_client is None:
        _redis_client = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            username=settings.redis_username,
            password=settings.redis_password,
            decode_responses=settings.redis_decode_responses,
            socket_connect_timeout=5,
            socket_keepalive=True,
            health_check_interval=30,
        )

    return _redis_client


async def check_redis_connection() -> bool:
    """
    Check if Redis connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        client = get_redis_client()
        client.ping()
        return True
    except Exception:
        return False


def close_redis_connection() -> None:
    """Close Redis connection."""
    global _redis_client

    if _redis_client is not None:
        _redis_client.close()
        _redis_client = None


# Cache helpers
class CacheManager:
    """Redis-based cache manager. Cache errors degrade to cache misses."""

    def __init__(self, redis_client: redis.Redis):
        """Initialize cache manager with Redis client."""
        self.redis = redis_client

    def get_json(self, key: str) -> Any | None:
        """
        Get JSON value from cache and deserialize.

        Args:
            key: Cache key

        Returns:
            Deserialized object or None
        """
        try:
            value = cast(str | None, self.redis.get(key))
            if value:
                return json.loads(value)
            return None
        except Exception:
            return None

    def set_json(
        self,
        key: str,
        value: Any,
        ttl: int | None = None,
    ) -> bool:
        """
        Serialize and set JSON value in cache.

        Args:
            key: Cache key
            value: Value to serialize and cache
            ttl: Time to live in seconds

        Returns:
            True if successful, False otherwise
        """
        try:
            json_value = json.dumps(value, default=str)
            if ttl:
                self.redis.setex(key, ttl, json_value)
            else:
                self.redis.set(key, json_value)
            return True
        except Exception:
            return False


class OtpStore:
    """One-time password reset codes kept in Redis with a TTL."""

    KEY_PREFIX = "otp:"

    def __init__(self, redis_client: redis.Redis, ttl: int | None = None):
        """Initialize OTP store with Redis client and code lifetime in seconds."""
        self.redis = redis_client
        self.ttl = ttl or settings.otp_ttl_seconds

    def _key(self, email: str) -> str:
        return f"{self.KEY_PREFIX}{email.strip().lower()}"

    def issue(self, email: str) -> str:
        """
        Create and store a new six digit code, replacing any earlier one.

        Args:
            email: Account email the code belongs to

        Returns:
            The generated code
        """
        code = f"{secrets.randbelow(900000) + 100000}"
        self.redis.setex(self._key(email), self.ttl, code)
        return code

    def consume(self, email: str, code: str) -> bool:
        """
        Check a code and delete it when it matches.

        Expired codes have already been evicted by Redis and fail the check.
        """
        key = self._key(email)
        stored = self.redis.get(key)
        if stored is None:
            return False

        if isinstance(stored, bytes):
            stored = stored.decode()

        if not secrets.compare_digest(str(stored), code.strip()):
            return False

        self.redis.delete(key)
        return True
