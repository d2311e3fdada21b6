"""
Redis caching layer for Licensing Service.
"""

import json
from typing import Dict, Any, Optional

import redis

from shared.logging import get_logger
from shared.errors import CacheStoreError


class RedisCacheStore:
    """Redis-backed cache store; keys expire natively via SETEX."""

    def __init__(self, redis_url: str, client: Optional[redis.Redis] = None):
        self.redis_url = redis_url
        self.logger = get_logger("licensing.cache.redis")
        self.redis: Optional[redis.Redis] = client

    def start(self):
        """Connect to Redis and verify the connection."""
        try:
            if self.redis is None:
                self.redis = redis.Redis.from_url(
                    self.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                    socket_connect_timeout=5,
                    socket_timeout=5,
                    retry_on_timeout=True,
                    health_check_interval=30
                )

            self.redis.ping()

            self.logger.info("Redis cache started")

        except redis.RedisError as e:
            self.logger.error("Failed to start Redis cache", error=str(e))
            raise CacheStoreError("Failed to connect to Redis", details={"redis_error": str(e)})

    def stop(self):
        """Close the Redis connection."""
        if self.redis:
            self.redis.close()
            self.logger.info("Redis cache stopped")

    def read(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            cached_data = self.redis.get(key)
            if not cached_data:
                return None

            data = json.loads(cached_data)
            if not isinstance(data, dict):
                self.logger.warning("Ignoring non-mapping cache entry", cache_key=key)
                return None

            self.logger.debug("Cache hit", cache_key=key)
            return data

        except (redis.RedisError, ValueError) as e:
            self.logger.error("Error reading cache entry", cache_key=key, error=str(e))
            return None

    def write(self, key: str, value: Dict[str, Any], ttl_seconds: int) -> bool:
        try:
            self.redis.setex(key, ttl_seconds, json.dumps(value))

            self.logger.debug("Cached entry", cache_key=key, ttl=ttl_seconds)
            return True

        except (redis.RedisError, TypeError, ValueError) as e:
            self.logger.error("Error writing cache entry", cache_key=key, error=str(e))
            return False

    def delete(self, key: str) -> bool:
        try:
            return bool(self.redis.delete(key))
        except redis.RedisError as e:
            self.logger.error("Error deleting cache entry", cache_key=key, error=str(e))
            return False

    def exists(self, key: str) -> bool:
        try:
            return bool(self.redis.exists(key))
        except redis.RedisError as e:
            self.logger.error("Error checking cache entry", cache_key=key, error=str(e))
            return False

    def health_check(self) -> bool:
        """Check Redis health."""
        if self.redis is None:
            return False
        try:
            return bool(self.redis.ping())
        except redis.RedisError:
            return False
