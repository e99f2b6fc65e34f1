"""
Redis cache manager for schema and rate-limit state.

Provides an async interface to Redis with JSON serialization. Every
operation fails soft: when Redis is down, reads return None and writes
return False so callers fall back to their in-process state.
"""
import json
from typing import Any, Optional

import redis.asyncio as redis
from loguru import logger

from appforge.config import Settings, settings as default_settings


class CacheManager:
    """
    Manages Redis caching operations.

    Handles connection management, serialization, and error handling
    for cached generation results and counters.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self.client: Optional[redis.Redis] = None
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected and self.client is not None

    async def connect(self) -> None:
        """
        Establish connection to Redis.

        Creates a connection pool and tests the connection.
        """
        try:
            self.client = redis.from_url(
                self.settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_timeout=self.settings.redis_socket_timeout,
                max_connections=self.settings.redis_max_connections,
            )

            await self.client.ping()
            self._connected = True

            logger.info(f"✅ Redis cache connected: {self.settings.redis_url}")

        except Exception as e:
            logger.error(f"❌ Redis connection failed: {e}")
            self._connected = False
            raise

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self.client:
            await self.client.aclose()
            self._connected = False
            logger.info("Redis cache disconnected")

    async def ping(self) -> bool:
        if not self.connected:
            return False
        try:
            return bool(await self.client.ping())
        except Exception as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    async def get(self, key: str) -> Optional[Any]:
        """
        Get cached value by key.

        Returns:
            Decoded JSON value, or None if missing or Redis is unavailable
        """
        if not self.connected:
            return None

        try:
            cached = await self.client.get(key)

            if cached:
                logger.debug(f"Cache HIT: {key}")
                return json.loads(cached)

            logger.debug(f"Cache MISS: {key}")
            return None

        except Exception as e:
            logger.error(f"Cache get error for key '{key}': {e}")
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """
        Set cache value with optional TTL.

        Args:
            key: Cache key
            value: Value to cache (JSON serialized)
            ttl: Time to live in seconds (default: from settings)

        Returns:
            True if successful, False otherwise
        """
        if not self.connected:
            return False

        try:
            ttl = ttl or self.settings.redis_cache_ttl
            await self.client.setex(key, ttl, json.dumps(value))

            logger.debug(f"Cache SET: {key} (TTL: {ttl}s)")
            return True

        except Exception as e:
            logger.error(f"Cache set error for key '{key}': {e}")
            return False

    async def delete(self, key: str) -> bool:
        if not self.connected:
            return False

        try:
            result = await self.client.delete(key)
            if result:
                logger.debug(f"Cache DELETE: {key}")
            return bool(result)

        except Exception as e:
            logger.error(f"Cache delete error for key '{key}': {e}")
            return False

    async def incr(self, key: str, ttl: int) -> Optional[int]:
        """
        Increment a counter, setting its TTL on first use.

        Returns:
            New counter value, or None if Redis is unavailable
        """
        if not self.connected:
            return None

        try:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.incr(key)
                pipe.expire(key, ttl, nx=True)
                count, _ = await pipe.execute()
            return int(count)

        except Exception as e:
            logger.error(f"Cache incr error for key '{key}': {e}")
            return None

    async def clear_pattern(self, pattern: str) -> int:
        """
        Delete all keys matching a pattern.

        Example:
            >>> deleted = await cache.clear_pattern("schema_cache:webapp:*")
        """
        if not self.connected:
            return 0

        try:
            keys = [key async for key in self.client.scan_iter(match=pattern)]

            if keys:
                deleted = await self.client.delete(*keys)
                logger.info(f"Cache cleared {deleted} keys matching '{pattern}'")
                return deleted

            return 0

        except Exception as e:
            logger.error(f"Cache clear pattern error for '{pattern}': {e}")
            return 0
