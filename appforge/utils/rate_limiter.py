"""
Rate Limiter - caps generation requests per user.

Fixed window counters live in Redis (shared across service instances) via
``CacheManager.incr``. When Redis is unavailable the limiter counts in
process memory instead, so limits still apply on a single instance.
"""
import time
from typing import Any, Callable, Dict, Optional, Tuple

from loguru import logger

from appforge.config import Settings, settings as default_settings
from appforge.core.cache import CacheManager


class RateLimiter:
    """
    Fixed window rate limiter.

    Features:
    - Per-user rate limiting
    - Configurable limit and window
    - Redis-backed with in-memory fallback
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        cache: Optional[CacheManager] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings or default_settings
        self.cache = cache
        self.clock = clock
        self.prefix = "rate_limit:"
        self.window_seconds = self.settings.rate_limit_window_size
        self._memory: Dict[str, Tuple[int, int]] = {}

    def _window(self) -> Tuple[int, int]:
        """(window index, reset timestamp) for now."""
        now = int(self.clock())
        index = now // self.window_seconds
        return index, (index + 1) * self.window_seconds

    def _memory_incr(self, key: str, window: int) -> int:
        stored_window, count = self._memory.get(key, (window, 0))
        if stored_window != window:
            count = 0
        count += 1
        self._memory[key] = (window, count)
        return count

    async def check_rate_limit(
        self,
        user_id: str,
        limit: Optional[int] = None,
    ) -> Tuple[bool, Dict[str, Any]]:
        """
        Count one request for ``user_id`` and decide whether it is allowed.

        Returns:
            Tuple of (allowed, info_dict)
        """
        if not self.settings.rate_limit_enabled:
            return True, {"limited": False, "reason": "Rate limiting disabled"}

        limit = limit or self.settings.rate_limit_requests_per_hour
        window, reset_at = self._window()
        key = f"{self.prefix}{user_id}:{window}"

        count = None
        if self.cache is not None:
            count = await self.cache.incr(key, ttl=self.window_seconds)
        if count is None:
            count = self._memory_incr(f"{self.prefix}{user_id}", window)

        if count > limit:
            retry_after = max(1, reset_at - int(self.clock()))
            logger.warning(f"Rate limit exceeded for {user_id}: {count}/{limit}")
            return False, {
                "limited": True,
                "remaining": 0,
                "limit": limit,
                "reset_at": reset_at,
                "retry_after": retry_after,
            }

        logger.debug(f"Rate limit check for {user_id}: {count}/{limit}")
        return True, {
            "limited": False,
            "remaining": limit - count,
            "limit": limit,
            "reset_at": reset_at,
        }

    async def reset_rate_limit(self, user_id: str) -> bool:
        """Reset the current window for a user (admin function)."""
        window, _ = self._window()
        key = f"{self.prefix}{user_id}:{window}"
        removed = self._memory.pop(f"{self.prefix}{user_id}", None) is not None
        if self.cache is not None:
            removed = await self.cache.delete(key) or removed
        if removed:
            logger.info(f"Rate limit reset for {user_id}")
        return removed
