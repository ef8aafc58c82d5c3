"""
Rate Limiter - keep catalog provider calls within the plan's request budget.

Uses the Django cache so that every worker process shares the same
per-minute counter.
"""

import logging
from datetime import datetime

from django.conf import settings
from django.core.cache import cache

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Per-minute request budget for the catalog provider.

    The limit is configurable via CATALOG_RATE_LIMIT_PER_MINUTE.

    Usage:
        limiter = RateLimiter()
        if limiter.try_acquire():
            # Make API call
    """

    def __init__(self, cache_prefix: str = "catalog", per_minute: int = None):
        """
        Initialize rate limiter.

        Args:
            cache_prefix: Prefix for cache keys (allows multiple instances)
            per_minute: Request budget per minute (defaults to settings)
        """
        self.cache_prefix = cache_prefix
        self.per_minute = per_minute or getattr(settings, "CATALOG_RATE_LIMIT_PER_MINUTE", 60)

    def try_acquire(self) -> bool:
        """
        Reserve one request in the current minute.

        Returns:
            True if the request may be made, False if the budget is spent
        """
        key = self._minute_key()
        # add() is a no-op when the key exists, incr() is atomic on Redis
        cache.add(key, 0, 120)
        try:
            count = cache.incr(key)
        except ValueError:
            # Key expired between add() and incr()
            cache.set(key, 1, 120)
            count = 1

        if count > self.per_minute:
            logger.warning(
                f"Catalog provider rate limit reached: {count}/{self.per_minute} this minute"
            )
            return False
        return True

    def get_remaining(self) -> int:
        """Requests left in the current minute (never negative)."""
        return max(0, self.per_minute - cache.get(self._minute_key(), 0))

    def _minute_key(self) -> str:
        """
        Generate cache key for the current minute.

        Returns:
            Cache key string like "catalog:minute:2025-01-15-14-05"
        """
        minute = datetime.now().strftime("%Y-%m-%d-%H-%M")
        return f"{self.cache_prefix}:minute:{minute}"
