"""
TTL-based response cache for query API list calls.

The home view refreshes four tables every time the network changes; switching
back and forth between two networks would otherwise refetch identical pages.
List responses are cached for a few seconds keyed by operation and arguments.

Features:
- TTL-based invalidation (configurable per operation)
- Selective invalidation by key prefix or by network
- Hit/miss statistics for debugging

Architecture:
- CacheManager: Main cache interface with per-operation TTL
- CacheEntry: Individual cache entries with timestamps
- cached(): decorator for async QueryClient methods

Only successful responses are stored; exceptions pass through uncached.
Everything runs on the single event loop, so no locking is needed.
"""

import time
from typing import Dict, Any, Optional
from dataclasses import dataclass
from functools import wraps
import logging

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """Individual cache entry with value and timestamp."""
    value: Any
    timestamp: float
    ttl: float

    def is_expired(self) -> bool:
        return time.monotonic() - self.timestamp > self.ttl


class CacheManager:
    """Per-operation TTL cache."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._cache: Dict[str, CacheEntry] = {}
        self._stats = {
            'hits': 0,
            'misses': 0,
            'sets': 0,
            'evictions': 0
        }

        # TTL configuration (seconds) per operation
        self.ttl_config = {
            'latest_bundles': 5.0,
            'latest_user_ops': 5.0,
            'top_bundlers': 30.0,    # Rankings move slowly
            'top_paymasters': 30.0,
        }

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache if not expired."""
        if key not in self._cache:
            self._stats['misses'] += 1
            return None

        entry = self._cache[key]
        if entry.is_expired():
            del self._cache[key]
            self._stats['misses'] += 1
            self._stats['evictions'] += 1
            return None

        self._stats['hits'] += 1
        return entry.value

    def set(self, key: str, value: Any, ttl_override: Optional[float] = None) -> None:
        """Set value in cache with the operation's TTL."""
        ttl = ttl_override
        if ttl is None:
            operation = key.split(":", 1)[0]
            ttl = self.ttl_config.get(operation, 5.0)

        self._cache[key] = CacheEntry(value, time.monotonic(), ttl)
        self._stats['sets'] += 1

    def invalidate(self, pattern: Optional[str] = None) -> None:
        """Invalidate cache entries whose key starts with pattern (all if None)."""
        if pattern is None:
            self._cache.clear()
            logger.debug("Cache completely cleared")
            return
        keys_to_remove = [k for k in self._cache if k.startswith(pattern)]
        for key in keys_to_remove:
            del self._cache[key]
        logger.debug(f"Invalidated {len(keys_to_remove)} cache entries for pattern: {pattern}")

    def invalidate_network(self, network: str) -> None:
        """Drop every cached response for one network."""
        marker = f":{network}:"
        keys_to_remove = [k for k in self._cache if marker in k]
        for key in keys_to_remove:
            del self._cache[key]

    def cleanup_expired(self) -> int:
        """Clean up expired entries and return count of cleaned items."""
        keys_to_remove = [k for k, entry in self._cache.items() if entry.is_expired()]
        for key in keys_to_remove:
            del self._cache[key]

        if keys_to_remove:
            self._stats['evictions'] += len(keys_to_remove)
            logger.debug(f"Cleaned up {len(keys_to_remove)} expired cache entries")

        return len(keys_to_remove)

    def get_stats(self) -> Dict[str, Any]:
        total_requests = self._stats['hits'] + self._stats['misses']
        hit_rate = (self._stats['hits'] / total_requests * 100) if total_requests > 0 else 0

        return {
            **self._stats,
            'cache_size': len(self._cache),
            'hit_rate_percent': round(hit_rate, 2),
            'total_requests': total_requests
        }


def cached(ttl_override: Optional[float] = None, key_prefix: Optional[str] = None):
    """Decorator for caching async method results on ``self.cache``.

    The key is the prefix (defaults to the function name) followed by the
    positional arguments, so ``latest_bundles("base", 5, 0)`` is stored as
    ``latest_bundles:base:5:0``.
    """
    def decorator(func):
        prefix = key_prefix or func.__name__

        @wraps(func)
        async def wrapper(self, *args, **kwargs):
            cache: Optional[CacheManager] = getattr(self, "cache", None)
            if cache is None or not cache.enabled or kwargs:
                return await func(self, *args, **kwargs)

            cache_key = ":".join([prefix, *(str(a) for a in args)])
            cached_result = cache.get(cache_key)
            if cached_result is not None:
                return cached_result

            result = await func(self, *args, **kwargs)
            cache.set(cache_key, result, ttl_override)
            return result

        return wrapper
    return decorator
