"""In-process TTL caches for Emotechief services.

Backed by cachetools.TTLCache; nothing is shared across processes.

Reads wrapped with :func:`cached` fall back to the last-known-good value when
the database is unreachable, so the dashboard keeps showing reward settings
through short outages.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections import OrderedDict
from collections.abc import Callable
from typing import Any, TypeVar

from cachetools import TTLCache  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

# Distinguishes "not cached" from a cached None
_MISSING = object()

F = TypeVar("F", bound=Callable[..., Any])


class AsyncTTLCache:
    """TTL cache with a bounded stale store and per-key asyncio locks.

    ``_cache`` holds fresh values governed by *ttl*; ``_stale`` keeps the
    last value per key (LRU, bounded by *maxsize*) and is read only when the
    upstream source fails.
    """

    def __init__(self, maxsize: int = 128, ttl: float = 60.0):
        self._maxsize = maxsize
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)
        self._stale: OrderedDict[str, Any] = OrderedDict()
        self._locks: dict[str, asyncio.Lock] = {}

    def _get_lock(self, key: str) -> asyncio.Lock:
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
            if len(self._locks) > self._maxsize * 2:
                for k in list(self._locks):
                    if k not in self._stale and k not in self._cache and not self._locks[k].locked():
                        del self._locks[k]
        return self._locks[key]

    def get(self, key: str) -> Any:
        """Return the fresh value or ``_MISSING``."""
        return self._cache.get(key, _MISSING)

    def set(self, key: str, value: Any) -> None:
        self._cache[key] = value
        self._stale[key] = value
        self._stale.move_to_end(key)
        while len(self._stale) > self._maxsize:
            self._stale.popitem(last=False)

    def claim(self, key: str) -> bool:
        """Mark *key* as seen. False if it was already seen within the TTL.

        No await between the check and the write, so concurrent tasks on one
        event loop cannot both claim the same key.
        """
        if key in self._cache:
            return False
        self._cache[key] = True
        return True

    def invalidate(self, key: str) -> None:
        """Drop the fresh value; the stale copy survives."""
        self._cache.pop(key, None)

    def clear(self) -> None:
        self._cache.clear()

    def get_stale(self, key: str) -> Any:
        value = self._stale.get(key, _MISSING)
        if value is not _MISSING:
            self._stale.move_to_end(key)
        return value

    @property
    def size(self) -> int:
        return len(self._cache)


def cached(
    cache: AsyncTTLCache,
    key_func: Callable[..., str],
    *,
    retry: int = 3,
):
    """Cache an async read, retrying and falling back to stale data on failure.

    *key_func* receives the decorated function's arguments and returns the
    cache key. After *retry* failed attempts the stale value is returned if
    one exists, otherwise the last exception propagates.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            cache_key = key_func(*args, **kwargs)

            result = cache.get(cache_key)
            if result is not _MISSING:
                return result

            async with cache._get_lock(cache_key):
                result = cache.get(cache_key)
                if result is not _MISSING:
                    return result

                last_exc: BaseException | None = None
                for attempt in range(1, retry + 1):
                    try:
                        result = await func(*args, **kwargs)
                        cache.set(cache_key, result)
                        return result
                    except asyncio.CancelledError:
                        raise
                    except Exception as exc:
                        last_exc = exc
                        if attempt < retry:
                            delay = 0.5 * attempt
                            logger.warning(
                                "DB attempt %d/%d failed for %s: %s, retrying in %.1fs",
                                attempt,
                                retry,
                                cache_key,
                                type(exc).__name__,
                                delay,
                            )
                            await asyncio.sleep(delay)

                stale = cache.get_stale(cache_key)
                if stale is not _MISSING:
                    logger.warning(
                        "Returning stale data for %s (%s)", cache_key, type(last_exc).__name__
                    )
                    return stale

                raise last_exc  # type: ignore[misc]

        wrapper.cache = cache  # type: ignore[attr-defined]
        return wrapper  # type: ignore[return-value]

    return decorator
