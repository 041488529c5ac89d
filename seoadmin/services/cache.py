from __future__ import annotations

from dataclasses import dataclass
import json
import logging
import time
from typing import Any, Awaitable, Callable

from seoadmin.core.config import Settings, get_settings


logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    value: Any
    expires_at: float
    stored_at: float


@dataclass(frozen=True)
class CacheStats:
    total: int
    active: int
    expired: int
    max_size: int
    hits: int
    misses: int


def cache_key(operation: str, params: dict[str, Any] | None = None) -> str:
    # Stable key: sorted params with empty values dropped so equivalent queries collide.
    cleaned = {
        key: value
        for key, value in sorted((params or {}).items())
        if value is not None and value != "" and value != [] and value != {}
    }
    return f"{operation}:{json.dumps(cleaned, sort_keys=True, separators=(',', ':'), default=str)}"


class TTLCache:
    """Bounded in-process cache with lazy expiry.

    Expired entries are dropped when read, or swept in bulk when the cache is
    full. If a sweep frees nothing the oldest entry is evicted.
    """

    def __init__(
        self,
        *,
        max_size: int = 1000,
        default_ttl_s: float = 3600,
        time_source: Callable[[], float] | None = None,
    ) -> None:
        self._entries: dict[str, _Entry] = {}
        self._max_size = max(1, int(max_size))
        self._default_ttl_s = default_ttl_s
        self._now = time_source or time.monotonic
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None
        if self._now() >= entry.expires_at:
            self._entries.pop(key, None)
            self._misses += 1
            return None
        self._hits += 1
        return entry.value

    def set(self, key: str, value: Any, ttl_s: float | None = None) -> None:
        if key not in self._entries and len(self._entries) >= self._max_size:
            self._make_room()
        now = self._now()
        ttl = self._default_ttl_s if ttl_s is None else ttl_s
        self._entries[key] = _Entry(value=value, expires_at=now + ttl, stored_at=now)

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        self._hits = 0
        self._misses = 0
        return count

    def keys(self) -> list[str]:
        return list(self._entries)

    def _make_room(self) -> None:
        now = self._now()
        expired = [key for key, entry in self._entries.items() if now >= entry.expires_at]
        for key in expired:
            self._entries.pop(key, None)
        if len(self._entries) >= self._max_size:
            oldest = min(self._entries, key=lambda key: self._entries[key].stored_at)
            self._entries.pop(oldest, None)

    def stats(self) -> CacheStats:
        now = self._now()
        expired = sum(1 for entry in self._entries.values() if now >= entry.expires_at)
        return CacheStats(
            total=len(self._entries),
            active=len(self._entries) - expired,
            expired=expired,
            max_size=self._max_size,
            hits=self._hits,
            misses=self._misses,
        )


class SeoCache:
    # One instance per app, held on app.state; keys are tagged by site for invalidation.

    def __init__(self, cache: TTLCache, *, settings: Settings | None = None) -> None:
        self._cache = cache
        self._settings = settings or get_settings()
        self._site_keys: dict[str, set[str]] = {}

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "SeoCache":
        settings = settings or get_settings()
        return cls(
            TTLCache(max_size=settings.cache_max_entries, default_ttl_s=settings.cache_page_ttl_s),
            settings=settings,
        )

    @property
    def page_ttl_s(self) -> int:
        return self._settings.cache_page_ttl_s

    @property
    def sitemap_ttl_s(self) -> int:
        return self._settings.cache_sitemap_ttl_s

    async def memoize(
        self,
        operation: str,
        params: dict[str, Any] | None,
        loader: Callable[[], Awaitable[Any]],
        *,
        ttl_s: float | None = None,
        site_id: str | None = None,
    ) -> Any:
        key = cache_key(operation, params)
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        value = await loader()
        if value is None:
            return None
        self._cache.set(key, value, ttl_s)
        if site_id:
            self._site_keys.setdefault(site_id, set()).add(key)
        return value

    def invalidate_site(self, site_id: str) -> int:
        keys = self._site_keys.pop(site_id, set())
        removed = sum(1 for key in keys if self._cache.delete(key))
        logger.debug("seo_cache_invalidated site_id=%s keys=%s", site_id, removed)
        return removed

    def clear(self) -> int:
        self._site_keys.clear()
        removed = self._cache.clear()
        logger.info("seo_cache_cleared keys=%s", removed)
        return removed

    def stats(self) -> CacheStats:
        return self._cache.stats()
