from __future__ import annotations

import pytest

from seoadmin.core.config import Settings
from seoadmin.services.cache import SeoCache, TTLCache, cache_key


def _clock() -> tuple[dict[str, float], TTLCache]:
    now = {"t": 0.0}
    return now, TTLCache(max_size=3, default_ttl_s=10, time_source=lambda: now["t"])


def test_cache_key_is_order_independent_and_drops_empty_values() -> None:
    first = cache_key("meta:list", {"siteId": "main", "category": None, "customOnly": ""})
    second = cache_key("meta:list", {"siteId": "main"})
    assert first == second
    assert cache_key("op", {"b": 1, "a": 2}) == cache_key("op", {"a": 2, "b": 1})
    assert cache_key("op", {"a": 1}) != cache_key("other", {"a": 1})


def test_entries_expire_lazily_on_read() -> None:
    now, cache = _clock()
    cache.set("k", "v")
    assert cache.get("k") == "v"
    now["t"] = 10.0
    assert cache.get("k") is None
    assert len(cache) == 0
    stats = cache.stats()
    assert stats.hits == 1
    assert stats.misses == 1


def test_per_entry_ttl_override() -> None:
    now, cache = _clock()
    cache.set("short", 1, ttl_s=1)
    cache.set("long", 2)
    now["t"] = 5.0
    stats = cache.stats()
    assert stats.total == 2
    assert stats.expired == 1
    assert stats.active == 1
    assert cache.get("short") is None
    assert cache.get("long") == 2


def test_full_cache_sweeps_expired_then_evicts_oldest() -> None:
    now, cache = _clock()
    cache.set("a", 1, ttl_s=1)
    now["t"] = 1.0
    cache.set("b", 2)
    cache.set("c", 3)
    now["t"] = 2.0
    cache.set("d", 4)
    # The expired entry made room; nothing live was evicted.
    assert sorted(cache.keys()) == ["b", "c", "d"]

    cache.set("e", 5)
    assert sorted(cache.keys()) == ["c", "d", "e"]


def test_delete_and_clear() -> None:
    _now, cache = _clock()
    cache.set("a", 1)
    cache.set("b", 2)
    assert cache.delete("a") is True
    assert cache.delete("a") is False
    assert cache.clear() == 1
    assert cache.stats().total == 0


def _seo_cache() -> SeoCache:
    settings = Settings(cache_max_entries=10, cache_page_ttl_s=60, cache_sitemap_ttl_s=120)
    return SeoCache.from_settings(settings)


@pytest.mark.asyncio
async def test_memoize_loads_once_and_invalidates_by_site() -> None:
    cache = _seo_cache()
    calls = {"count": 0}

    async def loader() -> list[str]:
        calls["count"] += 1
        return ["/about"]

    for _ in range(2):
        assert await cache.memoize("meta:list", {"siteId": "main"}, loader, site_id="main") == ["/about"]
    assert calls["count"] == 1

    assert cache.invalidate_site("other") == 0
    assert cache.invalidate_site("main") == 1
    await cache.memoize("meta:list", {"siteId": "main"}, loader, site_id="main")
    assert calls["count"] == 2
    assert cache.page_ttl_s == 60
    assert cache.sitemap_ttl_s == 120


@pytest.mark.asyncio
async def test_memoize_does_not_cache_misses_or_errors() -> None:
    cache = _seo_cache()
    calls = {"count": 0}

    async def missing() -> None:
        calls["count"] += 1
        return None

    async def failing() -> str:
        calls["count"] += 1
        raise RuntimeError("boom")

    assert await cache.memoize("meta:page", {"path": "/x"}, missing) is None
    assert await cache.memoize("meta:page", {"path": "/x"}, missing) is None
    for _ in range(2):
        with pytest.raises(RuntimeError):
            await cache.memoize("meta:page", {"path": "/y"}, failing)
    assert calls["count"] == 4
    assert cache.stats().total == 0
    assert cache.clear() == 0
