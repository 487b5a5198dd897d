"""Listing view cache."""
from tradedesk.services.cache_service import CacheService, InMemoryCache


async def test_in_memory_backend_roundtrip():
    backend = InMemoryCache()

    assert await backend.get("missing") is None
    await backend.set("a:1", {"total": 1})
    assert await backend.get("a:1") == {"total": 1}
    assert await backend.delete("a:1") is True
    assert await backend.delete("a:1") is False


async def test_expired_entries_are_dropped():
    backend = InMemoryCache()
    await backend.set("a:1", "value", ttl=-1)
    assert await backend.get("a:1") is None


def test_view_key_ignores_parameter_order():
    cache = CacheService(InMemoryCache())

    first = cache.view_key("backorders", {"page": 1, "search": "bolt"})
    second = cache.view_key("backorders", {"search": "bolt", "page": 1})

    assert first == second
    assert first.startswith("tradedesk:views:backorders:")
    assert cache.view_key("backorders", {"page": 2, "search": "bolt"}) != first


async def test_stock_invalidation_clears_listing_views_only():
    cache = CacheService(InMemoryCache())
    await cache.set_view("backorders", {"page": 1}, {"items": []})
    await cache.set_view("inventory", {"page": 1}, {"items": []})
    await cache.set_view("reports", {"page": 1}, {"items": []})

    removed = await cache.invalidate_stock_views()

    assert removed == 2
    assert await cache.get_view("backorders", {"page": 1}) is None
    assert await cache.get_view("inventory", {"page": 1}) is None
    assert await cache.get_view("reports", {"page": 1}) == {"items": []}


async def test_disabled_cache_stores_nothing():
    backend = InMemoryCache()
    cache = CacheService(backend, enabled=False)

    assert await cache.set_view("backorders", {"page": 1}, {"items": []}) is False
    assert await cache.get_view("backorders", {"page": 1}) is None
    assert backend._cache == {}
