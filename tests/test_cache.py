"""Tests for TTL caches and request fingerprints."""

from decimal import Decimal

import pytest

from uniquote.cache import QuoteCache, TTLCache, quote_fingerprint
from uniquote.routing.base import QuoteRequest


class FakeClock:
    def __init__(self, now: int = 1_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now


class TestTTLCache:
    """Tests for TTLCache."""

    @pytest.mark.asyncio
    async def test_get_before_expiry(self):
        """Entries are served until their TTL elapses."""
        clock = FakeClock()
        cache = TTLCache(default_ttl=30, clock=clock)
        await cache.set("k", "v")

        clock.now += 29_999
        assert await cache.get("k") == "v"
        assert cache.hits == 1

    @pytest.mark.asyncio
    async def test_expired_entry_is_evicted_on_lookup(self):
        """Lookups never return an expired entry and evict it."""
        clock = FakeClock()
        cache = TTLCache(default_ttl=30, clock=clock)
        await cache.set("k", "v")

        clock.now += 30_000
        assert await cache.get("k") is None
        assert len(cache) == 0
        assert cache.misses == 1

    @pytest.mark.asyncio
    async def test_per_entry_ttl(self):
        """set() accepts a TTL overriding the default."""
        clock = FakeClock()
        cache = TTLCache(default_ttl=30, clock=clock)
        await cache.set("short", 1, ttl=1)
        await cache.set("long", 2)

        clock.now += 1_500
        assert await cache.get("short") is None
        assert await cache.get("long") == 2

    @pytest.mark.asyncio
    async def test_sweep_removes_only_expired(self):
        """sweep() drops expired entries nobody asked for."""
        clock = FakeClock()
        cache = TTLCache(default_ttl=10, clock=clock)
        await cache.set("a", 1)
        clock.now += 5_000
        await cache.set("b", 2)
        clock.now += 6_000

        removed = await cache.sweep()

        assert removed == 1
        assert len(cache) == 1
        assert await cache.get("b") == 2

    @pytest.mark.asyncio
    async def test_delete_and_clear(self):
        """delete() and clear() remove entries."""
        cache = TTLCache()
        await cache.set("a", 1)
        await cache.set("b", 2)

        assert await cache.delete("a") is True
        assert await cache.delete("a") is False
        await cache.clear()
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_sweeper_task_lifecycle(self):
        """The background sweeper starts once and stops cleanly."""
        cache = TTLCache()
        cache.start_sweeper(60)
        task = cache._sweeper
        cache.start_sweeper(60)

        assert cache._sweeper is task
        await cache.stop_sweeper()
        assert cache._sweeper is None


class TestFingerprint:
    """Tests for quote fingerprints."""

    def test_equivalent_requests_share_fingerprint(self):
        """Address case and decimal formatting do not change the key."""
        a = quote_fingerprint(1, "0xABCDEF", 1, "0x1234", "1.0", "0.50")
        b = quote_fingerprint(1, "0xabcdef", 1, "0x1234", Decimal("1"), Decimal("0.5"))

        assert a == b

    def test_fields_change_fingerprint(self):
        """Any determining field changes the key."""
        base = quote_fingerprint(1, "0xa", 1, "0xb", "1", "0.5")

        assert quote_fingerprint(1, "0xa", 1, "0xb", "2", "0.5") != base
        assert quote_fingerprint(1, "0xa", 1, "0xb", "1", "1") != base
        assert quote_fingerprint(1, "0xa", 137, "0xb", "1", "0.5") != base
        assert quote_fingerprint(1, "0xa", 1, "0xb", "1", "0.5", target="gas") != base

    def test_scope_ignores_none_and_sorts_lists(self):
        """None scope values are ignored and list order does not matter."""
        base = quote_fingerprint(1, "0xa", 1, "0xb", "1", "0.5")

        assert quote_fingerprint(1, "0xa", 1, "0xb", "1", "0.5", protocols=None) == base
        assert quote_fingerprint(1, "0xa", 1, "0xb", "1", "0.5", protocols=["0x", "1inch"]) == (
            quote_fingerprint(1, "0xa", 1, "0xb", "1", "0.5", protocols=["1inch", "0x"])
        )

    def test_quote_cache_key_for_request(self, eth, usdc):
        """QuoteCache keys requests by their determining fields."""
        cache = QuoteCache()
        request = QuoteRequest(from_token=eth, to_token=usdc, amount=Decimal("1.0"))
        same = QuoteRequest(from_token=eth, to_token=usdc, amount=Decimal("1"))
        other = QuoteRequest(from_token=eth, to_token=usdc, amount=Decimal("2"))

        assert cache.key_for(request) == cache.key_for(same)
        assert cache.key_for(request) != cache.key_for(other)
