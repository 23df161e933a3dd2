"""Tests for the mapping store and its read-through cache."""

import asyncio
from datetime import timedelta

import pytest

from shortlink.core.clock import utcnow
from shortlink.core.exceptions import CodeTakenError, NotOwnerError, ShortCodeNotFoundError
from shortlink.services.cache import InMemoryCache
from shortlink.services.mapping_store import MappingStore


@pytest.fixture
def store(database):
    return MappingStore(database)


class TestReserveAndLookup:

    @pytest.mark.asyncio
    async def test_reserve_then_lookup(self, store):
        link = await store.reserve("a1B2c3D", "https://example.com/a/b?c=1", owner="owner-1")
        assert link.id is not None
        assert link.custom is False

        store.cache.clear()
        found = await store.lookup("a1B2c3D")
        assert found.target == "https://example.com/a/b?c=1"
        assert found.owner == "owner-1"
        assert found.expires_at is None

    @pytest.mark.asyncio
    async def test_lookup_unknown_code(self, store):
        with pytest.raises(ShortCodeNotFoundError):
            await store.lookup("zzzzzzz")

    @pytest.mark.asyncio
    async def test_existing_code_is_never_overwritten(self, store):
        await store.reserve("promo2026", "https://example.com/first", custom=True)
        with pytest.raises(CodeTakenError):
            await store.reserve("promo2026", "https://example.com/second", custom=True)

        store.cache.clear()
        assert (await store.lookup("promo2026")).target == "https://example.com/first"

    @pytest.mark.asyncio
    async def test_concurrent_reservations_of_one_code(self, store):
        results = await asyncio.gather(
            store.reserve("race1234", "https://example.com/one"),
            store.reserve("race1234", "https://example.com/two"),
            return_exceptions=True,
        )
        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert isinstance(failures[0], CodeTakenError)

    @pytest.mark.asyncio
    async def test_lookup_is_served_from_cache(self, database, clock):
        store = MappingStore(database, cache=InMemoryCache(ttl=60, clock=clock))
        await store.reserve("cache123", "https://example.com")
        store.cache.clear()

        await store.lookup("cache123")
        await store.lookup("cache123")
        stats = store.cache.get_stats()
        assert stats["misses"] == 1
        assert stats["hits"] == 1

    @pytest.mark.asyncio
    async def test_is_available(self, store):
        assert await store.is_available("free1234") is True
        await store.reserve("free1234", "https://example.com")
        assert await store.is_available("free1234") is False


class TestDelete:

    @pytest.mark.asyncio
    async def test_owner_can_delete(self, store):
        await store.reserve("del12345", "https://example.com", owner="owner-1")
        await store.lookup("del12345")  # warm the cache

        await store.delete("del12345", "owner-1")

        with pytest.raises(ShortCodeNotFoundError):
            await store.lookup("del12345")

    @pytest.mark.asyncio
    async def test_delete_unknown_code(self, store):
        with pytest.raises(ShortCodeNotFoundError):
            await store.delete("zzzzzzz", "owner-1")

    @pytest.mark.asyncio
    async def test_other_principal_cannot_delete(self, store):
        await store.reserve("mine1234", "https://example.com", owner="owner-1")
        with pytest.raises(NotOwnerError):
            await store.delete("mine1234", "owner-2")
        with pytest.raises(NotOwnerError):
            await store.delete("mine1234", None)
        assert (await store.lookup("mine1234")).owner == "owner-1"

    @pytest.mark.asyncio
    async def test_anonymous_link_cannot_be_deleted(self, store):
        await store.reserve("anon1234", "https://example.com")
        with pytest.raises(NotOwnerError):
            await store.delete("anon1234", None)

    @pytest.mark.asyncio
    async def test_other_process_sees_delete_within_cache_ttl(self, database, clock):
        writer = MappingStore(database)
        reader = MappingStore(database, cache=InMemoryCache(ttl=30, clock=clock))
        await writer.reserve("stale123", "https://example.com", owner="owner-1")
        await reader.lookup("stale123")

        await writer.delete("stale123", "owner-1")

        # still served from the reader's cache inside the staleness window
        assert (await reader.lookup("stale123")).code == "stale123"
        clock.advance(30)
        with pytest.raises(ShortCodeNotFoundError):
            await reader.lookup("stale123")

    @pytest.mark.asyncio
    async def test_removal_listeners_are_notified(self, store):
        removed = []

        async def listener(codes):
            removed.extend(codes)

        store.add_removal_listener(listener)
        await store.reserve("note1234", "https://example.com", owner="owner-1")
        await store.delete("note1234", "owner-1")
        assert removed == ["note1234"]


class TestMaintenance:

    @pytest.mark.asyncio
    async def test_sweep_removes_only_expired_links(self, store):
        now = utcnow()
        await store.reserve("old12345", "https://example.com/old", expires_at=now - timedelta(minutes=1))
        await store.reserve("new12345", "https://example.com/new", expires_at=now + timedelta(days=1))
        await store.reserve("never123", "https://example.com/never")

        assert await store.sweep_expired(now) == 1
        assert await store.sweep_expired(now) == 0

        with pytest.raises(ShortCodeNotFoundError):
            await store.lookup("old12345")
        assert (await store.lookup("new12345")).target == "https://example.com/new"
        assert (await store.lookup("never123")).target == "https://example.com/never"

    @pytest.mark.asyncio
    async def test_sweep_spares_link_whose_expiry_was_extended(self, store):
        removed = []

        async def listener(codes):
            removed.extend(codes)

        store.add_removal_listener(listener)
        now = utcnow()
        await store.reserve("gone5678", "https://example.com/gone", owner="owner-1",
                            expires_at=now - timedelta(minutes=2))
        await store.reserve("kept5678", "https://example.com/kept", owner="owner-1",
                            expires_at=now - timedelta(minutes=1))
        await store.update_expiry("kept5678", "owner-1", now + timedelta(days=7))

        assert await store.sweep_expired(now) == 1
        assert removed == ["gone5678"]
        assert (await store.lookup("kept5678")).target == "https://example.com/kept"

    @pytest.mark.asyncio
    async def test_update_expiry(self, store):
        await store.reserve("exp12345", "https://example.com", owner="owner-1")
        later = utcnow() + timedelta(days=7)

        updated = await store.update_expiry("exp12345", "owner-1", later)
        assert updated.expires_at == later

        store.cache.clear()
        assert (await store.lookup("exp12345")).expires_at == later

        with pytest.raises(NotOwnerError):
            await store.update_expiry("exp12345", "owner-2", None)

    @pytest.mark.asyncio
    async def test_links_for_owner(self, store):
        await store.reserve("own00001", "https://example.com/1", owner="owner-1")
        await store.reserve("own00002", "https://example.com/2", owner="owner-1")
        await store.reserve("oth00001", "https://example.com/3", owner="owner-2")

        links = await store.links_for_owner("owner-1")
        assert [link.code for link in links] == ["own00002", "own00001"]
