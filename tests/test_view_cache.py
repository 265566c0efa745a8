"""
Tests for the view cache: wholesale replacement, ordering, failure
behaviour and observers.
"""

import asyncio

import pytest

from package_desk.repositories import DatabaseOperationError
from package_desk.services.view_cache import CollectionKind

from conftest import JANE_ID, SHELF_3_ID


class TestViewCacheRefresh:

    @pytest.mark.asyncio
    async def test_starts_empty(self, cache):
        assert cache.residents == ()
        assert cache.storage_locations == ()
        assert cache.packages == ()
        assert cache.version(CollectionKind.PACKAGES) == 0

    @pytest.mark.asyncio
    async def test_refresh_residents_ordered_by_name(self, cache):
        snapshot = await cache.refresh(CollectionKind.RESIDENTS)

        assert [r.name for r in snapshot] == ["Jane Doe", "John Smith"]
        assert cache.residents is snapshot
        assert isinstance(snapshot, tuple)

    @pytest.mark.asyncio
    async def test_refresh_storage_locations_ordered_by_name(self, cache):
        await cache.refresh(CollectionKind.STORAGE_LOCATIONS)

        assert [loc.location_name for loc in cache.storage_locations] == ["Shelf-1", "Shelf-3"]

    @pytest.mark.asyncio
    async def test_packages_newest_first_with_joins(self, cache, store):
        store.seed("packages", [
            {"id": "p1", "package_id": "PKG-1", "resident_id": JANE_ID, "storage_location_id": SHELF_3_ID},
            {"id": "p2", "package_id": "PKG-2", "resident_id": JANE_ID, "storage_location_id": SHELF_3_ID},
        ])

        await cache.refresh(CollectionKind.PACKAGES)

        assert [p.id for p in cache.packages] == ["p2", "p1"]
        assert cache.packages[0].resident_name == "Jane Doe"
        assert cache.packages[0].location_name == "Shelf-3"

    @pytest.mark.asyncio
    async def test_refresh_replaces_instead_of_merging(self, cache, store):
        await cache.refresh(CollectionKind.RESIDENTS)
        store.tables["residents"] = [r for r in store.tables["residents"] if r["id"] == JANE_ID]

        await cache.refresh(CollectionKind.RESIDENTS)

        assert [r.id for r in cache.residents] == [JANE_ID]
        assert cache.version(CollectionKind.RESIDENTS) == 2

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_previous_snapshot(self, cache, store):
        previous = await cache.refresh(CollectionKind.RESIDENTS)
        store.fail_next("select", "connection reset by peer")

        with pytest.raises(DatabaseOperationError) as exc_info:
            await cache.refresh(CollectionKind.RESIDENTS)

        assert exc_info.value.message == "connection reset by peer"
        assert cache.residents is previous
        assert cache.version(CollectionKind.RESIDENTS) == 1

    @pytest.mark.asyncio
    async def test_concurrent_refreshes_converge(self, cache):
        await asyncio.gather(*(cache.refresh(CollectionKind.RESIDENTS) for _ in range(3)))

        assert len(cache.residents) == 2
        assert cache.version(CollectionKind.RESIDENTS) == 3

    @pytest.mark.asyncio
    async def test_refresh_all(self, cache):
        await cache.refresh_all()

        assert len(cache.residents) == 2
        assert len(cache.storage_locations) == 2
        assert cache.packages == ()


class TestViewCacheObservers:

    @pytest.mark.asyncio
    async def test_observer_called_after_replacement(self, cache):
        seen = []
        cache.add_observer(lambda kind: seen.append((kind, len(cache.residents))))

        await cache.refresh(CollectionKind.RESIDENTS)

        assert seen == [(CollectionKind.RESIDENTS, 2)]

    @pytest.mark.asyncio
    async def test_removed_observer_not_called(self, cache):
        seen = []
        remove = cache.add_observer(seen.append)
        remove()

        await cache.refresh(CollectionKind.RESIDENTS)

        assert seen == []

    @pytest.mark.asyncio
    async def test_find_resident(self, cache):
        await cache.refresh(CollectionKind.RESIDENTS)

        assert cache.find_resident(JANE_ID).name == "Jane Doe"
        assert cache.find_resident("missing") is None
        assert cache.find_resident("") is None

    @pytest.mark.asyncio
    async def test_raising_observer_is_skipped(self, cache):
        seen = []

        def broken_observer(kind):
            raise ValueError("boom")

        cache.add_observer(broken_observer)
        cache.add_observer(seen.append)

        snapshot = await cache.refresh(CollectionKind.RESIDENTS)

        assert len(snapshot) == 2
        assert cache.residents is snapshot
        assert seen == [CollectionKind.RESIDENTS]
