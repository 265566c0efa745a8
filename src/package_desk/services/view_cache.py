"""
View Cache for residents, storage locations and packages.

The cache holds the last successfully fetched snapshot of each collection.
A refresh always replaces the whole collection with a fresh read; it never
merges deltas. Snapshots are immutable tuples swapped in a single
assignment, so a reader sees either the previous or the new collection and
never a partial one. When two refreshes of the same collection overlap, the
one that completes last wins; because every refresh is a full read the
cache converges on the store's state.
"""

import logging
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from ..repositories import PackageRepository, ResidentRepository, StorageLocationRepository
from ..schemas.database_models import Package, Resident, StorageLocation

logger = logging.getLogger(__name__)


class CollectionKind(str, Enum):
    """Named collections held by the cache."""
    RESIDENTS = "residents"
    STORAGE_LOCATIONS = "storage_locations"
    PACKAGES = "packages"


CacheObserver = Callable[[CollectionKind], None]


class ViewCache:
    """
    Injectable container for the three cached collections.

    Observers are called synchronously after every successful replacement;
    derived views use this to re-evaluate. An observer that raises is
    logged and skipped.
    """

    def __init__(
        self,
        resident_repository: ResidentRepository,
        storage_location_repository: StorageLocationRepository,
        package_repository: PackageRepository,
    ):
        self._repositories = {
            CollectionKind.RESIDENTS: resident_repository,
            CollectionKind.STORAGE_LOCATIONS: storage_location_repository,
            CollectionKind.PACKAGES: package_repository,
        }
        self._collections: Dict[CollectionKind, Tuple] = {kind: () for kind in CollectionKind}
        self._versions: Dict[CollectionKind, int] = {kind: 0 for kind in CollectionKind}
        self._observers: List[CacheObserver] = []

    @property
    def residents(self) -> Tuple[Resident, ...]:
        return self._collections[CollectionKind.RESIDENTS]

    @property
    def storage_locations(self) -> Tuple[StorageLocation, ...]:
        return self._collections[CollectionKind.STORAGE_LOCATIONS]

    @property
    def packages(self) -> Tuple[Package, ...]:
        return self._collections[CollectionKind.PACKAGES]

    def get(self, kind: CollectionKind) -> Tuple:
        return self._collections[CollectionKind(kind)]

    def version(self, kind: CollectionKind) -> int:
        """Number of completed replacements of ``kind``."""
        return self._versions[CollectionKind(kind)]

    async def refresh(self, kind: CollectionKind) -> Tuple:
        """
        Replace one collection with a fresh read from the record store.

        Returns:
            The new snapshot

        Raises:
            RepositoryError: If the read fails; the previous snapshot is kept
        """
        kind = CollectionKind(kind)
        records = await self._repositories[kind].list_all()
        snapshot = tuple(records)

        self._collections[kind] = snapshot
        self._versions[kind] += 1
        logger.debug(f"[ViewCache] {kind.value} refreshed: {len(snapshot)} records (v{self._versions[kind]})")

        for observer in list(self._observers):
            try:
                observer(kind)
            except Exception:
                # Observer errors are logged; the replacement stands.
                logger.exception(f"[ViewCache] Observer failed after {kind.value} refresh")
        return snapshot

    async def refresh_many(self, *kinds: CollectionKind) -> None:
        """Refresh the given collections one after another."""
        for kind in kinds:
            await self.refresh(kind)

    async def refresh_all(self) -> None:
        await self.refresh_many(*CollectionKind)

    def add_observer(self, observer: CacheObserver) -> Callable[[], None]:
        """
        Register a replacement observer.

        Returns:
            A callable that removes the observer again
        """
        self._observers.append(observer)

        def _remove() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _remove

    def find_resident(self, resident_id: Optional[str]) -> Optional[Resident]:
        if not resident_id:
            return None
        return next((r for r in self.residents if r.id == resident_id), None)
