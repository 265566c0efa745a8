"""
Repository Layer Initialization and Factory.

This module provides centralized access to all repositories with dependency
injection of the record store for easy testing and configuration.
"""

import logging
from typing import Dict, Optional

from .base_repository import (
    BaseRepository,
    DatabaseOperationError,
    EntityNotFoundError,
    EntityValidationError,
    PackageAlreadyCheckedOutError,
    RepositoryError,
)
from .package_repository import PackageRepository
from .resident_repository import ResidentRepository
from .storage_location_repository import StorageLocationRepository
from ..utils.database import RecordStore, get_record_store

logger = logging.getLogger(__name__)


class RepositoryFactory:
    """
    Factory class for creating and managing repository instances.

    All repositories created by one factory share the same record store.
    """

    def __init__(self, store: Optional[RecordStore] = None):
        """Initialize the repository factory."""
        self._store = store
        self._repositories: Dict[str, BaseRepository] = {}
        self._initialized = False

    @property
    def store(self) -> RecordStore:
        if self._store is None:
            self._store = get_record_store()
        return self._store

    def initialize(self) -> None:
        """Initialize all repositories."""
        if self._initialized:
            return

        self._repositories['resident'] = ResidentRepository(self.store)
        self._repositories['storage_location'] = StorageLocationRepository(self.store)
        self._repositories['package'] = PackageRepository(self.store)

        self._initialized = True
        logger.info("Repository factory initialized successfully")

    def get_resident_repository(self) -> ResidentRepository:
        """Get the resident repository instance."""
        if not self._initialized:
            self.initialize()
        return self._repositories['resident']

    def get_storage_location_repository(self) -> StorageLocationRepository:
        """Get the storage location repository instance."""
        if not self._initialized:
            self.initialize()
        return self._repositories['storage_location']

    def get_package_repository(self) -> PackageRepository:
        """Get the package repository instance."""
        if not self._initialized:
            self.initialize()
        return self._repositories['package']

    def reset(self) -> None:
        """Reset the factory (useful for testing)."""
        self._repositories.clear()
        self._initialized = False
        logger.info("Repository factory reset")


__all__ = [
    "BaseRepository",
    "DatabaseOperationError",
    "EntityNotFoundError",
    "EntityValidationError",
    "PackageAlreadyCheckedOutError",
    "RepositoryError",
    "PackageRepository",
    "ResidentRepository",
    "StorageLocationRepository",
    "RepositoryFactory",
]
