"""
Services package for package desk state and business operations.

This package provides the view cache, the packages change listener, the
derived package filters and the mutation coordinator, plus a factory that
wires them to one record store.
"""

import logging
from typing import Optional

from ..config import get_config
from ..repositories import RepositoryFactory
from ..utils.database import RecordStore
from .change_listener import PackageChangeListener
from .mutation_coordinator import MutationCoordinator
from .package_filters import available_packages, recent_check_outs
from .view_cache import CollectionKind, ViewCache

logger = logging.getLogger(__name__)


class ServiceFactory:
    """
    Factory for creating and managing service instances.

    Every service and view built by one factory shares the same record store
    and the same view cache.
    """

    def __init__(self, store: Optional[RecordStore] = None):
        self.repositories = RepositoryFactory(store)
        self._services: dict = {}

    @property
    def store(self) -> RecordStore:
        return self.repositories.store

    def get_view_cache(self) -> ViewCache:
        if 'view_cache' not in self._services:
            self._services['view_cache'] = ViewCache(
                self.repositories.get_resident_repository(),
                self.repositories.get_storage_location_repository(),
                self.repositories.get_package_repository(),
            )
            logger.debug("Created new ViewCache instance")
        return self._services['view_cache']

    def get_mutation_coordinator(self) -> MutationCoordinator:
        if 'mutation_coordinator' not in self._services:
            self._services['mutation_coordinator'] = MutationCoordinator(
                self.repositories.get_package_repository(),
                self.get_view_cache(),
                default_operator=get_config().desk.default_operator,
            )
            logger.debug("Created new MutationCoordinator instance")
        return self._services['mutation_coordinator']

    def create_change_listener(self) -> PackageChangeListener:
        """Each check-out view owns its own listener."""
        return PackageChangeListener(self.store, self.get_view_cache())

    def create_check_in_view(self):
        from ..views.check_in_view import CheckInView

        return CheckInView(self.get_view_cache(), self.get_mutation_coordinator())

    def create_check_out_view(self):
        from ..views.check_out_view import CheckOutView

        return CheckOutView(
            self.get_view_cache(),
            self.get_mutation_coordinator(),
            self.create_change_listener(),
            recent_limit=get_config().desk.recent_checkouts_limit,
        )

    def create_residents_view(self):
        from ..views.residents_view import ResidentsView

        return ResidentsView(self.get_view_cache(), self.repositories.get_resident_repository())

    def reset(self):
        """Reset all services (useful for testing)."""
        self._services.clear()
        self.repositories.reset()
        logger.info("Service factory reset")


# Global service factory instance
_service_factory: Optional[ServiceFactory] = None


def get_service_factory() -> ServiceFactory:
    """
    Get the global service factory instance.

    Returns:
        Service factory instance
    """
    global _service_factory
    if _service_factory is None:
        _service_factory = ServiceFactory()
    return _service_factory


__all__ = [
    "CollectionKind",
    "MutationCoordinator",
    "PackageChangeListener",
    "ServiceFactory",
    "ViewCache",
    "available_packages",
    "get_service_factory",
    "recent_check_outs",
]
