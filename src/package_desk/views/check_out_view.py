"""
Check-Out surface: find a resident's waiting packages and hand them over.

While the view is active it keeps a live subscription to the packages
change feed, so packages checked in or out from other terminals appear and
disappear without a manual reload. The available-packages list is always
derived from the current cache snapshot and selection.
"""

import logging
from typing import Callable, List, Optional, Tuple

from ..repositories import EntityNotFoundError, PackageAlreadyCheckedOutError, RepositoryError
from ..schemas.database_models import Package, Resident
from ..schemas.view_schemas import ErrorCode, Notification
from ..services.change_listener import PackageChangeListener
from ..services.mutation_coordinator import MutationCoordinator
from ..services.package_filters import available_packages, recent_check_outs
from ..services.view_cache import CollectionKind, ViewCache

logger = logging.getLogger(__name__)

AvailableListener = Callable[[List[Package]], None]


class CheckOutView:
    """
    Check-out screen state for one staff terminal.

    Usable as an async context manager: entering loads data and starts the
    change listener, leaving stops it.
    """

    def __init__(
        self,
        cache: ViewCache,
        coordinator: MutationCoordinator,
        listener: PackageChangeListener,
        recent_limit: int = 5,
    ):
        self._cache = cache
        self._coordinator = coordinator
        self._listener = listener
        self._recent_limit = recent_limit
        self._selected_resident_id: Optional[str] = None
        self._remove_observer: Optional[Callable[[], None]] = None
        self._available_listeners: List[AvailableListener] = []
        self.checked_out_by = ""

    @property
    def is_active(self) -> bool:
        return self._remove_observer is not None

    @property
    def listener(self) -> PackageChangeListener:
        return self._listener

    @property
    def residents(self) -> Tuple[Resident, ...]:
        return self._cache.residents

    @property
    def selected_resident(self) -> Optional[Resident]:
        return self._cache.find_resident(self._selected_resident_id)

    @property
    def available_packages(self) -> List[Package]:
        if self.selected_resident is None:
            return []
        return available_packages(self._selected_resident_id, self._cache.packages)

    @property
    def recent_check_outs(self) -> List[Package]:
        return recent_check_outs(self._cache.packages, self._recent_limit)

    def on_available_changed(self, listener: AvailableListener) -> None:
        """Register a callback receiving the re-derived available list."""
        self._available_listeners.append(listener)

    def _rederive(self) -> None:
        current = self.available_packages
        for listener in list(self._available_listeners):
            listener(current)

    def _on_cache_replaced(self, kind: CollectionKind) -> None:
        if kind in (CollectionKind.PACKAGES, CollectionKind.RESIDENTS):
            self._rederive()

    async def enter(self) -> Optional[Notification]:
        """Load residents and packages and start live updates."""
        if self._remove_observer is None:
            self._remove_observer = self._cache.add_observer(self._on_cache_replaced)
        try:
            await self._listener.start()
        except Exception as e:
            # Without the feed the view still works from explicit refreshes.
            logger.warning(f"[CheckOutView] Live updates unavailable: {e}")
        try:
            await self._cache.refresh_many(CollectionKind.RESIDENTS, CollectionKind.PACKAGES)
        except RepositoryError as e:
            logger.error(f"[CheckOutView] Failed to load check-out data: {e.message}")
            return Notification.error(e.message)
        return None

    async def exit(self) -> None:
        """Stop live updates. The view can be entered again later."""
        await self._listener.stop()
        if self._remove_observer is not None:
            self._remove_observer()
            self._remove_observer = None

    async def __aenter__(self) -> "CheckOutView":
        await self.enter()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.exit()

    def select_resident(self, resident_id: Optional[str]) -> Optional[Resident]:
        """
        Select the resident whose packages are shown.

        An empty or unknown id clears the selection.
        """
        resident = self._cache.find_resident(resident_id)
        self._selected_resident_id = resident.id if resident else None
        self._rederive()
        return resident

    async def select_resident_reloading(
        self, resident_id: Optional[str]
    ) -> Tuple[Optional[Resident], Optional[Notification]]:
        """
        Select a resident, reloading the directory once when the id is not cached.

        Residents added from another terminal are not pushed to this view,
        so a miss triggers one residents refresh before giving up.
        """
        resident = self.select_resident(resident_id)
        if resident is not None or not resident_id:
            return resident, None
        try:
            await self._cache.refresh(CollectionKind.RESIDENTS)
        except RepositoryError as e:
            logger.error(f"[CheckOutView] Failed to reload residents: {e.message}")
            return None, Notification.error(e.message)
        return self.select_resident(resident_id), None

    async def check_out(self, package_record_id: str, operator_name: Optional[str] = None) -> Notification:
        """Check a package out as ``operator_name``, defaulting to this terminal's operator field."""
        operator = operator_name if operator_name is not None else self.checked_out_by
        try:
            await self._coordinator.check_out(package_record_id, operator)
        except PackageAlreadyCheckedOutError as e:
            return Notification.error(e.message, error_code=ErrorCode.ALREADY_CHECKED_OUT)
        except EntityNotFoundError as e:
            return Notification.error(e.message, error_code=ErrorCode.NOT_FOUND)
        except RepositoryError as e:
            logger.error(f"[CheckOutView] Check-out failed: {e.message}")
            return Notification.error(e.message)

        return Notification.success(
            "Package checked out successfully",
            "The package has been delivered to the resident",
            package_record_id=package_record_id,
        )
