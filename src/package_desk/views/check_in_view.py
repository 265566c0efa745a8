"""
Check-In surface: log incoming packages for residents.
"""

import logging
from typing import Any, Mapping, Optional, Tuple

from ..repositories import RepositoryError
from ..schemas.database_models import Resident, StorageLocation
from ..schemas.view_schemas import CheckInForm, ErrorCode, FormValidationError, Notification, parse_form
from ..services.mutation_coordinator import MutationCoordinator
from ..services.view_cache import CollectionKind, ViewCache

logger = logging.getLogger(__name__)


class CheckInView:
    """Check-in form backed by the shared view cache."""

    def __init__(self, cache: ViewCache, coordinator: MutationCoordinator):
        self._cache = cache
        self._coordinator = coordinator

    @property
    def residents(self) -> Tuple[Resident, ...]:
        return self._cache.residents

    @property
    def storage_locations(self) -> Tuple[StorageLocation, ...]:
        return self._cache.storage_locations

    def resident_details(self, resident_id: str) -> Optional[Resident]:
        """Resident shown under the picker once one is selected."""
        return self._cache.find_resident(resident_id)

    async def enter(self) -> Optional[Notification]:
        """Load the residents and storage location pickers."""
        try:
            await self._cache.refresh_many(CollectionKind.RESIDENTS, CollectionKind.STORAGE_LOCATIONS)
        except RepositoryError as e:
            logger.error(f"[CheckInView] Failed to load pickers: {e.message}")
            return Notification.error(e.message)
        return None

    async def submit(self, values: Mapping[str, Any]) -> Notification:
        """
        Validate the form and check the package in.

        Returns:
            Success notification naming the package and resident, or an error
            notification (per-field for validation, verbatim store text otherwise)
        """
        try:
            form = parse_form(CheckInForm, values)
            result = await self._coordinator.check_in(
                form.package_id,
                form.resident_id,
                form.storage_location_id,
                description=form.description,
                color=form.color,
                size=form.size,
                notes=form.notes,
                operator_name=form.checked_in_by,
            )
        except FormValidationError as e:
            return Notification.error(
                "Please fix the highlighted fields",
                error_code=ErrorCode.VALIDATION,
                field_errors=e.field_errors,
            )
        except RepositoryError as e:
            logger.error(f"[CheckInView] Check-in failed: {e.message}")
            return Notification.error(e.message)

        return Notification.success(
            "Package checked in successfully",
            f"Package {result.package_id} has been logged for {result.resident_name}",
            package_record_id=result.package_record_id,
            package_id=result.package_id,
            resident_name=result.resident_name,
        )
