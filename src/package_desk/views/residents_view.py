"""
Residents surface: add, edit and remove residents from the directory.
"""

import logging
from typing import Any, Mapping, Optional, Tuple

from ..repositories import EntityNotFoundError, RepositoryError, ResidentRepository
from ..schemas.database_models import Resident, ResidentCreate, ResidentUpdate
from ..schemas.view_schemas import ErrorCode, FormValidationError, Notification, parse_form
from ..services.view_cache import CollectionKind, ViewCache

logger = logging.getLogger(__name__)


class ResidentsView:
    """Resident directory management."""

    def __init__(self, cache: ViewCache, repository: ResidentRepository):
        self._cache = cache
        self._repository = repository

    @property
    def residents(self) -> Tuple[Resident, ...]:
        return self._cache.residents

    async def enter(self) -> Optional[Notification]:
        try:
            await self._cache.refresh(CollectionKind.RESIDENTS)
        except RepositoryError as e:
            logger.error(f"[ResidentsView] Failed to load residents: {e.message}")
            return Notification.error(e.message)
        return None

    async def save(self, values: Mapping[str, Any], resident_id: Optional[str] = None) -> Notification:
        """Create a resident, or update one when ``resident_id`` is given."""
        try:
            if resident_id:
                data = parse_form(ResidentUpdate, values)
                resident = await self._repository.update(resident_id, data)
                notification = Notification.success(
                    "Resident updated successfully",
                    f"{resident.name}'s information has been updated",
                    resident_id=resident.id,
                )
            else:
                data = parse_form(ResidentCreate, values)
                resident = await self._repository.create(data)
                notification = Notification.success(
                    "Resident added successfully",
                    f"{resident.name} has been added to the system",
                    resident_id=resident.id,
                )
        except FormValidationError as e:
            return Notification.error(
                "Please fix the highlighted fields",
                error_code=ErrorCode.VALIDATION,
                field_errors=e.field_errors,
            )
        except EntityNotFoundError as e:
            return Notification.error(e.message, error_code=ErrorCode.NOT_FOUND)
        except RepositoryError as e:
            return Notification.error(e.message)

        await self._refresh_residents()
        return notification

    async def delete(self, resident_id: str) -> Notification:
        resident = self._cache.find_resident(resident_id)
        name = resident.name if resident else "Resident"
        try:
            await self._repository.delete(resident_id)
        except RepositoryError as e:
            return Notification.error(e.message)

        await self._refresh_residents()
        return Notification.success(
            "Resident deleted",
            f"{name} has been removed from the system",
            resident_id=resident_id,
        )

    async def _refresh_residents(self) -> None:
        try:
            await self._cache.refresh(CollectionKind.RESIDENTS)
        except RepositoryError as e:
            logger.warning(f"[ResidentsView] Residents refresh after write failed: {e.message}")
