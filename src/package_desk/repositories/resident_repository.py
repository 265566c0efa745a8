"""
Resident Repository for the resident directory.

Residents are listed by name and created, edited and deleted from the
Residents surface. Deleting a resident that still owns packages is left to
the record store's own constraints.
"""

import logging
from typing import Optional

from ..repositories.base_repository import BaseRepository, EntityNotFoundError
from ..schemas.database_models import Resident, ResidentCreate, ResidentUpdate
from ..utils.database import RecordStore

logger = logging.getLogger(__name__)


class ResidentRepository(BaseRepository[Resident]):
    """Repository for resident entity operations."""

    default_order = ("name", False)

    def __init__(self, store: Optional[RecordStore] = None):
        """Initialize the resident repository."""
        super().__init__(Resident, "residents", store)

    async def create(self, resident_data: ResidentCreate) -> Resident:
        """
        Create a new resident.

        Args:
            resident_data: Validated resident fields

        Returns:
            Created resident entity

        Raises:
            DatabaseOperationError: If the store rejects the insert
        """
        self._logger.info(f"Creating resident {resident_data.name} (house {resident_data.house_number})")
        row = await self._run("insert", self.store.insert(self.table_name, resident_data.model_dump()))
        created = self._row_to_model(row)
        self._logger.info(f"Resident created successfully with ID: {created.id}")
        return created

    async def update(self, resident_id: str, resident_update: ResidentUpdate) -> Resident:
        """
        Replace a resident's editable fields.

        Raises:
            EntityNotFoundError: If no resident has this ID
            DatabaseOperationError: If the store rejects the update
        """
        self._logger.info(f"Updating resident {resident_id}")
        rows = await self._run(
            "update",
            self.store.update(self.table_name, resident_id, resident_update.model_dump()),
        )
        if not rows:
            raise EntityNotFoundError(f"Resident {resident_id} not found")
        return self._row_to_model(rows[0])

    async def delete(self, resident_id: str) -> None:
        """Delete a resident by ID."""
        self._logger.info(f"Deleting resident {resident_id}")
        await self._run("delete", self.store.delete(self.table_name, resident_id))
