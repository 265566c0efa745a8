"""
Package Repository for check-in and check-out writes.

This module provides the two package writes the desk performs, each a single
record store call:

- check-in: one insert with status forced to ``checked_in``
- check-out: one conditional update that only matches rows still
  ``checked_in``, so status, checked_out_at and checked_out_by are written
  together exactly once even when several terminals race

Listings embed the owning resident's name/house number and the storage
location name, newest check-in first.
"""

import logging
from typing import Optional

from ..repositories.base_repository import (
    BaseRepository,
    DatabaseOperationError,
    EntityNotFoundError,
    PackageAlreadyCheckedOutError,
)
from ..schemas.database_models import Package, PackageCheckOut, PackageCreate, PackageStatus
from ..utils.database import RecordStore

logger = logging.getLogger(__name__)

PACKAGE_DETAIL_COLUMNS = "*, residents(name, house_number), storage_locations(location_name)"


class PackageRepository(BaseRepository[Package]):
    """Repository for package entity operations."""

    select_columns = PACKAGE_DETAIL_COLUMNS
    default_order = ("checked_in_at", True)

    def __init__(self, store: Optional[RecordStore] = None):
        """Initialize the package repository."""
        super().__init__(Package, "packages", store)

    async def check_in(self, package_data: PackageCreate) -> Package:
        """
        Insert a new package in ``checked_in`` status.

        Args:
            package_data: Validated check-in fields

        Returns:
            The created package row

        Raises:
            DatabaseOperationError: If the store rejects the insert
        """
        self._logger.info(
            f"Checking in package {package_data.package_id} for resident {package_data.resident_id}"
        )
        row = await self._run("insert", self.store.insert(self.table_name, package_data.to_insert_fields()))
        created = self._row_to_model(row)
        self._logger.info(f"Package {created.package_id} checked in with ID: {created.id}")
        return created

    async def check_out(self, package_record_id: str, check_out: PackageCheckOut) -> Package:
        """
        Check a package out with one conditional update.

        Raises:
            PackageAlreadyCheckedOutError: If the row is already checked out
            EntityNotFoundError: If no package has this ID
            DatabaseOperationError: If the store rejects the update
        """
        self._logger.info(f"Checking out package {package_record_id} by {check_out.checked_out_by}")
        rows = await self._run(
            "update",
            self.store.update(
                self.table_name,
                package_record_id,
                check_out.to_update_fields(),
                match={"status": PackageStatus.CHECKED_IN.value},
            ),
        )
        if rows:
            return self._row_to_model(rows[0])

        # Nothing matched: tell "already checked out" apart from "missing".
        existing = await self.get_by_id(package_record_id)
        if existing is None:
            self._logger.warning(f"Check-out of unknown package {package_record_id}")
            raise EntityNotFoundError(f"Package {package_record_id} not found")
        if existing.is_available:
            # Row is visible and still checked in, yet the store applied nothing (e.g. row policies).
            raise DatabaseOperationError(
                f"Package {existing.package_id} could not be updated", operation="update"
            )

        self._logger.warning(
            f"Package {existing.package_id} already checked out at {existing.checked_out_at} "
            f"by {existing.checked_out_by}"
        )
        raise PackageAlreadyCheckedOutError(package_record_id, existing.package_id)
