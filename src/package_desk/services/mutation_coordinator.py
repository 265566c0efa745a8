"""
Mutation Coordinator for package check-in and check-out.

Each operation is one remote write followed by a refresh of the packages
collection. Local state is never mutated optimistically, so a failed write
needs no rollback. Nothing is retried: a store failure is raised to the
caller with the store's message intact.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from ..repositories import PackageRepository, RepositoryError
from ..schemas.database_models import Package, PackageCheckOut, PackageCreate, Resident
from ..schemas.view_schemas import CheckInForm, CheckInResult, parse_form
from .view_cache import CollectionKind, ViewCache

logger = logging.getLogger(__name__)

DEFAULT_OPERATOR = "Staff"
FALLBACK_RESIDENT_NAME = "Resident"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MutationCoordinator:
    """Runs package writes and keeps the view cache in step with them."""

    def __init__(
        self,
        package_repository: PackageRepository,
        cache: ViewCache,
        default_operator: str = DEFAULT_OPERATOR,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self._packages = package_repository
        self._cache = cache
        self._default_operator = default_operator
        self._clock = clock

    def _operator(self, operator_name: Optional[str]) -> str:
        name = (operator_name or "").strip()
        return name or self._default_operator

    async def check_in(
        self,
        package_id: str,
        resident_id: str,
        storage_location_id: str,
        *,
        description: Optional[str] = None,
        color: Optional[str] = None,
        size: Optional[str] = None,
        notes: Optional[str] = None,
        operator_name: Optional[str] = None,
    ) -> CheckInResult:
        """
        Log an incoming package in ``checked_in`` status.

        Raises:
            FormValidationError: If package, resident or storage location is empty
            RepositoryError: If the store rejects the insert
        """
        form = parse_form(CheckInForm, {
            "package_id": package_id,
            "resident_id": resident_id,
            "storage_location_id": storage_location_id,
            "description": description,
            "color": color,
            "size": size,
            "notes": notes,
            "checked_in_by": operator_name,
        })
        package_data = PackageCreate(
            package_id=form.package_id,
            resident_id=form.resident_id,
            storage_location_id=form.storage_location_id,
            description=form.description,
            color=form.color,
            size=form.size,
            notes=form.notes,
            checked_in_by=self._operator(form.checked_in_by),
        )

        created = await self._packages.check_in(package_data)
        await self._refresh_packages()

        resident = await self._lookup_resident(form.resident_id)
        resident_name = resident.name if resident else FALLBACK_RESIDENT_NAME
        return CheckInResult(
            package_record_id=created.id,
            package_id=created.package_id,
            resident_name=resident_name,
        )

    async def check_out(self, package_record_id: str, operator_name: Optional[str] = None) -> Package:
        """
        Hand a package over to its resident.

        Status, checked_out_at and checked_out_by are written in one
        conditional update that only applies while the package is still
        checked in.

        Raises:
            PackageAlreadyCheckedOutError: If the package was already checked out
            EntityNotFoundError: If the package does not exist
            RepositoryError: If the store rejects the update
        """
        check_out = PackageCheckOut(
            checked_out_at=self._clock(),
            checked_out_by=self._operator(operator_name),
        )
        updated = await self._packages.check_out(package_record_id, check_out)
        await self._refresh_packages()
        return updated

    async def _lookup_resident(self, resident_id: str) -> Optional[Resident]:
        """Find a resident, reloading residents once if another terminal added them."""
        resident = self._cache.find_resident(resident_id)
        if resident is not None:
            return resident
        try:
            await self._cache.refresh(CollectionKind.RESIDENTS)
        except RepositoryError as e:
            logger.warning(f"[MutationCoordinator] Residents refresh failed: {e.message}")
            return None
        return self._cache.find_resident(resident_id)

    async def _refresh_packages(self) -> None:
        # The write already succeeded; a failed read only leaves the cache stale.
        try:
            await self._cache.refresh(CollectionKind.PACKAGES)
        except RepositoryError as e:
            logger.warning(f"[MutationCoordinator] Packages refresh after write failed: {e.message}")
