"""
Storage Location Repository.

Storage locations are pre-populated outside the desk, so this repository is
read-only.
"""

from typing import Optional

from ..repositories.base_repository import BaseRepository
from ..schemas.database_models import StorageLocation
from ..utils.database import RecordStore


class StorageLocationRepository(BaseRepository[StorageLocation]):
    """Read-only repository for shelves and bins."""

    default_order = ("location_name", False)

    def __init__(self, store: Optional[RecordStore] = None):
        super().__init__(StorageLocation, "storage_locations", store)
