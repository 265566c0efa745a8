"""
Base Repository Pattern for Record Store Operations.

This module provides a generic base repository with the operations shared by
all desk tables, the repository error taxonomy, and the conversion of raw
store rows into validated models.

Features:
- Generic row-to-model conversion with type safety
- Store failures wrapped with the store's own message kept verbatim
- Logging for every read and write
- No automatic retries: every call is single-attempt and fail-fast
"""

import logging
from abc import ABC
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from pydantic import ValidationError

from ..schemas.database_models import BaseEntity
from ..utils.database import OrderSpec, RecordStore, get_record_store

logger = logging.getLogger(__name__)

# Generic type variable for repository pattern
ModelType = TypeVar('ModelType', bound=BaseEntity)


class RepositoryError(Exception):
    """Base exception for repository operations."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class EntityNotFoundError(RepositoryError):
    """Raised when an entity is not found."""
    pass


class EntityValidationError(RepositoryError):
    """Raised when a stored row does not match its model."""
    pass


class DatabaseOperationError(RepositoryError):
    """Raised when a record store operation fails. ``message`` is the store's text."""

    def __init__(self, message: str, operation: Optional[str] = None):
        self.operation = operation
        super().__init__(message)


class PackageAlreadyCheckedOutError(RepositoryError):
    """Raised when checking out a package whose status is already checked_out."""

    def __init__(self, package_record_id: str, package_id: Optional[str] = None):
        self.package_record_id = package_record_id
        self.package_id = package_id
        label = package_id or package_record_id
        super().__init__(f"Package {label} has already been checked out")


def store_error_message(error: Exception) -> str:
    """Extract the human-readable reason from a store/client exception."""
    message = getattr(error, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(error) or error.__class__.__name__


class BaseRepository(ABC, Generic[ModelType]):
    """
    Base repository class providing common record store operations.

    Concrete repositories set the model, table name, select columns and
    default ordering for their table.
    """

    select_columns: str = "*"
    default_order: Optional[OrderSpec] = None

    def __init__(self, model_class: Type[ModelType], table_name: str, store: Optional[RecordStore] = None):
        """
        Initialize the repository.

        Args:
            model_class: The Pydantic model class for this repository
            table_name: The record store table name
            store: Record store to use; defaults to the global store
        """
        self.model_class = model_class
        self.table_name = table_name
        self.store = store if store is not None else get_record_store()
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def _run(self, operation: str, coro) -> Any:
        """
        Await a store call, wrapping failures in DatabaseOperationError.

        Repository errors raised by the store pass through unchanged.
        """
        try:
            return await coro
        except RepositoryError:
            raise
        except Exception as e:
            message = store_error_message(e)
            self._logger.error(f"{operation} on {self.table_name} failed: {message}")
            raise DatabaseOperationError(message, operation=operation) from e

    def _row_to_model(self, row: Optional[Dict[str, Any]]) -> Optional[ModelType]:
        """
        Convert a store row to a Pydantic model.

        Raises:
            EntityValidationError: If model validation fails
        """
        if not row:
            return None

        try:
            return self.model_class.model_validate(row)
        except ValidationError as e:
            self._logger.error(f"Model validation failed: {e}")
            raise EntityValidationError(f"Failed to create {self.model_class.__name__}: {e}")

    def _rows_to_models(self, rows: List[Dict[str, Any]]) -> List[ModelType]:
        """Convert multiple store rows to Pydantic models."""
        models = []
        for row in rows:
            model = self._row_to_model(row)
            if model:
                models.append(model)
        return models

    async def list_all(self) -> List[ModelType]:
        """
        List every row of the table in the repository's default order.

        Raises:
            DatabaseOperationError: If the read fails
        """
        rows = await self._run(
            "select",
            self.store.select(self.table_name, columns=self.select_columns, order=self.default_order),
        )
        models = self._rows_to_models(rows or [])
        self._logger.debug(f"Fetched {len(models)} rows from {self.table_name}")
        return models

    async def get_by_id(self, entity_id: str) -> Optional[ModelType]:
        """Get an entity by its ID, or None when it does not exist."""
        rows = await self._run(
            "select",
            self.store.select(self.table_name, columns=self.select_columns, filters={"id": entity_id}),
        )
        return self._row_to_model(rows[0]) if rows else None

    async def exists(self, entity_id: str) -> bool:
        """Check if an entity exists by its ID."""
        rows = await self._run(
            "select",
            self.store.select(self.table_name, columns="id", filters={"id": entity_id}),
        )
        return bool(rows)
