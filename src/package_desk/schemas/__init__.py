"""
Pydantic schemas for database rows, change events, forms and notifications.
"""

from .database_models import (
    BaseEntity,
    ChangeEvent,
    ChangeType,
    Package,
    PackageCheckOut,
    PackageCreate,
    PackageStatus,
    Resident,
    ResidentCreate,
    ResidentSummary,
    ResidentUpdate,
    StorageLocation,
    StorageLocationSummary,
)
from .view_schemas import (
    CheckInForm,
    CheckInResult,
    ErrorCode,
    FormValidationError,
    Notification,
    NotificationVariant,
    parse_form,
)

__all__ = [
    "BaseEntity",
    "ChangeEvent",
    "ChangeType",
    "Package",
    "PackageCheckOut",
    "PackageCreate",
    "PackageStatus",
    "Resident",
    "ResidentCreate",
    "ResidentSummary",
    "ResidentUpdate",
    "StorageLocation",
    "StorageLocationSummary",
    "CheckInForm",
    "CheckInResult",
    "ErrorCode",
    "FormValidationError",
    "Notification",
    "NotificationVariant",
    "parse_form",
]
