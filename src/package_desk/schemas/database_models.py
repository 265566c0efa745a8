"""
Database Schema Models for the Package Desk.

This module contains Pydantic models that represent the desk tables in the
record store, providing validation and serialization for residents, storage
locations, packages and the change events published for them.

Features:
- Validation of required resident fields and email format
- Proper datetime handling for check-in/check-out timestamps
- Embedded join summaries for package listings
- Enum definitions for package status and change event types
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator, ConfigDict


class BaseEntity(BaseModel):
    """Base model for all database entities."""
    model_config = ConfigDict(
        from_attributes=True,
        validate_assignment=True,
        populate_by_name=True,
    )


def _blank_to_none(v: Any) -> Any:
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


class PackageStatus(str, Enum):
    """Lifecycle status of a package. Transitions only CHECKED_IN -> CHECKED_OUT."""
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"


# Resident Models
class Resident(BaseEntity):
    """Resident directory entry."""
    id: str
    name: str = Field(..., min_length=1)
    house_number: str = Field(..., min_length=1)
    phone: Optional[str] = None
    email: Optional[str] = None
    created_at: Optional[datetime] = None


class ResidentCreate(BaseEntity):
    """Resident creation model."""
    name: str = Field(..., min_length=1, max_length=255)
    house_number: str = Field(..., min_length=1, max_length=50)
    phone: Optional[str] = None
    email: Optional[str] = None

    @field_validator('name', 'house_number', mode='before')
    @classmethod
    def strip_required(cls, v: Any) -> Any:
        """Trim required text fields before length checks."""
        return v.strip() if isinstance(v, str) else v

    @field_validator('phone', mode='before')
    @classmethod
    def normalize_phone(cls, v: Any) -> Any:
        """Empty phone numbers are stored as null."""
        return _blank_to_none(v)

    @field_validator('email', mode='before')
    @classmethod
    def validate_email(cls, v: Any) -> Any:
        """Basic email validation; empty strings are stored as null."""
        v = _blank_to_none(v)
        if not isinstance(v, str):
            return v
        if '@' not in v or '.' not in v.split('@')[-1] or v.startswith('@'):
            raise ValueError('Invalid email')
        return v.lower()


class ResidentUpdate(ResidentCreate):
    """Resident update model. Updates replace every editable field."""


# Storage Location Models
class StorageLocation(BaseEntity):
    """Physical shelf or bin. Pre-populated outside the desk."""
    id: str
    location_name: str
    created_at: Optional[datetime] = None


class ResidentSummary(BaseEntity):
    """Resident columns embedded in a package listing."""
    name: str
    house_number: str


class StorageLocationSummary(BaseEntity):
    """Storage location columns embedded in a package listing."""
    location_name: str


# Package Models
class Package(BaseEntity):
    """Tracked package row, optionally with embedded resident/location summaries."""
    id: str
    package_id: str
    description: Optional[str] = None
    color: Optional[str] = None
    size: Optional[str] = None
    notes: Optional[str] = None
    resident_id: str
    storage_location_id: str
    status: PackageStatus = PackageStatus.CHECKED_IN
    checked_in_at: datetime
    checked_in_by: Optional[str] = None
    checked_out_at: Optional[datetime] = None
    checked_out_by: Optional[str] = None
    residents: Optional[ResidentSummary] = None
    storage_locations: Optional[StorageLocationSummary] = None

    @property
    def is_available(self) -> bool:
        """True while the package is still waiting in storage."""
        return self.status == PackageStatus.CHECKED_IN

    @property
    def location_name(self) -> Optional[str]:
        return self.storage_locations.location_name if self.storage_locations else None

    @property
    def resident_name(self) -> Optional[str]:
        return self.residents.name if self.residents else None


class PackageCreate(BaseEntity):
    """
    Package check-in insert.

    Status is always CHECKED_IN and the check-out fields are never part of
    the insert; the store fills checked_in_at.
    """
    package_id: str = Field(..., min_length=1)
    description: Optional[str] = None
    color: Optional[str] = None
    size: Optional[str] = None
    notes: Optional[str] = None
    resident_id: str = Field(..., min_length=1)
    storage_location_id: str = Field(..., min_length=1)
    checked_in_by: Optional[str] = None

    def to_insert_fields(self) -> Dict[str, Any]:
        fields = self.model_dump()
        fields["status"] = PackageStatus.CHECKED_IN.value
        return fields


class PackageCheckOut(BaseEntity):
    """The single atomic write that checks a package out."""
    checked_out_at: datetime
    checked_out_by: str = Field(..., min_length=1)

    def to_update_fields(self) -> Dict[str, Any]:
        return {
            "status": PackageStatus.CHECKED_OUT.value,
            "checked_out_at": self.checked_out_at.isoformat(),
            "checked_out_by": self.checked_out_by,
        }


# Change feed models
class ChangeType(str, Enum):
    """Row mutation kinds published on the change feed."""
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChangeEvent(BaseModel):
    """A single change notification for a table."""
    table: str
    type: ChangeType
    record: Optional[Dict[str, Any]] = None
    old_record: Optional[Dict[str, Any]] = None
    received_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_payload(cls, table: str, payload: Dict[str, Any]) -> "ChangeEvent":
        """
        Build an event from a realtime postgres_changes payload.

        Accepts both the nested ``{"data": {...}}`` shape and the flat
        ``eventType``/``new``/``old`` shape.
        """
        data = payload.get("data", payload) if isinstance(payload, dict) else {}
        raw_type = data.get("type") or data.get("eventType") or ChangeType.UPDATE.value
        raw_type = getattr(raw_type, "value", raw_type)
        return cls(
            table=data.get("table") or table,
            type=ChangeType(str(raw_type).upper()),
            record=data.get("record") or data.get("new") or None,
            old_record=data.get("old_record") or data.get("old") or None,
        )
