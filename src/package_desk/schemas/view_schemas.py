"""
Form and notification schemas for the staff surfaces.

Forms are validated before anything reaches the record store; validation
failures are reported per field so they can be shown next to the input.
"""

from enum import Enum
from typing import Any, Dict, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError, field_validator

ModelT = TypeVar("ModelT", bound=BaseModel)


class FormValidationError(Exception):
    """Raised when form input is rejected before reaching the store."""

    def __init__(self, field_errors: Dict[str, str]):
        self.field_errors = field_errors
        summary = "; ".join(f"{name}: {msg}" for name, msg in field_errors.items())
        super().__init__(f"Invalid form input ({summary})")


# Messages shown for missing required fields, keyed by field name.
REQUIRED_MESSAGES = {
    "package_id": "Package ID is required",
    "resident_id": "Resident is required",
    "storage_location_id": "Storage location is required",
    "name": "Name is required",
    "house_number": "House number is required",
}


def parse_form(model_class: Type[ModelT], data: Mapping[str, Any]) -> ModelT:
    """
    Validate raw form values into a model.

    Raises:
        FormValidationError: With one message per offending field
    """
    try:
        return model_class.model_validate(dict(data))
    except ValidationError as e:
        field_errors: Dict[str, str] = {}
        for error in e.errors():
            name = str(error["loc"][0]) if error.get("loc") else "__all__"
            if name in field_errors:
                continue
            if error["type"] in ("missing", "string_too_short") and name in REQUIRED_MESSAGES:
                field_errors[name] = REQUIRED_MESSAGES[name]
            else:
                field_errors[name] = error["msg"].removeprefix("Value error, ")
        raise FormValidationError(field_errors) from e


def _optional_text(v: Any) -> Any:
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


class CheckInForm(BaseModel):
    """Package check-in form values."""
    package_id: str = Field(..., min_length=1)
    resident_id: str = Field(..., min_length=1)
    storage_location_id: str = Field(..., min_length=1)
    description: Optional[str] = None
    color: Optional[str] = None
    size: Optional[str] = None
    notes: Optional[str] = None
    checked_in_by: Optional[str] = None

    @field_validator("package_id", "resident_id", "storage_location_id", mode="before")
    @classmethod
    def strip_required(cls, v: Any) -> Any:
        if v is None:
            return ""
        return v.strip() if isinstance(v, str) else v

    @field_validator("description", "color", "size", "notes", "checked_in_by", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        return _optional_text(v)


class NotificationVariant(str, Enum):
    DEFAULT = "default"
    DESTRUCTIVE = "destructive"


class ErrorCode(str, Enum):
    """Machine-readable reason attached to failed operations."""
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    ALREADY_CHECKED_OUT = "already_checked_out"
    STORE = "store"


class Notification(BaseModel):
    """User-visible outcome of a staff operation."""
    title: str
    description: str = ""
    variant: NotificationVariant = NotificationVariant.DEFAULT
    error_code: Optional[ErrorCode] = None
    field_errors: Dict[str, str] = Field(default_factory=dict)
    data: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_error(self) -> bool:
        return self.variant == NotificationVariant.DESTRUCTIVE

    @classmethod
    def success(cls, title: str, description: str = "", **data: Any) -> "Notification":
        return cls(title=title, description=description, data=data)

    @classmethod
    def error(cls, description: str, error_code: ErrorCode = ErrorCode.STORE,
              field_errors: Optional[Dict[str, str]] = None) -> "Notification":
        return cls(
            title="Error",
            description=description,
            variant=NotificationVariant.DESTRUCTIVE,
            error_code=error_code,
            field_errors=field_errors or {},
        )


class CheckInResult(BaseModel):
    """Returned by a successful check-in for confirmation messaging."""
    package_record_id: str
    package_id: str
    resident_name: str
