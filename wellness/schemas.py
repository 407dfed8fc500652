"""Request, response and record schemas shared by service and client."""

from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError

RecordId = Union[int, str]
"""Record identifier: an integer from the service, a string from local storage."""

SchemaT = TypeVar("SchemaT", bound=BaseModel)

_LOCATION_PREFIXES = ("body", "path", "query")

# Identifiers are stored as signed 64-bit integers
MIN_ID = -(2**63)
MAX_ID = 2**63 - 1


def utcnow() -> datetime:
    """Current time as a naive UTC datetime, the form stored everywhere."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _not_blank(value: str, field: str) -> str:
    if not value.strip():
        raise ValueError(f"{field} must not be blank")
    return value


def _reject_bool(value: Any) -> Any:
    if isinstance(value, bool):
        raise ValueError("Input should be a valid integer")
    return value


class JournalEntryCreate(BaseModel):
    """Payload for creating a journal entry."""

    user_id: int = Field(ge=MIN_ID, le=MAX_ID)
    entry_text: str = Field(min_length=1)
    mood_rating: int = Field(ge=1, le=5)
    timestamp: Optional[datetime] = None

    @field_validator("user_id", "mood_rating", mode="before")
    @classmethod
    def integers_not_bool(cls, value: Any) -> Any:
        return _reject_bool(value)

    @field_validator("entry_text")
    @classmethod
    def entry_text_not_blank(cls, value: str) -> str:
        return _not_blank(value, "entry_text")

    @field_validator("timestamp")
    @classmethod
    def timestamp_to_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value) if value is not None else None


class ContactCreate(BaseModel):
    """Payload for adding a contact. The email is lower-cased."""

    user_id: int = Field(ge=MIN_ID, le=MAX_ID)
    contact_name: str = Field(min_length=1)
    contact_email: EmailStr

    @field_validator("user_id", mode="before")
    @classmethod
    def user_id_not_bool(cls, value: Any) -> Any:
        return _reject_bool(value)

    @field_validator("contact_name")
    @classmethod
    def contact_name_not_blank(cls, value: str) -> str:
        return _not_blank(value, "contact_name")

    @field_validator("contact_email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.strip().lower()


class JournalEntryRecord(BaseModel):
    """Normalized journal entry, whichever store produced it."""

    id: RecordId
    user_id: int
    entry_text: str
    mood_rating: int
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("timestamp")
    @classmethod
    def timestamp_to_utc(cls, value: datetime) -> datetime:
        return to_naive_utc(value)


class ContactRecord(BaseModel):
    """Normalized contact, whichever store produced it."""

    id: RecordId
    user_id: int
    contact_name: str
    contact_email: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("created_at")
    @classmethod
    def created_at_to_utc(cls, value: datetime) -> datetime:
        return to_naive_utc(value)


class MessageOut(BaseModel):
    """Generic success envelope."""

    success: bool = True
    message: str


class JournalEntryCreated(MessageOut):
    entry_id: int
    timestamp: datetime


class JournalEntryList(BaseModel):
    success: bool = True
    entries: List[JournalEntryRecord]
    count: int


class ContactCreated(MessageOut):
    contact_id: int
    created_at: datetime


class ContactList(BaseModel):
    success: bool = True
    contacts: List[ContactRecord]
    count: int


def describe_errors(errors: Sequence[dict[str, Any]]) -> tuple[str | None, str]:
    """
    Reduce pydantic/FastAPI error dicts to the first offending field.

    Args:
        errors: Error dicts as returned by ``ValidationError.errors()``.

    Returns:
        tuple: Dotted field name (or ``None``) and the error message.
    """
    if not errors:
        return None, "Invalid input"
    first = errors[0]
    loc = [str(part) for part in first.get("loc", ())]
    if loc and loc[0] in _LOCATION_PREFIXES:
        loc = loc[1:]
    return (".".join(loc) or None), first.get("msg", "Invalid input")


def validate_payload(schema: Type[SchemaT], data: Any) -> SchemaT:
    """
    Validate ``data`` against ``schema``.

    Raises:
        ValidationError: Naming the first offending field.
    """
    try:
        return schema.model_validate(data)
    except PydanticValidationError as exc:
        field, details = describe_errors(exc.errors())
        raise ValidationError("Validation error", field=field, details=details)


def parse_id(raw: Any, label: str = "ID", field: str = "id") -> int:
    """
    Parse a numeric identifier.

    Raises:
        ValidationError: If ``raw`` is not an integer in the signed 64-bit range.
    """
    if isinstance(raw, bool):
        raise ValidationError(f"Invalid {label}", field=field)
    if isinstance(raw, int):
        value = raw
    else:
        try:
            value = int(str(raw).strip())
        except ValueError:
            raise ValidationError(f"Invalid {label}", field=field)
    if not MIN_ID <= value <= MAX_ID:
        raise ValidationError(f"Invalid {label}", field=field)
    return value
