import re
from enum import Enum
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BaseRequest(BaseModel):
    """Base class for all request models - ignores extra fields."""
    model_config = ConfigDict(extra="ignore")


# Enums
class FieldType(str, Enum):
    TEXT = "text"
    DATE = "date"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    SIGNATURE = "signature"
    IMAGE = "image"


# Tokens that mark a checkbox/radio as checked. Anything else is unchecked,
# including values that merely look truthy (1, "1", "yes").
CHECKED_TOKENS = frozenset({"checked", "true"})


def is_checked(value: Any) -> bool:
    """Return True only for the boolean True or an accepted checked token."""
    if isinstance(value, bool):
        return value
    return isinstance(value, str) and value in CHECKED_TOKENS


# Field descriptors
class Position(BaseModel):
    """Top-left origin, y grows downward (web space)."""
    model_config = ConfigDict(frozen=True)

    x: float
    y: float


class Size(BaseModel):
    model_config = ConfigDict(frozen=True)

    width: float = Field(..., ge=0)
    height: float = Field(..., ge=0)


# ASCII digits only; str.isdigit() also accepts superscripts int() rejects
_PAGE_NUMBER = re.compile(r"-?[0-9]+")


def _coerce_page(v: Any) -> int:
    """
    Accept ints, integral floats and digit strings; everything else
    (absent, null, booleans, junk) falls back to page 1.
    Values below 1 are kept so the dispatcher can report them as out of range.
    """
    if v is None or isinstance(v, bool):
        return 1
    if isinstance(v, int):
        return v
    if isinstance(v, float):
        return int(v) if v.is_integer() else 1
    if isinstance(v, str):
        s = v.strip()
        if _PAGE_NUMBER.fullmatch(s):
            return int(s)
    return 1


class FieldBase(BaseModel):
    """Common attributes of every field descriptor."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    position: Position
    size: Size
    page: int = 1

    @field_validator("page", mode="before")
    @classmethod
    def validate_page(cls, v: Any) -> int:
        return _coerce_page(v)

    @property
    def page_index(self) -> int:
        """0-based page index. Negative for pages below 1."""
        return self.page - 1


class TextField(FieldBase):
    type: Literal["text"]
    value: Optional[str] = None


class DateField(FieldBase):
    type: Literal["date"]
    value: Optional[str] = None


class CheckboxField(FieldBase):
    type: Literal["checkbox"]
    value: Any = None

    @property
    def checked(self) -> bool:
        return is_checked(self.value)


class RadioField(FieldBase):
    type: Literal["radio"]
    value: Any = None

    @property
    def checked(self) -> bool:
        return is_checked(self.value)


class SignatureField(FieldBase):
    type: Literal["signature"]
    value: Optional[str] = None


class ImageField(FieldBase):
    type: Literal["image"]
    value: Optional[str] = None


class UnknownField(BaseModel):
    """A field whose type is outside FieldType. Rendered as a no-op."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    type: str
    page: int = 1
    value: Any = None

    @field_validator("page", mode="before")
    @classmethod
    def validate_page(cls, v: Any) -> int:
        return _coerce_page(v)

    @property
    def page_index(self) -> int:
        return self.page - 1


KnownField = Annotated[
    Union[TextField, DateField, CheckboxField, RadioField, SignatureField, ImageField],
    Field(discriminator="type"),
]
FieldDescriptor = Union[TextField, DateField, CheckboxField, RadioField, SignatureField, ImageField, UnknownField]


# Outcomes
class FieldOutcome(BaseModel):
    """Per-field result of an overlay call."""
    index: int
    type: Optional[str] = None
    page: Optional[int] = None
    succeeded: bool
    code: Optional[str] = None
    reason: Optional[str] = None


# Request Models
class OverlayRequest(BaseRequest):
    """Overlay fields onto a base64-encoded PDF."""
    document_base64: str = Field(..., min_length=1, description="Source PDF, base64-encoded")
    fields: List[Any] = Field(default_factory=list, description="Field descriptors in paint order")


class VerifyIntegrityRequest(BaseRequest):
    """Re-hash a document and compare against a recorded hash."""
    expected_hash: str = Field(..., min_length=64, max_length=64, description="Recorded SHA-256 (hex)")
    document_base64: str = Field(..., min_length=1)


# Response Models
class OverlayResponse(BaseModel):
    document_base64: str
    page_count: int
    original_hash: str
    signed_hash: str
    audit_hash: str
    field_count: int
    applied_count: int
    outcomes: List[FieldOutcome]


class VerifyIntegrityResponse(BaseModel):
    is_verified: bool
    expected_hash: str
    current_hash: str
    changed: bool


# Error Response
class ErrorResponse(BaseModel):
    error: bool = True
    code: str
    message: str
    request_id: Optional[str] = None
    details: Optional[dict] = None
