"""
Core Data Models for Expense Tracker

These models are the explicit schema of every payload that crosses a
boundary: store rows, API request bodies, API responses, and the values
the client keeps in its cache. The API validates requests against them on
the way in and serializes responses through them on the way out; the
client parses every response through them as well.

Wire format is camelCase JSON (fileUrl, uploadUrl); Python code uses
snake_case. All wire models accept both.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel


TITLE_MIN_LENGTH = 3
TITLE_MAX_LENGTH = 100


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WireModel(BaseModel):
    """Base for JSON payloads: camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# =============================================================================
# STORE MODEL
# =============================================================================

class ExpenseRecord(BaseModel):
    """
    An expense as held by the record store.

    The file key is an opaque object-store reference. It never leaves the
    server verbatim: responses carry a freshly signed URL instead.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: int = Field(
        ...,
        gt=0,
        description="Store-assigned identifier"
    )
    title: str = Field(
        ...,
        min_length=TITLE_MIN_LENGTH,
        max_length=TITLE_MAX_LENGTH,
    )
    amount: int = Field(
        ...,
        gt=0,
        description="Amount in currency minor units"
    )
    file_key: Optional[str] = Field(
        default=None,
        description="Object-store key of the attached receipt"
    )
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


# =============================================================================
# WIRE MODELS - EXPENSES
# =============================================================================

class Expense(WireModel):
    """
    An expense as seen by API clients.

    `file_url` is a time-limited signed download URL derived from the
    record's file key at response time. It is None whenever there is no key.

    Committed expenses have positive ids. Negative ids mark optimistic
    entries that exist only in a client cache.
    """

    id: int
    title: str
    amount: int
    file_url: Optional[str] = None

    @property
    def is_optimistic(self) -> bool:
        """True for client-side placeholders not yet confirmed by the server."""
        return self.id < 0


class ExpenseCreate(WireModel):
    """Body of POST /expenses and PUT /expenses/{id}."""

    title: str = Field(
        ...,
        min_length=TITLE_MIN_LENGTH,
        max_length=TITLE_MAX_LENGTH,
    )
    amount: int = Field(
        ...,
        gt=0,
        strict=True,
        description="Positive integer amount in minor units"
    )


class ExpensePatch(WireModel):
    """
    Body of PATCH /expenses/{id}. Any subset of the fields may be sent.

    - fileKey attaches an uploaded object to the expense
    - fileUrl may only be null, which detaches the receipt; URLs are
      derived on read and cannot be written
    - explicit null is rejected for title, amount and fileKey
    """

    title: Optional[str] = Field(
        default=None,
        min_length=TITLE_MIN_LENGTH,
        max_length=TITLE_MAX_LENGTH,
    )
    amount: Optional[int] = Field(
        default=None,
        gt=0,
        strict=True,
    )
    file_key: Optional[str] = Field(
        default=None,
        min_length=1,
    )
    file_url: None = None

    @field_validator('title', 'amount', 'file_key', mode='before')
    @classmethod
    def reject_explicit_null(cls, v):
        if v is None:
            raise ValueError("may not be null")
        return v

    @property
    def is_empty(self) -> bool:
        """True when the body named no fields at all."""
        return not self.model_fields_set

    def to_changes(self) -> dict:
        """
        Translate the patch into record-store column changes.

        fileUrl is applied after fileKey, so `{fileKey: k, fileUrl: null}`
        leaves the expense without a receipt.
        """
        changes: dict = {}
        fields = self.model_fields_set
        if "title" in fields:
            changes["title"] = self.title
        if "amount" in fields:
            changes["amount"] = self.amount
        if "file_key" in fields:
            changes["file_key"] = self.file_key
        if "file_url" in fields:
            changes["file_key"] = None
        return changes


class ExpenseList(WireModel):
    """Response of GET /expenses; also the cached collection view."""

    expenses: list[Expense] = Field(default_factory=list)

    def ids(self) -> set[int]:
        return {expense.id for expense in self.expenses}


class ExpenseEnvelope(WireModel):
    """Response of single-expense reads and writes."""

    expense: Expense


class DeletedExpense(WireModel):
    """Response of DELETE /expenses/{id}: the record's last-known state."""

    deleted: Expense


# =============================================================================
# WIRE MODELS - UPLOADS
# =============================================================================

class UploadSignRequest(WireModel):
    """Body of POST /upload/sign."""

    filename: str = Field(
        ...,
        min_length=1,
        max_length=255,
    )
    content_type: str = Field(
        ...,
        alias="type",
        min_length=1,
        max_length=255,
        description="Declared MIME type of the file"
    )


class UploadGrant(WireModel):
    """Response of POST /upload/sign: where to PUT the bytes, and the key to attach."""

    upload_url: str
    key: str


class UploadFile(BaseModel):
    """A file chosen on the client, ready for the upload choreography."""

    filename: str = Field(..., min_length=1)
    content_type: str = Field(..., min_length=1)
    data: bytes

    @property
    def size_bytes(self) -> int:
        return len(self.data)


# =============================================================================
# WIRE MODELS - IDENTITY AND ERRORS
# =============================================================================

class User(WireModel):
    """The caller's identity as reported by the identity provider."""

    id: str = Field(..., min_length=1)
    name: Optional[str] = None


class UserEnvelope(WireModel):
    """Response of GET /auth/me and POST /auth/login."""

    user: User


class ValidationIssue(WireModel):
    """A single problem found while validating a request."""

    field: str = Field(
        ...,
        description="Dotted path of the offending field, empty for the whole body"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )


class ErrorBody(WireModel):
    """Body of every non-2xx API response."""

    error: str
    issues: Optional[list[ValidationIssue]] = None
