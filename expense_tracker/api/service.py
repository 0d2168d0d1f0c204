"""
Expense Service

All API behavior lives here; routes only parse requests and wrap results.

Rules enforced for every response:
- Requests are validated before the record store is touched
- Every returned expense carries a freshly signed download URL, or None
  when it has no file key
- Every mutation is audited
"""

from typing import Optional

import structlog

from expense_tracker.api.errors import NotFoundError, ValidationError
from expense_tracker.audit import AuditLogger
from expense_tracker.config import AppSettings
from expense_tracker.models.expense import (
    Expense,
    ExpenseCreate,
    ExpensePatch,
    ExpenseRecord,
    UploadGrant,
    UploadSignRequest,
    User,
)
from expense_tracker.services.objects import ObjectStoreInterface, build_upload_key
from expense_tracker.services.storage import ExpenseStorageInterface


logger = structlog.get_logger(__name__)


def content_type_allowed(content_type: str, allowed: list[str]) -> bool:
    """
    Match a MIME type against a list of patterns.

    Patterns are exact types (application/pdf), major-type wildcards
    (image/*) or */*. Parameters such as charset are ignored.
    """
    mime = content_type.split(";", 1)[0].strip().lower()
    for pattern in allowed:
        if pattern in ("*", "*/*") or pattern == mime:
            return True
        if pattern.endswith("/*") and mime.startswith(pattern[:-1]):
            return True
    return False


class ExpenseService:
    """Expense CRUD and upload signing on top of a record store and an object store."""

    def __init__(
        self,
        storage: ExpenseStorageInterface,
        object_store: ObjectStoreInterface,
        audit_logger: AuditLogger,
        settings: AppSettings,
    ):
        self.storage = storage
        self.object_store = object_store
        self.audit = audit_logger
        self.settings = settings

    def _present(self, record: ExpenseRecord) -> Expense:
        """Convert a stored record to its wire form, signing the file key."""
        file_url = None
        if record.file_key:
            file_url = self.object_store.download_url(
                record.file_key,
                self.settings.download_url_ttl_seconds,
            )
        return Expense(
            id=record.id,
            title=record.title,
            amount=record.amount,
            file_url=file_url,
        )

    async def _not_found(self, expense_id: int, actor: Optional[str]) -> NotFoundError:
        await self.audit.log_expense_not_found(expense_id, actor=actor)
        return NotFoundError("Expense not found")

    async def list_expenses(self) -> list[Expense]:
        records = await self.storage.list_all()
        return [self._present(record) for record in records]

    async def get_expense(self, expense_id: int, actor: Optional[str] = None) -> Expense:
        record = await self.storage.get(expense_id)
        if record is None:
            raise await self._not_found(expense_id, actor)
        return self._present(record)

    async def create_expense(self, body: ExpenseCreate, actor: Optional[str] = None) -> Expense:
        record = await self.storage.insert(body.title, body.amount)
        logger.info("expense_created", expense_id=record.id)
        await self.audit.log_expense_created(record.id, record.title, record.amount, actor)
        return self._present(record)

    async def replace_expense(
        self,
        expense_id: int,
        body: ExpenseCreate,
        actor: Optional[str] = None,
    ) -> Expense:
        """Full update of title and amount. The attached receipt is kept."""
        record = await self.storage.update(
            expense_id,
            {"title": body.title, "amount": body.amount},
        )
        if record is None:
            raise await self._not_found(expense_id, actor)
        await self.audit.log_expense_replaced(record.id, record.title, record.amount, actor)
        return self._present(record)

    async def patch_expense(
        self,
        expense_id: int,
        body: ExpensePatch,
        actor: Optional[str] = None,
    ) -> Expense:
        """
        Partial update.

        Raises:
            ValidationError: If the body names no fields
            NotFoundError: If the expense does not exist
        """
        if body.is_empty:
            raise ValidationError("Empty patch")

        changes = body.to_changes()
        record = await self.storage.update(expense_id, changes)
        if record is None:
            raise await self._not_found(expense_id, actor)

        await self.audit.log_expense_updated(record.id, sorted(changes), actor)
        if "file_key" in changes:
            if record.file_key:
                await self.audit.log_receipt_attached(record.id, record.file_key, actor)
            else:
                await self.audit.log_receipt_detached(record.id, actor)
        return self._present(record)

    async def delete_expense(self, expense_id: int, actor: Optional[str] = None) -> Expense:
        """Delete and return the expense's last-known state."""
        record = await self.storage.delete(expense_id)
        if record is None:
            raise await self._not_found(expense_id, actor)
        await self.audit.log_expense_deleted(record.id, actor)
        return self._present(record)

    async def sign_upload(
        self,
        request: UploadSignRequest,
        user: User,
    ) -> UploadGrant:
        """
        Issue a presigned PUT URL for a new receipt.

        Raises:
            ValidationError: If the declared type is not accepted
            SigningError: If the object store cannot sign the URL
        """
        if not content_type_allowed(request.content_type, self.settings.allowed_upload_types_list):
            raise ValidationError(f"Unsupported file type: {request.content_type}")

        key = build_upload_key(request.filename)
        ttl = self.settings.upload_url_ttl_seconds
        upload_url = self.object_store.upload_url(key, request.content_type, ttl)
        await self.audit.log_upload_signed(key, request.content_type, ttl, user.id)
        return UploadGrant(upload_url=upload_url, key=key)
