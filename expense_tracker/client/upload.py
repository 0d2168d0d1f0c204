"""
Upload Orchestrator

Attaches a receipt to an expense in three steps:
1. Sign: ask the API for a presigned upload URL and an object key
2. Transfer: PUT the bytes straight to the object store
3. Attach: PATCH the expense with the key

State machine:
    IDLE -> SIGNING -> TRANSFERRING -> ATTACHING -> DONE
                 \\            \\             \\
                  +------------+-------------+-> FAILED

No step is retried. A failed transfer abandons its key; a new upload()
starts over with a fresh one.
"""

from enum import Enum
from typing import Optional

import structlog
from pydantic import BaseModel, ConfigDict

from expense_tracker.client.api import ExpenseApiClient
from expense_tracker.client.cache import QueryCache
from expense_tracker.client.errors import (
    AttachFailed,
    ClientError,
    SigningFailed,
    TransferFailed,
    Unauthorized,
    UploadInProgressError,
)
from expense_tracker.client.keys import EXPENSES_KEY, expense_key
from expense_tracker.models.expense import Expense, UploadFile


logger = structlog.get_logger(__name__)

LOGIN_REQUIRED_MESSAGE = "Please log in to upload files"


class UploadStage(str, Enum):
    IDLE = "idle"
    SIGNING = "signing"
    TRANSFERRING = "transferring"
    ATTACHING = "attaching"
    DONE = "done"
    FAILED = "failed"


ACTIVE_STAGES = frozenset({
    UploadStage.SIGNING,
    UploadStage.TRANSFERRING,
    UploadStage.ATTACHING,
})


class UploadOutcome(BaseModel):
    """Result of one upload run."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    ok: bool
    expense_id: int
    key: Optional[str] = None
    expense: Optional[Expense] = None
    failed_at: Optional[UploadStage] = None
    message: Optional[str] = None
    error: Optional[ClientError] = None


def _detail(error: Exception) -> str:
    if isinstance(error, ClientError):
        return error.detail or error.message or ""
    return str(error)


class UploadOrchestrator:
    """Runs the sign, transfer and attach steps for one receipt at a time."""

    def __init__(self, api: ExpenseApiClient, cache: QueryCache):
        self._api = api
        self._cache = cache
        self.stage = UploadStage.IDLE
        self.history: list[UploadStage] = [UploadStage.IDLE]

    @property
    def in_progress(self) -> bool:
        return self.stage in ACTIVE_STAGES

    def reset(self) -> None:
        """Return to IDLE and clear the history."""
        if self.in_progress:
            raise UploadInProgressError("Cannot reset while an upload is running")
        self.stage = UploadStage.IDLE
        self.history = [UploadStage.IDLE]

    def _enter(self, stage: UploadStage) -> None:
        self.stage = stage
        self.history.append(stage)
        logger.debug("upload_stage", stage=stage.value)

    async def upload(self, expense_id: int, file: UploadFile) -> UploadOutcome:
        """
        Upload `file` and attach it to the expense.

        Raises:
            UploadInProgressError: If a previous run has not finished
        """
        if self.in_progress:
            raise UploadInProgressError("An upload is already running")
        if self.stage != UploadStage.IDLE:
            self.reset()

        logger.info(
            "upload_started",
            expense_id=expense_id,
            filename=file.filename,
            size_bytes=file.size_bytes,
        )

        self._enter(UploadStage.SIGNING)
        try:
            grant = await self._api.sign_upload(file.filename, file.content_type)
        except Unauthorized as e:
            error = Unauthorized(e.status, LOGIN_REQUIRED_MESSAGE, body=e.body, detail=e.detail)
            return self._fail(expense_id, None, error, settle=False)
        except Exception as e:
            error = SigningFailed(f"Failed to get upload URL: {_detail(e)}", detail=_detail(e))
            return self._fail(expense_id, None, error, settle=False)

        self._enter(UploadStage.TRANSFERRING)
        try:
            await self._api.transfer(grant.upload_url, file.data, file.content_type)
        except Exception as e:
            error = TransferFailed(f"Failed to upload file: {_detail(e)}", detail=_detail(e))
            return self._fail(expense_id, grant.key, error)

        self._enter(UploadStage.ATTACHING)
        try:
            expense = await self._api.patch_expense(expense_id, file_key=grant.key)
        except Exception as e:
            error = AttachFailed(f"Failed to update expense: {_detail(e)}", detail=_detail(e))
            return self._fail(expense_id, grant.key, error)

        self._enter(UploadStage.DONE)
        self._settle(expense_id)
        logger.info("upload_finished", expense_id=expense_id, key=grant.key)
        return UploadOutcome(ok=True, expense_id=expense_id, key=grant.key, expense=expense)

    def _fail(
        self,
        expense_id: int,
        key: Optional[str],
        error: ClientError,
        settle: bool = True,
    ) -> UploadOutcome:
        failed_at = self.stage
        self._enter(UploadStage.FAILED)
        if settle:
            self._settle(expense_id)
        logger.warning(
            "upload_failed",
            expense_id=expense_id,
            key=key,
            failed_at=failed_at.value,
            error=error.message,
        )
        return UploadOutcome(
            ok=False,
            expense_id=expense_id,
            key=key,
            failed_at=failed_at,
            message=error.message,
            error=error,
        )

    def _settle(self, expense_id: int) -> None:
        self._cache.invalidate(EXPENSES_KEY)
        self._cache.invalidate(expense_key(expense_id))
