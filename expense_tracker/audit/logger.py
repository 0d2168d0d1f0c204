"""
Audit Logger

Every API mutation is recorded. The audit logger:
- Always logs locally through structlog
- Persists to audit storage when one is configured
- Never raises: an audit storage failure is logged and swallowed so that
  the request that triggered it still completes
"""

import logging
import sys
from typing import Optional

import structlog

from expense_tracker.models.audit import AuditEvent, AuditEventBuilder
from expense_tracker.services.storage import AuditStorageInterface


def configure_logging(log_level: str = "INFO") -> None:
    """Route structlog through stdlib logging as JSON lines."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("expense_tracker.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_expense_created(self, expense_id: int, title: str, amount: int, actor: Optional[str]) -> None:
        await self.log(AuditEventBuilder.expense_created(expense_id, title, amount, actor=actor))

    async def log_expense_replaced(self, expense_id: int, title: str, amount: int, actor: Optional[str]) -> None:
        await self.log(AuditEventBuilder.expense_replaced(expense_id, title, amount, actor=actor))

    async def log_expense_updated(self, expense_id: int, fields: list[str], actor: Optional[str]) -> None:
        await self.log(AuditEventBuilder.expense_updated(expense_id, fields, actor=actor))

    async def log_expense_deleted(self, expense_id: int, actor: Optional[str]) -> None:
        await self.log(AuditEventBuilder.expense_deleted(expense_id, actor=actor))

    async def log_upload_signed(self, key: str, content_type: str, ttl_seconds: int, actor: Optional[str]) -> None:
        await self.log(AuditEventBuilder.upload_signed(key, content_type, ttl_seconds, actor=actor))

    async def log_receipt_attached(self, expense_id: int, key: str, actor: Optional[str]) -> None:
        await self.log(AuditEventBuilder.receipt_attached(expense_id, key, actor=actor))

    async def log_receipt_detached(self, expense_id: int, actor: Optional[str]) -> None:
        await self.log(AuditEventBuilder.receipt_detached(expense_id, actor=actor))

    async def log_validation_failed(self, path: str, issues: list[dict], actor: Optional[str] = None) -> None:
        await self.log(AuditEventBuilder.validation_failed(path, issues, actor=actor))

    async def log_expense_not_found(self, expense_id: int, actor: Optional[str] = None) -> None:
        await self.log(AuditEventBuilder.expense_not_found(expense_id, actor=actor))

    async def log_user_logged_in(self, user_id: str) -> None:
        await self.log(AuditEventBuilder.user_logged_in(user_id))

    async def log_user_logged_out(self, user_id: Optional[str]) -> None:
        await self.log(AuditEventBuilder.user_logged_out(user_id))

    async def log_login_failed(self, username: str) -> None:
        await self.log(AuditEventBuilder.login_failed(username))

    async def log_auth_required(self, path: str) -> None:
        await self.log(AuditEventBuilder.auth_required(path))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(error_type, error_message, details))

    async def log_external_service_error(self, service: str, error_message: str) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(service, error_message))
