"""
Audit Models for Expense Tracker

Every mutation the API performs is recorded as an AuditEvent: who did
what to which expense, and what went wrong when it failed.

Audit logs are append-only. Events are never modified or deleted.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Expense lifecycle
    EXPENSE_CREATED = "expense_created"
    EXPENSE_REPLACED = "expense_replaced"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"

    # Receipts
    UPLOAD_SIGNED = "upload_signed"
    RECEIPT_ATTACHED = "receipt_attached"
    RECEIPT_DETACHED = "receipt_detached"

    # Rejections
    VALIDATION_FAILED = "validation_failed"
    EXPENSE_NOT_FOUND = "expense_not_found"

    # Identity
    USER_LOGGED_IN = "user_logged_in"
    USER_LOGGED_OUT = "user_logged_out"
    LOGIN_FAILED = "login_failed"
    AUTH_REQUIRED = "auth_required"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of the audit trail.
    Every API mutation creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'upload', 'session')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Who
    actor: Optional[str] = Field(
        default=None,
        description="Identity of the caller, when known"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor": self.actor,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         actor, description, details_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            self.actor or "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_created(7, "Coffee", 5, actor="alice")
        event = AuditEventBuilder.expense_deleted(7, actor="alice")
    """

    @staticmethod
    def expense_created(
        expense_id: int,
        title: str,
        amount: int,
        actor: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_CREATED,
            entity_type="expense",
            entity_id=str(expense_id),
            actor=actor,
            description=f"Expense created: {title} ({amount})",
            details={
                "title": title,
                "amount": amount,
            },
        )

    @staticmethod
    def expense_replaced(
        expense_id: int,
        title: str,
        amount: int,
        actor: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_REPLACED,
            entity_type="expense",
            entity_id=str(expense_id),
            actor=actor,
            description=f"Expense replaced: {title} ({amount})",
            details={
                "title": title,
                "amount": amount,
            },
        )

    @staticmethod
    def expense_updated(
        expense_id: int,
        fields: list[str],
        actor: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_UPDATED,
            entity_type="expense",
            entity_id=str(expense_id),
            actor=actor,
            description=f"Expense updated: {', '.join(fields)}",
            details={
                "fields": fields,
            },
        )

    @staticmethod
    def expense_deleted(
        expense_id: int,
        actor: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            entity_type="expense",
            entity_id=str(expense_id),
            actor=actor,
            description=f"Expense {expense_id} deleted",
        )

    @staticmethod
    def upload_signed(
        key: str,
        content_type: str,
        ttl_seconds: int,
        actor: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UPLOAD_SIGNED,
            entity_type="upload",
            entity_id=key,
            actor=actor,
            description=f"Upload URL issued for {key}",
            details={
                "content_type": content_type,
                "ttl_seconds": ttl_seconds,
            },
        )

    @staticmethod
    def receipt_attached(
        expense_id: int,
        key: str,
        actor: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_ATTACHED,
            entity_type="expense",
            entity_id=str(expense_id),
            actor=actor,
            description=f"Receipt attached to expense {expense_id}",
            details={
                "key": key,
            },
        )

    @staticmethod
    def receipt_detached(
        expense_id: int,
        actor: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_DETACHED,
            entity_type="expense",
            entity_id=str(expense_id),
            actor=actor,
            description=f"Receipt detached from expense {expense_id}",
        )

    @staticmethod
    def validation_failed(
        path: str,
        issues: list[dict],
        actor: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="request",
            entity_id=path,
            actor=actor,
            description=f"Request rejected with {len(issues)} issues",
            details={
                "issues": issues,
            },
        )

    @staticmethod
    def expense_not_found(
        expense_id: int,
        actor: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_NOT_FOUND,
            severity=AuditSeverity.WARNING,
            entity_type="expense",
            entity_id=str(expense_id),
            actor=actor,
            description=f"Expense {expense_id} not found",
        )

    @staticmethod
    def user_logged_in(user_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_LOGGED_IN,
            entity_type="session",
            actor=user_id,
            description=f"User logged in: {user_id}",
        )

    @staticmethod
    def user_logged_out(user_id: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_LOGGED_OUT,
            entity_type="session",
            actor=user_id,
            description="User logged out",
        )

    @staticmethod
    def login_failed(username: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGIN_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="session",
            actor=username or None,
            description="Login rejected: invalid credentials",
        )

    @staticmethod
    def auth_required(path: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AUTH_REQUIRED,
            severity=AuditSeverity.WARNING,
            entity_type="request",
            entity_id=path,
            description=f"Unauthenticated call to {path}",
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
        )
