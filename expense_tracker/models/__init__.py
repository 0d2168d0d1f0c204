"""
Data Models Package

This package contains all Pydantic models used in the Expense Tracker.
All data flowing through the system must conform to these schemas.
"""

from expense_tracker.models.expense import (
    DeletedExpense,
    ErrorBody,
    Expense,
    ExpenseCreate,
    ExpenseEnvelope,
    ExpenseList,
    ExpensePatch,
    ExpenseRecord,
    UploadFile,
    UploadGrant,
    UploadSignRequest,
    User,
    UserEnvelope,
    ValidationIssue,
)
from expense_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Expense models
    "DeletedExpense",
    "ErrorBody",
    "Expense",
    "ExpenseCreate",
    "ExpenseEnvelope",
    "ExpenseList",
    "ExpensePatch",
    "ExpenseRecord",
    "UploadFile",
    "UploadGrant",
    "UploadSignRequest",
    "User",
    "UserEnvelope",
    "ValidationIssue",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
