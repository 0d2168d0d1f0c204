"""
Storage Services Package

Provides abstract interfaces and concrete implementations for record storage.
Ships an in-memory backend and a Google Sheets backend.
"""

from expense_tracker.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    ExpenseStorageInterface,
    NotFoundError,
    StorageError,
)
from expense_tracker.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
)
from expense_tracker.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "ExpenseStorageInterface",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryExpenseStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsExpenseStorage",
]
