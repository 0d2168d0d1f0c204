"""
Abstract Storage Interface

The record store is an opaque keyed store of expense rows. Business logic
only sees this interface, so the backend (in-memory, Google Sheets, a SQL
database) can be swapped without touching the API layer.

Every operation returns the affected row, or None when the id has no
matching record. Raising is reserved for backend failures.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from expense_tracker.models.audit import AuditEvent
from expense_tracker.models.expense import ExpenseRecord


# Columns update() accepts.
UPDATABLE_FIELDS = frozenset({"title", "amount", "file_key"})


class ExpenseStorageInterface(ABC):
    """
    Abstract interface for expense record storage.

    Any storage implementation must implement these methods.
    Ids are positive integers assigned by the store, increasing,
    and never reused by the shipped backends within a process.
    """

    @abstractmethod
    async def insert(self, title: str, amount: int) -> ExpenseRecord:
        """
        Insert a new expense.

        Args:
            title: Validated title
            amount: Validated positive amount

        Returns:
            The stored record, including its new id

        Raises:
            StorageError: If the insert fails
        """
        pass

    @abstractmethod
    async def get(self, expense_id: int) -> Optional[ExpenseRecord]:
        """
        Retrieve an expense by its id.

        Returns:
            The record if found, None otherwise
        """
        pass

    @abstractmethod
    async def list_all(self) -> list[ExpenseRecord]:
        """
        List every expense, in ascending id order.
        """
        pass

    @abstractmethod
    async def update(
        self,
        expense_id: int,
        changes: dict[str, Any],
    ) -> Optional[ExpenseRecord]:
        """
        Apply a full or partial update.

        Args:
            expense_id: Record to update
            changes: Column -> new value, keys drawn from UPDATABLE_FIELDS.
                     A file_key of None clears the attachment.

        Returns:
            The updated record, or None if the id does not exist

        Raises:
            StorageError: If the update fails or names unknown columns
        """
        pass

    @abstractmethod
    async def delete(self, expense_id: int) -> Optional[ExpenseRecord]:
        """
        Delete an expense by id.

        Returns:
            The record as it was before deletion, or None if it did not exist
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity, in chronological order.
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


def check_changes(changes: dict[str, Any]) -> None:
    """Reject update payloads naming columns the store does not have."""
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise StorageError(f"Unknown expense columns: {', '.join(sorted(unknown))}")


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
