"""
In-Memory Storage Implementation

Process-local record and audit storage. Used for development, for tests,
and whenever no persistent backend is configured.
"""

import asyncio
import itertools
from datetime import datetime, timezone
from typing import Any, Optional

from expense_tracker.models.audit import AuditEvent
from expense_tracker.models.expense import ExpenseRecord
from expense_tracker.services.storage.interface import (
    AuditStorageInterface,
    ExpenseStorageInterface,
    check_changes,
)


class InMemoryExpenseStorage(ExpenseStorageInterface):
    """
    Dict-backed expense storage.

    Ids come from a monotonic counter, so a deleted id is never handed
    out again. Records are copied on the way in and out; callers can
    never mutate stored state by holding on to a returned object.
    """

    def __init__(self, records: Optional[list[ExpenseRecord]] = None):
        self._rows: dict[int, ExpenseRecord] = {}
        self._lock = asyncio.Lock()
        for record in records or []:
            self._rows[record.id] = record.model_copy()
        start = max(self._rows, default=0) + 1
        self._ids = itertools.count(start)

    async def insert(self, title: str, amount: int) -> ExpenseRecord:
        async with self._lock:
            record = ExpenseRecord(id=next(self._ids), title=title, amount=amount)
            self._rows[record.id] = record
            return record.model_copy()

    async def get(self, expense_id: int) -> Optional[ExpenseRecord]:
        record = self._rows.get(expense_id)
        return record.model_copy() if record else None

    async def list_all(self) -> list[ExpenseRecord]:
        return [self._rows[key].model_copy() for key in sorted(self._rows)]

    async def update(
        self,
        expense_id: int,
        changes: dict[str, Any],
    ) -> Optional[ExpenseRecord]:
        check_changes(changes)
        async with self._lock:
            current = self._rows.get(expense_id)
            if current is None:
                return None
            updated = ExpenseRecord.model_validate({
                **current.model_dump(),
                **changes,
                "updated_at": datetime.now(timezone.utc),
            })
            self._rows[expense_id] = updated
            return updated.model_copy()

    async def delete(self, expense_id: int) -> Optional[ExpenseRecord]:
        async with self._lock:
            return self._rows.pop(expense_id, None)

    def __len__(self) -> int:
        return len(self._rows)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self.events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self.events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
