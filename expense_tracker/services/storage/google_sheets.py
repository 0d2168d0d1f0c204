"""
Google Sheets Storage Implementation

A persistent record store that needs no database: one worksheet of expense
rows, one worksheet of audit events, each with a header row.

TRADEOFFS:
- Not suitable for high-volume data
- No transactions; each write is a single row operation
- Filtering and id assignment happen in Python

Ids are assigned as max(existing ids, last id issued by this process) + 1.
A deleted highest id can be reissued after a restart; see DESIGN.md.
"""

import json
from datetime import datetime, timezone
from typing import Any, Optional

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from expense_tracker.config import GoogleSheetsSettings, get_settings
from expense_tracker.models.audit import AuditEvent, AuditEventType, AuditSeverity
from expense_tracker.models.expense import ExpenseRecord
from expense_tracker.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    ExpenseStorageInterface,
    StorageError,
    check_changes,
)


logger = structlog.get_logger(__name__)


# Column mappings for Expenses sheet
EXPENSE_COLUMNS = [
    "id",
    "title",
    "amount",
    "file_key",
    "created_at",
    "updated_at",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "actor",
    "description",
    "details_json",
    "error_message",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_expenses_sheet(self) -> gspread.Worksheet:
        """Get or create the Expenses worksheet."""
        return self._get_or_create_sheet(
            self._settings.expenses_sheet_name,
            EXPENSE_COLUMNS,
            rows=1000,
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,
        )


class GoogleSheetsExpenseStorage(ExpenseStorageInterface):
    """
    Google Sheets implementation of expense storage.

    Expenses are stored one per row, keyed by the integer in column A.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._last_issued_id = 0

    def _record_to_row(self, record: ExpenseRecord) -> list:
        """Convert an ExpenseRecord to a spreadsheet row."""
        return [
            str(record.id),
            record.title,
            str(record.amount),
            record.file_key or "",
            record.created_at.isoformat(),
            record.updated_at.isoformat(),
        ]

    def _row_to_record(self, row: list) -> ExpenseRecord:
        """Convert a spreadsheet row to an ExpenseRecord."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        now = datetime.now(timezone.utc).isoformat()
        return ExpenseRecord(
            id=int(safe_get(0)),
            title=safe_get(1),
            amount=int(safe_get(2)),
            file_key=safe_get(3) or None,
            created_at=datetime.fromisoformat(safe_get(4, now)),
            updated_at=datetime.fromisoformat(safe_get(5, now)),
        )

    def _find_row(self, rows: list[list], expense_id: int) -> Optional[int]:
        """1-based sheet row index of an expense, header included in the count."""
        for idx, row in enumerate(rows[1:], start=2):
            if row and row[0] == str(expense_id):
                return idx
        return None

    def _read_records(self, rows: list[list]) -> list[ExpenseRecord]:
        records = []
        for row in rows[1:]:
            if not row or not row[0]:
                continue
            try:
                records.append(self._row_to_record(row))
            except Exception as e:
                logger.warning("sheets_row_skipped", row=row[:1], error=str(e))
        return records

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def insert(self, title: str, amount: int) -> ExpenseRecord:
        """Append a new expense row."""
        try:
            sheet = self._client.get_expenses_sheet()
            existing = self._read_records(sheet.get_all_values())
            next_id = max([r.id for r in existing] + [self._last_issued_id]) + 1
            record = ExpenseRecord(id=next_id, title=title, amount=amount)
            sheet.append_row(self._record_to_row(record), value_input_option="RAW")
            self._last_issued_id = next_id
            return record
        except Exception as e:
            raise StorageError(f"Failed to insert expense: {e}")

    async def get(self, expense_id: int) -> Optional[ExpenseRecord]:
        """Retrieve an expense by its id."""
        try:
            sheet = self._client.get_expenses_sheet()
            all_rows = sheet.get_all_values()
            idx = self._find_row(all_rows, expense_id)
            if idx is None:
                return None
            return self._row_to_record(all_rows[idx - 1])
        except Exception as e:
            raise StorageError(f"Failed to get expense: {e}")

    async def list_all(self) -> list[ExpenseRecord]:
        """List all expenses in ascending id order."""
        try:
            sheet = self._client.get_expenses_sheet()
            records = self._read_records(sheet.get_all_values())
            records.sort(key=lambda r: r.id)
            return records
        except Exception as e:
            raise StorageError(f"Failed to list expenses: {e}")

    async def update(
        self,
        expense_id: int,
        changes: dict[str, Any],
    ) -> Optional[ExpenseRecord]:
        """Rewrite an expense row with the given changes applied."""
        check_changes(changes)
        return await self._rewrite_row(expense_id, changes)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _rewrite_row(
        self,
        expense_id: int,
        changes: dict[str, Any],
    ) -> Optional[ExpenseRecord]:
        try:
            sheet = self._client.get_expenses_sheet()
            all_rows = sheet.get_all_values()
            idx = self._find_row(all_rows, expense_id)
            if idx is None:
                return None

            current = self._row_to_record(all_rows[idx - 1])
            updated = ExpenseRecord.model_validate({
                **current.model_dump(),
                **changes,
                "updated_at": datetime.now(timezone.utc),
            })
            end_col = chr(ord("A") + len(EXPENSE_COLUMNS) - 1)
            sheet.update(
                range_name=f"A{idx}:{end_col}{idx}",
                values=[self._record_to_row(updated)],
                value_input_option="RAW",
            )
            return updated
        except Exception as e:
            raise StorageError(f"Failed to update expense: {e}")

    async def delete(self, expense_id: int) -> Optional[ExpenseRecord]:
        """Delete an expense row, returning what it held."""
        try:
            sheet = self._client.get_expenses_sheet()
            all_rows = sheet.get_all_values()
            idx = self._find_row(all_rows, expense_id)
            if idx is None:
                return None
            record = self._row_to_record(all_rows[idx - 1])
            sheet.delete_rows(idx)
            return record
        except Exception as e:
            raise StorageError(f"Failed to delete expense: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=safe_get(0),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            actor=safe_get(6) or None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
        )

    def _read_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except Exception as e:
                logger.warning("audit_row_skipped", row=row[:1], error=str(e))
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        sheet = self._client.get_audit_sheet()
        sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
        return True

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        try:
            events = [
                e for e in self._read_events()
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            events = self._read_events()
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
