"""
Tests for Expense Tracker models

Test strategy:
1. Unit tests for individual components (models, services, client parts)
2. Integration tests for flows (API in-process, object store faked)
3. No real network calls in tests
"""

import json

import pytest
from pydantic import ValidationError

from expense_tracker.models.expense import (
    DeletedExpense,
    ErrorBody,
    Expense,
    ExpenseCreate,
    ExpenseList,
    ExpensePatch,
    ExpenseRecord,
    UploadFile,
    UploadGrant,
    UploadSignRequest,
)
from expense_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestExpenseModels:
    """Tests for expense wire and store models."""

    def test_expense_serializes_camel_case(self):
        """Test that fileUrl is the wire name of file_url."""
        expense = Expense(id=1, title="Coffee", amount=5, file_url="https://x/y")
        assert expense.model_dump(by_alias=True) == {
            "id": 1,
            "title": "Coffee",
            "amount": 5,
            "fileUrl": "https://x/y",
        }

    def test_expense_accepts_wire_names(self):
        """Test parsing a camelCase payload."""
        expense = Expense.model_validate({"id": 2, "title": "Taxi", "amount": 20, "fileUrl": None})
        assert expense.file_url is None

    def test_negative_ids_are_optimistic(self):
        """Test that placeholders are recognised by their id."""
        assert Expense(id=-1, title="Coffee", amount=5).is_optimistic
        assert not Expense(id=1, title="Coffee", amount=5).is_optimistic

    def test_record_requires_positive_id(self):
        """Test that store records never carry placeholder ids."""
        with pytest.raises(ValidationError):
            ExpenseRecord(id=0, title="Coffee", amount=5)

    def test_expense_list_ids(self):
        """Test collecting the ids of a view."""
        view = ExpenseList(expenses=[
            Expense(id=1, title="Coffee", amount=5),
            Expense(id=3, title="Lunch", amount=12),
        ])
        assert view.ids() == {1, 3}

    def test_deleted_envelope(self):
        """Test the DELETE response shape."""
        body = DeletedExpense(deleted=Expense(id=4, title="Taxi", amount=20))
        assert body.model_dump(by_alias=True)["deleted"]["id"] == 4


class TestExpenseCreate:
    """Tests for create/replace request validation."""

    def test_valid_create(self):
        """Test a well-formed body."""
        body = ExpenseCreate(title="Coffee", amount=5)
        assert body.title == "Coffee"

    def test_title_is_stripped(self):
        """Test that whitespace is stripped from the title."""
        assert ExpenseCreate(title="  Coffee  ", amount=5).title == "Coffee"

    def test_rejects_short_title(self):
        """Test the minimum title length."""
        with pytest.raises(ValidationError):
            ExpenseCreate(title="ab", amount=5)

    def test_rejects_long_title(self):
        """Test the maximum title length."""
        with pytest.raises(ValidationError):
            ExpenseCreate(title="x" * 101, amount=5)

    @pytest.mark.parametrize("amount", [0, -3])
    def test_rejects_non_positive_amount(self, amount):
        """Test that amounts must be positive."""
        with pytest.raises(ValidationError):
            ExpenseCreate(title="Coffee", amount=amount)

    def test_rejects_string_amount(self):
        """Test that amounts are not coerced from strings."""
        with pytest.raises(ValidationError):
            ExpenseCreate.model_validate({"title": "Coffee", "amount": "5"})


class TestExpensePatch:
    """Tests for partial update parsing."""

    def test_empty_patch(self):
        """Test that a body naming no fields is empty."""
        patch = ExpensePatch.model_validate({})
        assert patch.is_empty
        assert patch.to_changes() == {}

    def test_unknown_fields_are_ignored(self):
        """Test that unknown fields do not make a patch non-empty."""
        assert ExpensePatch.model_validate({"colour": "red"}).is_empty

    def test_file_key_patch(self):
        """Test attaching an uploaded object."""
        patch = ExpensePatch.model_validate({"fileKey": "uploads/1-a.png"})
        assert patch.to_changes() == {"file_key": "uploads/1-a.png"}

    def test_null_file_url_detaches(self):
        """Test that fileUrl: null clears the key."""
        patch = ExpensePatch.model_validate({"fileUrl": None})
        assert not patch.is_empty
        assert patch.to_changes() == {"file_key": None}

    def test_file_url_wins_over_file_key(self):
        """Test that fileUrl: null is applied after fileKey."""
        patch = ExpensePatch.model_validate({"fileKey": "uploads/1-a.png", "fileUrl": None})
        assert patch.to_changes() == {"file_key": None}

    def test_file_url_cannot_be_written(self):
        """Test that a non-null fileUrl is rejected."""
        with pytest.raises(ValidationError):
            ExpensePatch.model_validate({"fileUrl": "https://elsewhere/x.png"})

    @pytest.mark.parametrize("field", ["title", "amount", "fileKey"])
    def test_explicit_null_rejected(self, field):
        """Test that null is only meaningful for fileUrl."""
        with pytest.raises(ValidationError):
            ExpensePatch.model_validate({field: None})

    def test_partial_title_and_amount(self):
        """Test a two-field patch."""
        patch = ExpensePatch.model_validate({"title": "Dinner", "amount": 30})
        assert patch.to_changes() == {"title": "Dinner", "amount": 30}


class TestUploadModels:
    """Tests for upload payloads."""

    def test_sign_request_uses_type_on_the_wire(self):
        """Test that the MIME type travels as `type`."""
        request = UploadSignRequest.model_validate({"filename": "x.png", "type": "image/png"})
        assert request.content_type == "image/png"

    def test_grant_wire_names(self):
        """Test the sign response shape."""
        grant = UploadGrant(upload_url="https://u", key="uploads/1-x.png")
        assert grant.model_dump(by_alias=True) == {"uploadUrl": "https://u", "key": "uploads/1-x.png"}

    def test_upload_file_size(self):
        """Test the size of a chosen file."""
        assert UploadFile(filename="x.png", content_type="image/png", data=b"12345").size_bytes == 5

    def test_error_body_omits_missing_issues(self):
        """Test the error body shape."""
        body = ErrorBody(error="Expense not found")
        assert body.model_dump(by_alias=True, exclude_none=True) == {"error": "Expense not found"}


class TestAuditModels:
    """Tests for audit models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.EXPENSE_CREATED,
            description="Test event",
        )
        assert event.event_id is not None
        assert event.timestamp is not None
        assert event.severity == AuditSeverity.INFO

    def test_expense_created_builder(self):
        """Test the creation event."""
        event = AuditEventBuilder.expense_created(7, "Coffee", 5, actor="alice")
        assert event.event_type == AuditEventType.EXPENSE_CREATED
        assert event.entity_id == "7"
        assert event.actor == "alice"
        assert event.details == {"title": "Coffee", "amount": 5}

    def test_validation_failed_is_a_warning(self):
        """Test severity of rejected requests."""
        event = AuditEventBuilder.validation_failed("/api/expenses", [{"field": "title", "message": "short"}])
        assert event.severity == AuditSeverity.WARNING

    def test_to_sheets_row(self):
        """Test conversion to Google Sheets row."""
        event = AuditEventBuilder.upload_signed("uploads/1-x.png", "image/png", 60, actor="alice")
        row = event.to_sheets_row()
        assert len(row) == 10
        assert row[2] == "upload_signed"
        assert row[5] == "uploads/1-x.png"
        assert json.loads(row[8]) == {"content_type": "image/png", "ttl_seconds": 60}

    def test_to_log_dict(self):
        """Test conversion to a structured log entry."""
        event = AuditEventBuilder.external_service_error("object_store", "timeout")
        entry = event.to_log_dict()
        assert entry["severity"] == "error"
        assert entry["error_message"] == "timeout"
