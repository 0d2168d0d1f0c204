"""
API error types.

Raised by the service layer and turned into `{error, issues?}` JSON bodies
by the exception handlers registered in `create_app`.
"""

from typing import Optional

from expense_tracker.models.expense import ValidationIssue


class ApiError(Exception):
    """Base class for errors with a fixed HTTP status."""

    status_code = 500

    def __init__(
        self,
        message: str,
        issues: Optional[list[ValidationIssue]] = None,
        headers: Optional[dict[str, str]] = None,
    ):
        self.message = message
        self.issues = issues
        self.headers = headers
        super().__init__(message)


class ValidationError(ApiError):
    """Request body or parameters were rejected."""
    status_code = 400


class UnauthorizedError(ApiError):
    """The caller has no valid session."""
    status_code = 401


class NotFoundError(ApiError):
    """No expense with the requested id."""
    status_code = 404
