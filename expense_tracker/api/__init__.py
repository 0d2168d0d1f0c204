"""
HTTP API

FastAPI application exposing expense CRUD, upload signing and sessions.
"""

from expense_tracker.api.app import build_storage, create_app
from expense_tracker.api.errors import ApiError, NotFoundError, UnauthorizedError, ValidationError
from expense_tracker.api.service import ExpenseService

__all__ = [
    "ApiError",
    "ExpenseService",
    "NotFoundError",
    "UnauthorizedError",
    "ValidationError",
    "build_storage",
    "create_app",
]
