"""
Expense client

Optimistic, cached access to the expenses API, and the three-step receipt
upload.
"""

from expense_tracker.client.api import ExpenseApiClient
from expense_tracker.client.cache import PENDING, CacheEntry, QueryCache, QueryStatus
from expense_tracker.client.errors import (
    ApiError,
    AttachFailed,
    ClientError,
    NetworkError,
    NotFoundError,
    SigningFailed,
    TransferFailed,
    Unauthorized,
    UploadError,
    UploadInProgressError,
    ValidationError,
)
from expense_tracker.client.keys import EXPENSES_KEY, expense_key
from expense_tracker.client.mutations import (
    DEFAULT_MESSAGES,
    MutationEngine,
    MutationOperation,
    MutationOutcome,
)
from expense_tracker.client.session import ExpenseClient, create_client
from expense_tracker.client.upload import UploadOrchestrator, UploadOutcome, UploadStage

__all__ = [
    # API
    "ExpenseApiClient",
    # Cache
    "PENDING",
    "CacheEntry",
    "QueryCache",
    "QueryStatus",
    "EXPENSES_KEY",
    "expense_key",
    # Mutations
    "DEFAULT_MESSAGES",
    "MutationEngine",
    "MutationOperation",
    "MutationOutcome",
    # Uploads
    "UploadOrchestrator",
    "UploadOutcome",
    "UploadStage",
    # Facade
    "ExpenseClient",
    "create_client",
    # Errors
    "ApiError",
    "AttachFailed",
    "ClientError",
    "NetworkError",
    "NotFoundError",
    "SigningFailed",
    "TransferFailed",
    "Unauthorized",
    "UploadError",
    "UploadInProgressError",
    "ValidationError",
]
