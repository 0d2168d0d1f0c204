"""Services package: record store, object store and identity provider."""

from expense_tracker.services.identity import (
    AuthenticationError,
    IdentityProvider,
    Session,
    SessionIdentityProvider,
)
from expense_tracker.services.objects import (
    MinioObjectStore,
    ObjectStoreError,
    ObjectStoreInterface,
    SigningError,
    build_upload_key,
)
from expense_tracker.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    ExpenseStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    NotFoundError,
    StorageError,
)

__all__ = [
    # Identity
    "AuthenticationError",
    "IdentityProvider",
    "Session",
    "SessionIdentityProvider",
    # Object store
    "MinioObjectStore",
    "ObjectStoreError",
    "ObjectStoreInterface",
    "SigningError",
    "build_upload_key",
    # Record store
    "AuditStorageInterface",
    "ConnectionError",
    "ExpenseStorageInterface",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsExpenseStorage",
    "InMemoryAuditStorage",
    "InMemoryExpenseStorage",
    "NotFoundError",
    "StorageError",
]
