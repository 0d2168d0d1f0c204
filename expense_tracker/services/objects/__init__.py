"""Object store services package."""

from expense_tracker.services.objects.minio_service import (
    MinioObjectStore,
    ObjectStoreError,
    ObjectStoreInterface,
    SigningError,
    build_upload_key,
)

__all__ = [
    "MinioObjectStore",
    "ObjectStoreError",
    "ObjectStoreInterface",
    "SigningError",
    "build_upload_key",
]
