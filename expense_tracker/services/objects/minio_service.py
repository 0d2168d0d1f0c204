"""
Object Store Service using an S3-compatible endpoint (MinIO, R2, S3)

The API never receives receipt bytes. It hands the client a short-lived
presigned PUT URL, the client uploads directly, and on every read the API
turns the stored key into a short-lived presigned GET URL.

This service handles:
1. Building object keys for new uploads
2. Presigning upload (PUT) URLs
3. Presigning download (GET) URLs

Presigning is a local signature computation when the bucket region is
configured; no request reaches the object store.
"""

import time
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Optional

import structlog
from minio import Minio
from minio.error import MinioException

from expense_tracker.config import ObjectStoreSettings, get_settings


logger = structlog.get_logger(__name__)

UPLOAD_PREFIX = "uploads"


class ObjectStoreError(Exception):
    """Base exception for object store errors."""
    pass


class SigningError(ObjectStoreError):
    """A presigned URL could not be produced."""

    def __init__(self, key: str, message: str):
        self.key = key
        super().__init__(message)


def build_upload_key(filename: str, now_ms: Optional[int] = None) -> str:
    """
    Build the object key for a new upload.

    Format: uploads/{epoch_ms}-{filename}

    Path separators in the filename are replaced so every key stays
    directly under the upload prefix.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    safe_name = filename.strip().replace("/", "_").replace("\\", "_")
    return f"{UPLOAD_PREFIX}/{now_ms}-{safe_name}"


class ObjectStoreInterface(ABC):
    """Issues time-limited signed URLs for one object key at a time."""

    @abstractmethod
    def upload_url(self, key: str, content_type: str, ttl_seconds: int) -> str:
        """
        Presign a direct upload of one object.

        Raises:
            SigningError: If the URL cannot be produced
        """
        pass

    @abstractmethod
    def download_url(self, key: str, ttl_seconds: int) -> str:
        """
        Presign a direct download of one object.

        Raises:
            SigningError: If the URL cannot be produced
        """
        pass


class MinioObjectStore(ObjectStoreInterface):
    """
    Presigned URLs against an S3-compatible bucket, using the minio SDK.

    Flow:
    1. API asks for an upload URL for a freshly built key
    2. Client PUTs the bytes there
    3. Client attaches the key to an expense
    4. Every read of that expense asks for a download URL for the key
    """

    def __init__(
        self,
        settings: Optional[ObjectStoreSettings] = None,
        client: Optional[Minio] = None,
    ):
        self._settings = settings
        self._client = client

    @property
    def settings(self) -> ObjectStoreSettings:
        """Loaded on first use, so the API can start before the object store is configured."""
        if self._settings is None:
            self._settings = get_settings().object_store
        return self._settings

    def _get_client(self) -> Minio:
        """Get or create the minio client."""
        if self._client is None:
            self._client = Minio(
                self.settings.endpoint,
                access_key=self.settings.access_key,
                secret_key=self.settings.secret_key,
                secure=self.settings.secure,
                region=self.settings.region,
            )
        return self._client

    @property
    def bucket(self) -> str:
        return self.settings.bucket

    def upload_url(self, key: str, content_type: str, ttl_seconds: int) -> str:
        """
        Presign a PUT of `key`.

        The content type is logged with the grant; S3 query-string
        signatures only cover the host header, so it is not enforced by
        the signature itself.
        """
        try:
            url = self._get_client().presigned_put_object(
                self.bucket,
                key,
                expires=timedelta(seconds=ttl_seconds),
            )
        except (MinioException, ValueError) as e:
            logger.error("presign_put_failed", key=key, error=str(e))
            raise SigningError(key, f"Failed to sign upload URL: {e}")

        logger.info(
            "upload_url_signed",
            key=key,
            content_type=content_type,
            ttl_seconds=ttl_seconds,
        )
        return url

    def download_url(self, key: str, ttl_seconds: int) -> str:
        """Presign a GET of `key`."""
        try:
            return self._get_client().presigned_get_object(
                self.bucket,
                key,
                expires=timedelta(seconds=ttl_seconds),
            )
        except (MinioException, ValueError) as e:
            logger.error("presign_get_failed", key=key, error=str(e))
            raise SigningError(key, f"Failed to sign download URL: {e}")
