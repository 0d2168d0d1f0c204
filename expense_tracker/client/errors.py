"""
Client-side error types.

Every failure the client can hit is a ClientError. `message` is what a
user should see, or None when the failure has nothing useful to say (a
dropped connection, say); callers then fall back to their own default.
`detail` carries the raw response text where there is one.
"""

from typing import Any, Optional


class ClientError(Exception):
    """Base class for client failures."""

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None):
        self.message = message
        self.detail = detail
        super().__init__(message or detail or self.__class__.__name__)


class NetworkError(ClientError):
    """The request never produced a response."""

    def __init__(self, detail: Optional[str] = None):
        super().__init__(None, detail)


class ApiError(ClientError):
    """The API answered with a non-2xx status."""

    def __init__(self, status: int, message: Optional[str], body: Any = None, detail: Optional[str] = None):
        self.status = status
        self.body = body
        super().__init__(message, detail)


class ValidationError(ApiError):
    """400: the request was rejected."""

    @property
    def issues(self) -> list[dict]:
        if isinstance(self.body, dict):
            return self.body.get("issues") or []
        return []


class Unauthorized(ApiError):
    """401: no valid session."""
    pass


class NotFoundError(ApiError):
    """404: no such expense."""
    pass


# =============================================================================
# UPLOAD FAILURES
# =============================================================================

class UploadError(ClientError):
    """A step of the upload choreography failed."""
    pass


class SigningFailed(UploadError):
    """Step 1: the API did not issue an upload URL."""
    pass


class TransferFailed(UploadError):
    """Step 2: the object store did not accept the bytes."""
    pass


class AttachFailed(UploadError):
    """Step 3: the key could not be attached to the expense."""
    pass


class UploadInProgressError(Exception):
    """upload() was called while a previous run has not finished."""
    pass
