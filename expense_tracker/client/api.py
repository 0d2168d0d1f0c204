"""
Expense API Client

Thin httpx wrapper over the expenses API. Responses are parsed through the
wire models; failures are mapped onto the ClientError hierarchy:

- 400 -> ValidationError
- 401 -> Unauthorized
- 404 -> NotFoundError
- other non-2xx -> ApiError
- no response at all -> NetworkError

The session cookie set by login lives in the client's cookie jar. Direct
uploads to the object store go through a second client so that neither
the API base URL nor the session cookie leaks to the bucket.
"""

from typing import Any, Optional

import httpx
import structlog
from pydantic.alias_generators import to_camel

from expense_tracker.client.errors import (
    ApiError,
    NetworkError,
    NotFoundError,
    Unauthorized,
    ValidationError,
)
from expense_tracker.config import ClientSettings, get_settings
from expense_tracker.models.expense import (
    DeletedExpense,
    Expense,
    ExpenseEnvelope,
    ExpenseList,
    UploadGrant,
    User,
    UserEnvelope,
)


logger = structlog.get_logger(__name__)

STATUS_ERRORS = {
    400: ValidationError,
    401: Unauthorized,
    404: NotFoundError,
}


def error_from_response(response: httpx.Response) -> ApiError:
    """Build the ClientError for a non-2xx response."""
    text = response.text
    try:
        body = response.json()
    except ValueError:
        body = None

    message = None
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        message = body["error"]
    elif text:
        message = text

    error_class = STATUS_ERRORS.get(response.status_code, ApiError)
    return error_class(response.status_code, message, body=body, detail=text)


class ExpenseApiClient:
    """Async client for the expenses API."""

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        http: Optional[httpx.AsyncClient] = None,
        transfer_http: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            settings: Base URL and timeout. Loaded from the environment if None.
            http: Client for API calls. Tests pass one on an ASGITransport.
            transfer_http: Client for direct object-store uploads.
        """
        self._settings = settings or get_settings().client
        self._http = http or httpx.AsyncClient(
            base_url=self._settings.base_url,
            timeout=self._settings.timeout_seconds,
        )
        self._transfer_http = transfer_http or httpx.AsyncClient(
            timeout=self._settings.timeout_seconds,
        )

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[dict] = None,
        auth: Optional[tuple[str, str]] = None,
    ) -> Any:
        try:
            if auth is None:
                response = await self._http.request(method, path, json=json)
            else:
                response = await self._http.request(method, path, json=json, auth=auth)
        except httpx.RequestError as e:
            logger.warning("api_unreachable", method=method, path=path, error=str(e))
            raise NetworkError(str(e)) from e

        if response.is_success:
            return response.json() if response.content else None

        error = error_from_response(response)
        logger.info(
            "api_error",
            method=method,
            path=path,
            status=response.status_code,
            error=error.message,
        )
        raise error

    # =========================================================================
    # EXPENSES
    # =========================================================================

    async def list_expenses(self) -> ExpenseList:
        return ExpenseList.model_validate(await self._request("GET", "/expenses"))

    async def get_expense(self, expense_id: int) -> Expense:
        data = await self._request("GET", f"/expenses/{expense_id}")
        return ExpenseEnvelope.model_validate(data).expense

    async def create_expense(self, title: str, amount: int) -> Expense:
        data = await self._request("POST", "/expenses", json={"title": title, "amount": amount})
        return ExpenseEnvelope.model_validate(data).expense

    async def replace_expense(self, expense_id: int, title: str, amount: int) -> Expense:
        data = await self._request(
            "PUT",
            f"/expenses/{expense_id}",
            json={"title": title, "amount": amount},
        )
        return ExpenseEnvelope.model_validate(data).expense

    async def patch_expense(self, expense_id: int, **changes: Any) -> Expense:
        """
        Send a partial update. Keyword names are snake_case
        (title, amount, file_key, file_url).
        """
        body = {to_camel(name): value for name, value in changes.items()}
        data = await self._request("PATCH", f"/expenses/{expense_id}", json=body)
        return ExpenseEnvelope.model_validate(data).expense

    async def delete_expense(self, expense_id: int) -> Expense:
        data = await self._request("DELETE", f"/expenses/{expense_id}")
        return DeletedExpense.model_validate(data).deleted

    # =========================================================================
    # UPLOADS
    # =========================================================================

    async def sign_upload(self, filename: str, content_type: str) -> UploadGrant:
        data = await self._request(
            "POST",
            "/upload/sign",
            json={"filename": filename, "type": content_type},
        )
        return UploadGrant.model_validate(data)

    async def transfer(self, upload_url: str, data: bytes, content_type: str) -> None:
        """PUT raw bytes to a presigned URL."""
        try:
            response = await self._transfer_http.put(
                upload_url,
                content=data,
                headers={"Content-Type": content_type},
            )
        except httpx.RequestError as e:
            logger.warning("transfer_unreachable", error=str(e))
            raise NetworkError(str(e)) from e

        if not response.is_success:
            raise ApiError(
                response.status_code,
                response.text or None,
                detail=response.text,
            )

    # =========================================================================
    # SESSION
    # =========================================================================

    async def login(self, username: str, password: str) -> User:
        data = await self._request("POST", "/auth/login", auth=(username, password))
        return UserEnvelope.model_validate(data).user

    async def logout(self) -> None:
        await self._request("POST", "/auth/logout")

    async def me(self) -> User:
        return UserEnvelope.model_validate(await self._request("GET", "/auth/me")).user

    async def aclose(self) -> None:
        await self._http.aclose()
        await self._transfer_http.aclose()
