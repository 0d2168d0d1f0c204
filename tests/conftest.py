"""
Shared fixtures.

External services are faked: the record store is in memory, the object
store signs URLs without any network, and the API is reached through
httpx's ASGITransport.
"""

from typing import Optional

import httpx
import pytest
import pytest_asyncio

from expense_tracker.api import create_app
from expense_tracker.audit import AuditLogger
from expense_tracker.client import ExpenseApiClient, ExpenseClient
from expense_tracker.config import AppSettings, AuthSettings, ClientSettings
from expense_tracker.services.identity import SessionIdentityProvider
from expense_tracker.services.objects import ObjectStoreInterface, SigningError
from expense_tracker.services.storage import InMemoryAuditStorage, InMemoryExpenseStorage


API_BASE = "http://testserver/api"
OBJECTS_BASE = "https://objects.test/receipts"


class FakeObjectStore(ObjectStoreInterface):
    """Signs URLs by formatting strings; records every call."""

    def __init__(self):
        self.uploads: list[tuple[str, str, int]] = []
        self.downloads: list[tuple[str, int]] = []
        self.fail = False

    def upload_url(self, key: str, content_type: str, ttl_seconds: int) -> str:
        if self.fail:
            raise SigningError(key, "Failed to sign upload URL: bucket unavailable")
        self.uploads.append((key, content_type, ttl_seconds))
        return f"{OBJECTS_BASE}/{key}?X-Amz-Expires={ttl_seconds}&op=put"

    def download_url(self, key: str, ttl_seconds: int) -> str:
        if self.fail:
            raise SigningError(key, "Failed to sign download URL: bucket unavailable")
        self.downloads.append((key, ttl_seconds))
        return f"{OBJECTS_BASE}/{key}?X-Amz-Expires={ttl_seconds}&op=get"


class StubSettings:
    """Stands in for the root Settings with explicit sections."""

    def __init__(
        self,
        app: Optional[AppSettings] = None,
        auth: Optional[AuthSettings] = None,
    ):
        self.app = app or AppSettings(_env_file=None)
        self.auth = auth or AuthSettings(password=None)


def build_app(
    storage=None,
    object_store=None,
    audit_storage=None,
    password: Optional[str] = None,
):
    auth = AuthSettings(password=password)
    return create_app(
        settings=StubSettings(auth=auth),
        storage=storage if storage is not None else InMemoryExpenseStorage(),
        object_store=object_store or FakeObjectStore(),
        identity=SessionIdentityProvider(auth),
        audit_logger=AuditLogger(audit_storage or InMemoryAuditStorage()),
    )


def asgi_client(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url=API_BASE)


@pytest.fixture
def storage():
    return InMemoryExpenseStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def object_store():
    return FakeObjectStore()


@pytest.fixture
def app(storage, object_store, audit_storage):
    """API with authentication disabled."""
    return build_app(storage, object_store, audit_storage)


@pytest.fixture
def secured_app(storage, object_store, audit_storage):
    """API requiring the password 'hunter2'."""
    return build_app(storage, object_store, audit_storage, password="hunter2")


@pytest_asyncio.fixture
async def http(app):
    async with asgi_client(app) as client:
        yield client


@pytest_asyncio.fixture
async def secured_http(secured_app):
    async with asgi_client(secured_app) as client:
        yield client


@pytest.fixture
def client_settings():
    return ClientSettings(base_url=API_BASE, timeout_seconds=5.0, serialize_mutations=False)


def transfer_client(handler) -> httpx.AsyncClient:
    """Client whose requests are answered by `handler(request)`."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def accept_all_transfers(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200)


@pytest_asyncio.fixture
async def expense_client(app, client_settings):
    """ExpenseClient talking to the in-process API."""
    api = ExpenseApiClient(
        settings=client_settings,
        http=asgi_client(app),
        transfer_http=transfer_client(accept_all_transfers),
    )
    client = ExpenseClient(api)
    yield client
    await client.aclose()


class ControlledTransport(httpx.AsyncBaseTransport):
    """
    ASGITransport to the real app that can go offline or hold writes open.

    Every non-GET request sets `entered`; while `gate` is set to an unset
    Event, those requests wait on it before proceeding.
    """

    def __init__(self, app):
        self.inner = httpx.ASGITransport(app=app)
        self.offline = False
        self.gate = None
        self.entered = None
        self.requests: list[tuple[str, str]] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.method, request.url.path))
        if request.method != "GET":
            if self.entered is not None:
                self.entered.set()
            if self.gate is not None:
                await self.gate.wait()
        if self.offline:
            raise httpx.ConnectError("connection refused", request=request)
        return await self.inner.handle_async_request(request)

    def writes(self) -> list[tuple[str, str]]:
        return [r for r in self.requests if r[0] != "GET"]


def controlled_client(
    transport: ControlledTransport,
    settings: ClientSettings,
    transfer_handler=accept_all_transfers,
    **options,
) -> ExpenseClient:
    api = ExpenseApiClient(
        settings=settings,
        http=httpx.AsyncClient(transport=transport, base_url=API_BASE),
        transfer_http=transfer_client(transfer_handler),
    )
    return ExpenseClient(api, **options)
