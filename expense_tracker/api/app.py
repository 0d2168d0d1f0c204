"""
API application factory.

`create_app()` wires the record store, object store, identity provider and
audit logger into a FastAPI app. Every collaborator can be injected, which
is how tests run the API against in-memory fakes.
"""

import time
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from expense_tracker import __version__
from expense_tracker.api.errors import ApiError
from expense_tracker.api.routes import auth, expenses, health, upload
from expense_tracker.api.service import ExpenseService
from expense_tracker.audit import AuditLogger, configure_logging
from expense_tracker.config import Settings, get_settings
from expense_tracker.models.expense import ErrorBody, ValidationIssue
from expense_tracker.services.identity import IdentityProvider, SessionIdentityProvider
from expense_tracker.services.objects import (
    MinioObjectStore,
    ObjectStoreError,
    ObjectStoreInterface,
)
from expense_tracker.services.storage import (
    AuditStorageInterface,
    ExpenseStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    StorageError,
)


logger = structlog.get_logger(__name__)


def build_storage(
    settings: Settings,
) -> tuple[ExpenseStorageInterface, AuditStorageInterface]:
    """Record and audit storage for the configured backend."""
    backend = settings.app.storage_backend
    if backend == "google_sheets":
        client = GoogleSheetsClient(settings.google_sheets)
        return GoogleSheetsExpenseStorage(client), GoogleSheetsAuditStorage(client)
    return InMemoryExpenseStorage(), InMemoryAuditStorage()


def _error_response(
    status_code: int,
    message: str,
    issues: Optional[list[ValidationIssue]] = None,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    body = ErrorBody(error=message, issues=issues)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True, exclude_none=True),
        headers=headers,
    )


def _issues_from(exc: RequestValidationError) -> list[ValidationIssue]:
    issues = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "path", "query")]
        issues.append(ValidationIssue(field=".".join(loc), message=error.get("msg", "Invalid value")))
    return issues


def register_exception_handlers(app: FastAPI) -> None:
    """Map typed errors to `{error, issues?}` bodies."""

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        issues = _issues_from(exc)
        await app.state.audit_logger.log_validation_failed(
            request.url.path,
            [issue.model_dump() for issue in issues],
        )
        return _error_response(400, "Invalid request", issues)

    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError):
        return _error_response(exc.status_code, exc.message, exc.issues, exc.headers)

    @app.exception_handler(StorageError)
    async def handle_storage_error(request: Request, exc: StorageError):
        logger.error("record_store_failed", path=request.url.path, error=str(exc))
        await app.state.audit_logger.log_external_service_error("record_store", str(exc))
        return _error_response(500, str(exc) or "Record store error")

    @app.exception_handler(ObjectStoreError)
    async def handle_object_store_error(request: Request, exc: ObjectStoreError):
        logger.error("object_store_failed", path=request.url.path, error=str(exc))
        await app.state.audit_logger.log_external_service_error("object_store", str(exc))
        return _error_response(500, str(exc) or "Object store error")


def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[ExpenseStorageInterface] = None,
    object_store: Optional[ObjectStoreInterface] = None,
    identity: Optional[IdentityProvider] = None,
    audit_logger: Optional[AuditLogger] = None,
) -> FastAPI:
    """
    Build the API.

    Collaborators left as None are built from settings: the configured
    record store backend, a MinIO object store, a shared-password
    identity provider, and an audit logger writing to the record store's
    audit table.
    """
    settings = settings or get_settings()
    app_settings = settings.app
    auth_settings = settings.auth
    configure_logging(app_settings.log_level)

    if storage is None:
        storage, audit_storage = build_storage(settings)
        audit_logger = audit_logger or AuditLogger(audit_storage)
    audit_logger = audit_logger or AuditLogger()
    object_store = object_store or MinioObjectStore()
    identity = identity or SessionIdentityProvider(auth_settings)

    app = FastAPI(
        title="Expense Tracker API",
        description="Expenses with receipts uploaded straight to object storage.",
        version=__version__,
        debug=app_settings.debug_mode,
    )
    app.state.settings = settings
    app.state.auth_settings = auth_settings
    app.state.identity = identity
    app.state.audit_logger = audit_logger
    app.state.service = ExpenseService(storage, object_store, audit_logger, app_settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def response_time(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Response-Time"] = f"{elapsed_ms:.0f}ms"
        logger.info(
            "request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round(elapsed_ms, 1),
        )
        return response

    register_exception_handlers(app)

    app.include_router(expenses.router, prefix="/api")
    app.include_router(upload.router, prefix="/api")
    app.include_router(auth.router, prefix="/api")
    app.include_router(health.router)

    logger.info(
        "app_created",
        environment=app_settings.app_environment,
        storage=type(storage).__name__,
        auth_enabled=auth_settings.enabled,
    )
    return app
