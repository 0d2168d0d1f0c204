"""FastAPI dependencies: collaborators from app state, and the calling user."""

from typing import Annotated, Optional

from fastapi import Depends, Request

from expense_tracker.api.errors import UnauthorizedError
from expense_tracker.api.service import ExpenseService
from expense_tracker.audit import AuditLogger
from expense_tracker.config import AuthSettings
from expense_tracker.models.expense import User
from expense_tracker.services.identity import IdentityProvider


def get_service(request: Request) -> ExpenseService:
    return request.app.state.service


def get_identity(request: Request) -> IdentityProvider:
    return request.app.state.identity


def get_audit_logger(request: Request) -> AuditLogger:
    return request.app.state.audit_logger


def get_auth_settings(request: Request) -> AuthSettings:
    return request.app.state.auth_settings


def session_token(request: Request) -> Optional[str]:
    """Session token from the session cookie, if any."""
    return request.cookies.get(get_auth_settings(request).session_cookie_name)


def current_user(request: Request) -> Optional[User]:
    """The authenticated caller, or None."""
    return get_identity(request).current_identity(session_token(request))


async def require_user(request: Request) -> User:
    user = current_user(request)
    if user is None:
        await get_audit_logger(request).log_auth_required(request.url.path)
        raise UnauthorizedError("Unauthorized")
    return user


ServiceDep = Annotated[ExpenseService, Depends(get_service)]
IdentityDep = Annotated[IdentityProvider, Depends(get_identity)]
AuditDep = Annotated[AuditLogger, Depends(get_audit_logger)]
AuthSettingsDep = Annotated[AuthSettings, Depends(get_auth_settings)]
OptionalUserDep = Annotated[Optional[User], Depends(current_user)]
UserDep = Annotated[User, Depends(require_user)]


def actor_of(user: Optional[User]) -> Optional[str]:
    return user.id if user else None
