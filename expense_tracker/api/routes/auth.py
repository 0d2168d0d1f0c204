"""Session routes: log in with HTTP Basic, then ride the session cookie."""

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from expense_tracker.api.dependencies import (
    AuditDep,
    AuthSettingsDep,
    IdentityDep,
    UserDep,
    session_token,
)
from expense_tracker.api.errors import UnauthorizedError
from expense_tracker.models.expense import UserEnvelope
from expense_tracker.services.identity import AuthenticationError


router = APIRouter(prefix="/auth", tags=["auth"])

security = HTTPBasic(auto_error=False)


@router.get("/me", response_model=UserEnvelope, summary="Current user")
async def me(user: UserDep) -> UserEnvelope:
    return UserEnvelope(user=user)


@router.post("/login", response_model=UserEnvelope, summary="Open a session")
async def login(
    response: Response,
    identity: IdentityDep,
    audit: AuditDep,
    auth_settings: AuthSettingsDep,
    credentials: Optional[HTTPBasicCredentials] = Depends(security),
) -> UserEnvelope:
    if credentials is None and auth_settings.enabled:
        raise UnauthorizedError(
            "Authentication required",
            headers={"WWW-Authenticate": "Basic"},
        )

    username = credentials.username if credentials else ""
    password = credentials.password if credentials else ""
    try:
        session = identity.login(username, password)
    except AuthenticationError as e:
        await audit.log_login_failed(username)
        raise UnauthorizedError(str(e), headers={"WWW-Authenticate": "Basic"})

    response.set_cookie(
        auth_settings.session_cookie_name,
        session.token,
        max_age=auth_settings.session_ttl_seconds,
        httponly=True,
        samesite="lax",
        secure=auth_settings.cookie_secure,
    )
    await audit.log_user_logged_in(session.user.id)
    return UserEnvelope(user=session.user)


@router.post("/logout", summary="Close the session")
async def logout(
    request: Request,
    response: Response,
    identity: IdentityDep,
    audit: AuditDep,
    auth_settings: AuthSettingsDep,
) -> dict:
    user = identity.logout(session_token(request))
    response.delete_cookie(auth_settings.session_cookie_name)
    await audit.log_user_logged_out(user.id if user else None)
    return {"ok": True}
