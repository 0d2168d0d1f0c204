"""
Identity Provider

Answers one question for the API: who is calling? Callers log in once,
receive an opaque session token (carried as a cookie), and present it on
every later request.

When no password is configured, authentication is disabled: every caller
is the configured default actor and login accepts any credentials. A
warning is logged when the provider is created in that mode.
"""

import secrets
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

import structlog
from pydantic import BaseModel

from expense_tracker.config import AuthSettings, get_settings
from expense_tracker.models.expense import User


logger = structlog.get_logger(__name__)


class AuthenticationError(Exception):
    """Credentials were rejected."""
    pass


class Session(BaseModel):
    """An authenticated session."""

    token: str
    user: User
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class IdentityProvider(ABC):
    """Resolves session tokens to identities, and opens and closes sessions."""

    @abstractmethod
    def current_identity(self, token: Optional[str]) -> Optional[User]:
        """
        Identity behind a session token.

        Returns:
            The user, or None when the token is missing, unknown or expired
        """
        pass

    @abstractmethod
    def login(self, username: str, password: str) -> Session:
        """
        Open a session.

        Raises:
            AuthenticationError: If the credentials are rejected
        """
        pass

    @abstractmethod
    def logout(self, token: Optional[str]) -> Optional[User]:
        """
        Close a session. Unknown tokens are ignored.

        Returns:
            The user whose session was closed, if any
        """
        pass


class SessionIdentityProvider(IdentityProvider):
    """
    Shared-password login with in-memory sessions.

    Sessions live in this process only; restarting the API logs everyone out.
    """

    def __init__(
        self,
        settings: Optional[AuthSettings] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._settings = settings or get_settings().auth
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        if not self._settings.enabled:
            logger.warning(
                "auth_disabled",
                message="AUTH_PASSWORD is not set. The API is unauthenticated; run locally only.",
                default_actor=self._settings.default_actor,
            )

    @property
    def enabled(self) -> bool:
        return self._settings.enabled

    def current_identity(self, token: Optional[str]) -> Optional[User]:
        if not self.enabled:
            return User(id=self._settings.default_actor)
        if not token:
            return None
        session = self._sessions.get(token)
        if session is None:
            return None
        if session.is_expired(self._clock()):
            del self._sessions[token]
            return None
        return session.user

    def login(self, username: str, password: str) -> Session:
        username = (username or "").strip()
        if self.enabled:
            expected = self._settings.password or ""
            if not secrets.compare_digest(password.encode(), expected.encode()):
                raise AuthenticationError("Invalid credentials")
        self._prune_expired()
        user = User(id=username or self._settings.default_actor)
        session = Session(
            token=secrets.token_urlsafe(32),
            user=user,
            expires_at=self._clock() + self._settings.session_ttl_seconds,
        )
        self._sessions[session.token] = session
        logger.info("session_opened", user=user.id)
        return session

    def _prune_expired(self) -> None:
        now = self._clock()
        expired = [t for t, s in self._sessions.items() if s.is_expired(now)]
        for token in expired:
            del self._sessions[token]
        if expired:
            logger.debug("sessions_pruned", count=len(expired))

    def logout(self, token: Optional[str]) -> Optional[User]:
        if not token:
            return None
        session = self._sessions.pop(token, None)
        if session is None:
            return None
        logger.info("session_closed", user=session.user.id)
        return session.user

