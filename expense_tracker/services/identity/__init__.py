"""Identity provider package."""

from expense_tracker.services.identity.provider import (
    AuthenticationError,
    IdentityProvider,
    Session,
    SessionIdentityProvider,
)

__all__ = [
    "AuthenticationError",
    "IdentityProvider",
    "Session",
    "SessionIdentityProvider",
]
