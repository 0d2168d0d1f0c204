"""Tests for the session identity provider."""

import pytest

from expense_tracker.config import AuthSettings
from expense_tracker.services.identity import AuthenticationError, SessionIdentityProvider


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestAuthDisabled:
    """Tests for the provider with no password configured."""

    def test_everyone_is_the_default_actor(self):
        """Test that identity is always known when auth is off."""
        provider = SessionIdentityProvider(AuthSettings(password=None, default_actor="local"))
        assert not provider.enabled
        assert provider.current_identity(None).id == "local"

    def test_blank_password_disables_auth(self):
        """Test that an empty AUTH_PASSWORD counts as unset."""
        assert not AuthSettings(password="   ").enabled

    def test_login_accepts_anything(self):
        """Test that login still opens a session."""
        provider = SessionIdentityProvider(AuthSettings(password=None))
        session = provider.login("alice", "whatever")
        assert session.user.id == "alice"


class TestAuthEnabled:
    """Tests for the provider with a shared password."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def provider(self, clock):
        settings = AuthSettings(password="hunter2", session_ttl_seconds=600)
        return SessionIdentityProvider(settings, clock=clock)

    def test_no_token_is_anonymous(self, provider):
        """Test that a missing cookie means no identity."""
        assert provider.current_identity(None) is None
        assert provider.current_identity("made-up") is None

    def test_wrong_password_rejected(self, provider):
        """Test credential checking."""
        with pytest.raises(AuthenticationError):
            provider.login("alice", "wrong")

    def test_login_then_identify(self, provider):
        """Test that the session token identifies the user."""
        session = provider.login("alice", "hunter2")
        assert provider.current_identity(session.token).id == "alice"

    def test_blank_username_uses_default_actor(self, provider):
        """Test logins without a username."""
        session = provider.login("", "hunter2")
        assert session.user.id == "local"

    def test_sessions_expire(self, provider, clock):
        """Test session lifetime."""
        session = provider.login("alice", "hunter2")
        clock.now += 601
        assert provider.current_identity(session.token) is None

    def test_logout_ends_session(self, provider):
        """Test that logout invalidates the token."""
        session = provider.login("alice", "hunter2")
        assert provider.logout(session.token).id == "alice"
        assert provider.current_identity(session.token) is None
        assert provider.logout(session.token) is None

    def test_login_prunes_expired_sessions(self, provider, clock):
        """Test that abandoned sessions do not accumulate."""
        old = provider.login("alice", "hunter2")
        clock.now += 601
        fresh = provider.login("bob", "hunter2")
        assert set(provider._sessions) == {fresh.token}
        assert provider.current_identity(old.token) is None
