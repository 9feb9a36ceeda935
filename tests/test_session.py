"""Tests for the explicit auth session manager."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from boulderflow.database.exceptions import AuthenticationRequiredError, GatewayError
from boulderflow.database.session import AuthSession, SessionManager


def _supabase_session(user_id: str = "user-1") -> SimpleNamespace:
    return SimpleNamespace(
        user=SimpleNamespace(id=user_id, email=f"{user_id}@example.com"),
        access_token="token-123",
    )


class TestAuthSession:
    """Tests for AuthSession conversion."""

    def test_from_supabase(self) -> None:
        """Supabase sessions should map to AuthSession."""
        session = AuthSession.from_supabase(_supabase_session())

        assert session == AuthSession(
            user_id="user-1", email="user-1@example.com", access_token="token-123"
        )

    @pytest.mark.parametrize("raw", [None, SimpleNamespace(user=None)])
    def test_from_supabase_without_user(self, raw) -> None:
        """No session or no user should give None."""
        assert AuthSession.from_supabase(raw) is None


class TestSessionManager:
    """Tests for SessionManager state and notifications."""

    def test_require_user_without_session(self) -> None:
        """require_user should raise when nobody is signed in."""
        manager = SessionManager()

        assert not manager.is_authenticated
        with pytest.raises(AuthenticationRequiredError, match="not authenticated"):
            manager.require_user()

    def test_require_user_returns_session(self, session) -> None:
        """require_user should return the active session."""
        assert SessionManager(session).require_user() is session

    def test_subscribers_notified_on_change(self, session) -> None:
        """Listeners should receive each new session."""
        manager = SessionManager()
        received = []
        manager.subscribe(received.append)

        manager.set_session(session)
        manager.clear()

        assert received == [session, None]

    def test_no_notification_without_change(self, session) -> None:
        """Setting the same session again should not notify."""
        manager = SessionManager(session)
        listener = MagicMock()
        manager.subscribe(listener)

        manager.set_session(session)

        listener.assert_not_called()

    def test_unsubscribe(self, session) -> None:
        """Unsubscribed listeners should not be called."""
        manager = SessionManager()
        listener = MagicMock()
        unsubscribe = manager.subscribe(listener)

        unsubscribe()
        unsubscribe()
        manager.set_session(session)

        listener.assert_not_called()

    def test_failing_listener_does_not_block_others(self, session) -> None:
        """A raising listener should not stop later listeners."""
        manager = SessionManager()
        second = MagicMock()
        manager.subscribe(MagicMock(side_effect=RuntimeError("boom")))
        manager.subscribe(second)

        manager.set_session(session)

        second.assert_called_once_with(session)


class TestSupabaseAuth:
    """Tests for sign-in flows against a mocked Supabase client."""

    def test_sign_in_sets_session(self) -> None:
        """A successful sign-in should become the current session."""
        client = MagicMock()
        client.auth.sign_in_with_password.return_value = SimpleNamespace(
            session=_supabase_session()
        )
        manager = SessionManager()

        session = manager.sign_in(client, "user-1@example.com", "secret")

        assert manager.current == session
        client.auth.sign_in_with_password.assert_called_once_with(
            {"email": "user-1@example.com", "password": "secret"}
        )

    def test_sign_in_failure_is_wrapped(self) -> None:
        """Backend rejections should raise GatewayError."""
        client = MagicMock()
        client.auth.sign_in_with_password.side_effect = Exception("Invalid login")

        with pytest.raises(GatewayError, match="Failed to sign in: Invalid login"):
            SessionManager().sign_in(client, "a@b.c", "wrong")

    def test_sign_up_awaiting_confirmation(self) -> None:
        """Sign-up without a session should leave the manager signed out."""
        client = MagicMock()
        client.auth.sign_up.return_value = SimpleNamespace(session=None)
        manager = SessionManager()

        assert manager.sign_up(client, "a@b.c", "secret") is None
        assert manager.current is None

    def test_sign_out_clears_session(self, session) -> None:
        """Signing out should clear the session."""
        client = MagicMock()
        manager = SessionManager(session)

        manager.sign_out(client)

        client.auth.sign_out.assert_called_once()
        assert manager.current is None

    def test_bind_follows_auth_events(self) -> None:
        """Auth state events should update the session."""
        client = MagicMock()
        manager = SessionManager()

        manager.bind(client)
        callback = client.auth.on_auth_state_change.call_args.args[0]
        callback("SIGNED_IN", _supabase_session("user-7"))

        assert manager.require_user().user_id == "user-7"

        callback("SIGNED_OUT", None)
        assert manager.current is None
