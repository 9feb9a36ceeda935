"""Explicit authentication session shared with the data gateway.

The session manager is created once by the application and injected into
the gateway and the view-state stores. Components that care about sign-in
changes subscribe to it instead of reading ambient global state.
"""

import threading
from collections.abc import Callable
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from supabase import Client

from boulderflow.database.exceptions import AuthenticationRequiredError, GatewayError
from boulderflow.database.supabase_client import supabase_op
from boulderflow.logging_config import get_logger

logger = get_logger(__name__)

SessionListener = Callable[[Optional["AuthSession"]], None]


class AuthSession(BaseModel):
    """The signed-in user as seen by the client.

    Attributes:
        user_id: Backend user id; every user-scoped row references it.
        email: Email address of the user, when known.
        access_token: Bearer token of the backend session, when known.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    email: Optional[str] = None
    access_token: Optional[str] = None

    @classmethod
    def from_supabase(cls, session: Any) -> Optional["AuthSession"]:
        """Convert a Supabase auth session object.

        Args:
            session: ``gotrue`` Session, or None.

        Returns:
            AuthSession, or None when there is no session or user.
        """
        if session is None or getattr(session, "user", None) is None:
            return None
        return cls(
            user_id=str(session.user.id),
            email=getattr(session.user, "email", None),
            access_token=getattr(session, "access_token", None),
        )


class SessionManager:
    """Holds the current session and notifies listeners of changes."""

    def __init__(self, session: Optional[AuthSession] = None) -> None:
        self._session = session
        self._listeners: list[SessionListener] = []
        self._lock = threading.Lock()

    @property
    def current(self) -> Optional[AuthSession]:
        return self._session

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    def require_user(self) -> AuthSession:
        """Return the current session or fail.

        Raises:
            AuthenticationRequiredError: If nobody is signed in.
        """
        session = self._session
        if session is None:
            raise AuthenticationRequiredError("User not authenticated")
        return session

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a listener called with the new session on every change.

        Args:
            listener: Callable receiving the new session (None on sign-out).

        Returns:
            A function that removes the listener.
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def set_session(self, session: Optional[AuthSession]) -> None:
        """Replace the current session and notify listeners if it changed."""
        with self._lock:
            if session == self._session:
                return
            self._session = session
            listeners = list(self._listeners)

        logger.info(
            "Session changed",
            extra={"user_id": session.user_id if session else None},
        )
        for listener in listeners:
            try:
                listener(session)
            except Exception:  # pylint: disable=broad-except
                logger.exception("Session listener failed")

    def clear(self) -> None:
        self.set_session(None)

    # -- Supabase auth -------------------------------------------------------

    def bind(self, client: Client) -> Any:
        """Follow the Supabase auth state of ``client``.

        Args:
            client: Supabase client whose auth events drive this manager.

        Returns:
            The subscription handle returned by Supabase.
        """

        def _on_auth_state_change(event: str, session: Any) -> None:
            logger.debug("Auth state change: %s", event)
            self.set_session(AuthSession.from_supabase(session))

        return client.auth.on_auth_state_change(_on_auth_state_change)

    def sign_in(self, client: Client, email: str, password: str) -> AuthSession:
        """Sign in with email and password.

        Raises:
            GatewayError: If the backend rejects the credentials.
        """
        with supabase_op("Failed to sign in", GatewayError):
            response = client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )

        session = AuthSession.from_supabase(response.session)
        if session is None:
            raise GatewayError("Sign-in returned no session")
        self.set_session(session)
        return session

    def sign_up(
        self, client: Client, email: str, password: str
    ) -> Optional[AuthSession]:
        """Register a new account.

        Returns:
            The new session, or None when the backend requires email
            confirmation before signing in.
        """
        with supabase_op("Failed to sign up", GatewayError):
            response = client.auth.sign_up({"email": email, "password": password})

        session = AuthSession.from_supabase(response.session)
        if session is not None:
            self.set_session(session)
        return session

    def sign_out(self, client: Client) -> None:
        with supabase_op("Failed to sign out", GatewayError):
            client.auth.sign_out()
        self.clear()
