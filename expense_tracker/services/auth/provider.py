"""
Account / Session Provider

Sign-in is delegated to an external identity service. The rest of the
system only sees the UserSession this provider hands out, and is told
about sign-in and sign-out through listeners.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional

import structlog

from expense_tracker.models.session import UserSession


SessionListener = Callable[[Optional[UserSession]], None]

logger = structlog.get_logger(__name__)


class AuthError(Exception):
    """Base exception for sign-in failures."""
    pass


class AccountProviderInterface(ABC):
    """Abstract interface for the account/session provider."""

    @abstractmethod
    def current_session(self) -> Optional[UserSession]:
        """The signed-in session, or None when nobody is signed in."""
        pass

    @abstractmethod
    async def sign_in(
        self,
        user_id: str,
        display_name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> UserSession:
        """Start a session. Raises AuthError if the identity service refuses."""
        pass

    @abstractmethod
    async def sign_out(self) -> None:
        """End the current session, if any."""
        pass

    @abstractmethod
    def add_listener(self, listener: SessionListener) -> Callable[[], None]:
        """
        Subscribe to sign-in/sign-out changes.

        The listener receives the new session (None after sign-out).
        Returns a function that removes the listener.
        """
        pass


class LocalAccountProvider(AccountProviderInterface):
    """
    In-process provider.

    Used for tests and local runs where the identity service has
    already vouched for the user (or there is no identity service).
    """

    def __init__(self, session: Optional[UserSession] = None):
        self._session = session
        self._listeners: list[SessionListener] = []

    def current_session(self) -> Optional[UserSession]:
        return self._session

    async def sign_in(
        self,
        user_id: str,
        display_name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> UserSession:
        try:
            session = UserSession(
                user_id=user_id,
                display_name=display_name,
                email=email,
            )
        except ValueError as e:
            raise AuthError(f"Failed to sign in: {e}")

        self._session = session
        self._notify(session)
        return session

    async def sign_out(self) -> None:
        if self._session is None:
            return
        self._session = None
        self._notify(None)

    def add_listener(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self, session: Optional[UserSession]) -> None:
        for listener in list(self._listeners):
            try:
                listener(session)
            except Exception as e:
                # One broken listener must not block the others
                logger.error("session_listener_failed", error=str(e))
