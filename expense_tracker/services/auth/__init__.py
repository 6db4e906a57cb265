"""Account/session provider package."""

from expense_tracker.services.auth.provider import (
    AccountProviderInterface,
    AuthError,
    LocalAccountProvider,
    SessionListener,
)

__all__ = [
    "AccountProviderInterface",
    "AuthError",
    "LocalAccountProvider",
    "SessionListener",
]
