"""Services package."""

from expense_tracker.services.auth import (
    AccountProviderInterface,
    AuthError,
    LocalAccountProvider,
)
from expense_tracker.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
    InMemoryAuditStorage,
    InMemoryTransactionStorage,
    IndexNotReadyError,
    ServerError,
    StorageError,
    TransactionStorageInterface,
)

__all__ = [
    # Account services
    "AccountProviderInterface",
    "AuthError",
    "LocalAccountProvider",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsTransactionStorage",
    "InMemoryAuditStorage",
    "InMemoryTransactionStorage",
    "IndexNotReadyError",
    "ServerError",
    "StorageError",
    "TransactionStorageInterface",
]
