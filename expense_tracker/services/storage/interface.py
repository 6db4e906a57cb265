"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a hosted document database later
2. Use in-memory storage for testing
3. Keep report logic decoupled from storage implementation

The interface is intentionally small: transactions are create-only,
so there is no update or delete.
"""

from abc import ABC, abstractmethod
from uuid import UUID

from expense_tracker.models.audit import AuditEvent
from expense_tracker.models.transaction import Transaction, TransactionDraft


class TransactionStorageInterface(ABC):
    """
    Abstract interface for the transaction document store.

    Any storage implementation (Google Sheets, in-memory, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def fetch_transactions(self, owner_id: str) -> list[Transaction]:
        """
        Fetch every transaction owned by an account.

        Args:
            owner_id: The owning account's identifier

        Returns:
            The owner's transactions, newest occurred_at first

        Raises:
            IndexNotReadyError: The store cannot serve the query yet; retry later
            ConnectionError: The store could not be reached
            ServerError: The store reported a failure
        """
        pass

    @abstractmethod
    async def create_transaction(
        self,
        owner_id: str,
        draft: TransactionDraft,
    ) -> Transaction:
        """
        Persist a new transaction.

        The store assigns the id and creation timestamp.

        Args:
            owner_id: The owning account's identifier
            draft: Validated fields entered by the user

        Returns:
            The stored transaction

        Raises:
            StorageError: If the write fails
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Events sharing a correlation ID, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """The most recent audit events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    retryable = False


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class ServerError(StorageError):
    """The storage backend reported a server-side failure."""
    pass


class IndexNotReadyError(StorageError):
    """
    The store cannot answer the query yet.

    Raised while a backing index is still being built or the backend is
    temporarily refusing requests. Retry after a delay.
    """
    retryable = True
