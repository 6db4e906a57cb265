"""
In-Memory Storage Implementation

Keeps transactions in a per-owner list for tests and for running the
app without Google Sheets configured. Nothing survives a restart.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from expense_tracker.models.audit import AuditEvent
from expense_tracker.models.transaction import Transaction, TransactionDraft
from expense_tracker.services.storage.interface import (
    AuditStorageInterface,
    StorageError,
    TransactionStorageInterface,
)


class InMemoryTransactionStorage(TransactionStorageInterface):
    """
    Append-only transaction store held in a dict of lists.

    failures: optional queue of exceptions to raise from upcoming
    fetches, one per call, for simulating a flaky backend.
    """

    def __init__(
        self,
        transactions: Optional[list[Transaction]] = None,
        failures: Optional[list[StorageError]] = None,
    ):
        self._by_owner: dict[str, list[Transaction]] = {}
        self._failures = list(failures or [])
        self.fetch_calls = 0
        for transaction in transactions or []:
            self._by_owner.setdefault(transaction.owner_id, []).append(transaction)

    def queue_failure(self, error: StorageError) -> None:
        self._failures.append(error)

    async def fetch_transactions(self, owner_id: str) -> list[Transaction]:
        self.fetch_calls += 1
        if self._failures:
            raise self._failures.pop(0)

        transactions = list(self._by_owner.get(owner_id, []))
        transactions.sort(key=lambda t: t.occurred_at, reverse=True)
        return transactions

    async def create_transaction(
        self,
        owner_id: str,
        draft: TransactionDraft,
    ) -> Transaction:
        try:
            transaction = Transaction(
                id=uuid4().hex,
                owner_id=owner_id,
                kind=draft.kind,
                category=draft.category,
                amount=draft.amount,
                description=draft.description,
                occurred_at=draft.occurred_at,
                created_at=datetime.utcnow(),
            )
        except ValueError as e:
            raise StorageError(f"Failed to save transaction: {e}")

        self._by_owner.setdefault(owner_id, []).append(transaction)
        return transaction


class InMemoryAuditStorage(AuditStorageInterface):
    """Audit log kept in a plain list."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self.events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
