"""
Shared fixtures.

Test strategy:
1. Unit tests for pure components (models, aggregator, validator)
2. Flow tests with in-memory storage
3. No real API calls in tests (use fakes)
"""

from datetime import datetime
from decimal import Decimal
from itertools import count

import pytest

from expense_tracker.models.transaction import Transaction, TransactionKind


@pytest.fixture
def make_transaction():
    """Factory for stored transactions with sensible defaults."""
    ids = count(1)

    def _make(
        kind: str = "expense",
        amount="10.00",
        category: str = None,
        occurred_at="2024-01-05T12:00:00",
        description: str = None,
        owner_id: str = "user-1",
    ) -> Transaction:
        kind = TransactionKind(kind)
        if category is None:
            category = "Salary" if kind == TransactionKind.INCOME else "Food"
        return Transaction(
            id=f"tx-{next(ids)}",
            owner_id=owner_id,
            kind=kind,
            category=category,
            amount=amount,
            description=description or f"{category} entry",
            occurred_at=occurred_at,
        )

    return _make


@pytest.fixture
def example_transactions(make_transaction):
    """Salary and two food expenses across January and February 2024."""
    return [
        make_transaction("income", Decimal("1000"), "Salary", "2024-01-05T09:00:00", "January salary"),
        make_transaction("expense", Decimal("300"), "Food", "2024-01-05T18:30:00", "Groceries"),
        make_transaction("expense", Decimal("200"), "Food", "2024-02-01T12:00:00", "Restaurant"),
    ]


@pytest.fixture
def now():
    return datetime(2024, 3, 15, 12, 0, 0)
