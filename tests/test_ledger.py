"""
Flow tests for the ledger, session and report orchestration.

All flows run against in-memory storage and a local account provider.
"""

import asyncio
from datetime import datetime
from decimal import Decimal

import pytest

from expense_tracker.audit import AuditLogger, create_correlation_id
from expense_tracker.models.audit import AuditEventType
from expense_tracker.models.session import UserSession
from expense_tracker.models.transaction import TransactionDraft
from expense_tracker.orchestrator import (
    INDEX_BUILDING_MESSAGE,
    LOAD_FAILED_MESSAGE,
    NotAuthenticatedError,
    ReportFlow,
    SessionFlow,
    TransactionLedger,
    TransactionValidationError,
    create_app_components,
)
from expense_tracker.reports import ReportBuilder
from expense_tracker.services.auth import AuthError, LocalAccountProvider
from expense_tracker.services.storage import (
    ConnectionError,
    InMemoryAuditStorage,
    InMemoryTransactionStorage,
    IndexNotReadyError,
    ServerError,
    StorageError,
)


@pytest.fixture
def accounts():
    return LocalAccountProvider()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def storage(example_transactions):
    return InMemoryTransactionStorage(transactions=example_transactions)


@pytest.fixture
def ledger(storage, accounts, audit_storage):
    return TransactionLedger(
        storage=storage,
        account_provider=accounts,
        audit_logger=AuditLogger(audit_storage),
        retry_attempts=3,
        retry_min_wait=0,
        retry_max_wait=0,
    )


@pytest.fixture
def session_flow(accounts, ledger, audit_storage):
    return SessionFlow(accounts, ledger, audit_logger=AuditLogger(audit_storage))


def event_types(audit_storage):
    return [e.event_type for e in audit_storage.events]


def expense_draft(**overrides) -> TransactionDraft:
    fields = {
        "kind": "expense",
        "category": "Transportation",
        "amount": "45.50",
        "description": "Train pass",
        "occurred_at": datetime(2024, 2, 10, 8, 0),
    }
    fields.update(overrides)
    return TransactionDraft(**fields)


class TestLoad:
    """Tests for TransactionLedger.load."""

    @pytest.mark.asyncio
    async def test_signed_out_returns_empty_without_fetch(self, ledger, storage):
        state = await ledger.load()
        assert state.transactions == []
        assert state.is_signed_in is False
        assert storage.fetch_calls == 0

    @pytest.mark.asyncio
    async def test_sign_in_loads_owner_transactions(self, session_flow, ledger, audit_storage):
        state = await session_flow.sign_in("user-1", email="user@example.com")

        assert state.owner_id == "user-1"
        assert len(state.transactions) == 3
        assert state.loaded_at is not None
        assert ledger.calculate_totals().balance == Decimal("500.00")
        assert event_types(audit_storage) == [
            AuditEventType.USER_SIGNED_IN,
            AuditEventType.TRANSACTIONS_FETCHED,
        ]

    @pytest.mark.asyncio
    async def test_other_owner_sees_nothing(self, session_flow):
        state = await session_flow.sign_in("user-2")
        assert state.transactions == []

    @pytest.mark.asyncio
    async def test_index_not_ready_retried_until_success(self, session_flow, storage):
        storage.queue_failure(IndexNotReadyError("index building"))
        storage.queue_failure(IndexNotReadyError("index building"))

        state = await session_flow.sign_in("user-1")

        assert storage.fetch_calls == 3
        assert state.has_error is False
        assert len(state.transactions) == 3

    @pytest.mark.asyncio
    async def test_index_not_ready_gives_up(self, session_flow, storage, audit_storage):
        for _ in range(3):
            storage.queue_failure(IndexNotReadyError("index building"))

        state = await session_flow.sign_in("user-1")

        assert storage.fetch_calls == 3
        assert state.index_building is True
        assert state.error == INDEX_BUILDING_MESSAGE
        assert state.error_kind == "index_not_ready"
        assert AuditEventType.INDEX_NOT_READY in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_server_error_not_retried(self, session_flow, storage, audit_storage):
        storage.queue_failure(ServerError("500"))

        state = await session_flow.sign_in("user-1")

        assert storage.fetch_calls == 1
        assert state.error == LOAD_FAILED_MESSAGE
        assert state.error_kind == "server"
        assert state.index_building is False
        assert AuditEventType.FETCH_FAILED in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_network_error_keeps_previous_list(self, session_flow, ledger, storage):
        await session_flow.sign_in("user-1")
        storage.queue_failure(ConnectionError("offline"))

        state = await ledger.load()

        assert state.error_kind == "network"
        assert len(state.transactions) == 3

    @pytest.mark.asyncio
    async def test_preexisting_session_loads(self, storage):
        accounts = LocalAccountProvider(UserSession(user_id="user-1"))
        ledger = TransactionLedger(
            storage=storage,
            account_provider=accounts,
            retry_min_wait=0,
            retry_max_wait=0,
        )
        state = await ledger.load()
        assert len(state.transactions) == 3


class TestAddTransaction:
    """Tests for TransactionLedger.add_transaction."""

    @pytest.mark.asyncio
    async def test_add_saves_and_reloads(self, session_flow, ledger, audit_storage):
        await session_flow.sign_in("user-1")

        transaction = await ledger.add_transaction(expense_draft())

        assert transaction.owner_id == "user-1"
        assert transaction.amount == Decimal("45.50")
        assert transaction.id in [t.id for t in ledger.transactions]
        assert len(ledger.transactions) == 4
        assert ledger.calculate_totals().total_expenses == Decimal("545.50")
        assert AuditEventType.TRANSACTION_CREATED in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_events_share_correlation_id(self, session_flow, ledger, audit_storage):
        await session_flow.sign_in("user-1")
        correlation_id = create_correlation_id()

        await ledger.add_transaction(expense_draft(), correlation_id=correlation_id)

        related = await audit_storage.get_events_by_correlation_id(correlation_id)
        assert [e.event_type for e in related] == [
            AuditEventType.TRANSACTION_CREATED,
            AuditEventType.TRANSACTIONS_FETCHED,
        ]

    @pytest.mark.asyncio
    async def test_requires_sign_in(self, ledger, storage):
        with pytest.raises(NotAuthenticatedError, match="User must be logged in"):
            await ledger.add_transaction(expense_draft())
        assert storage.fetch_calls == 0

    @pytest.mark.asyncio
    async def test_invalid_draft_not_saved(self, session_flow, ledger, audit_storage):
        await session_flow.sign_in("user-1")

        with pytest.raises(TransactionValidationError) as exc_info:
            await ledger.add_transaction(expense_draft(description="", category="Salary"))

        assert exc_info.value.result.error_count == 2
        assert len(ledger.transactions) == 3
        assert AuditEventType.VALIDATION_FAILED in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_storage_failure_propagates(self, session_flow, ledger, audit_storage):
        await session_flow.sign_in("user-1")

        class FailingStorage(InMemoryTransactionStorage):
            async def create_transaction(self, owner_id, draft):
                raise ServerError("write refused")

        ledger._storage = FailingStorage()

        with pytest.raises(StorageError):
            await ledger.add_transaction(expense_draft())
        assert AuditEventType.SAVE_FAILED in event_types(audit_storage)


class TestSessionChanges:
    """The ledger follows the account provider."""

    @pytest.mark.asyncio
    async def test_sign_out_clears_transactions(self, session_flow, ledger, audit_storage):
        await session_flow.sign_in("user-1")
        assert len(ledger.transactions) == 3

        await session_flow.sign_out()

        assert ledger.transactions == ()
        assert ledger.state.is_signed_in is False
        assert event_types(audit_storage)[-1] == AuditEventType.USER_SIGNED_OUT

    @pytest.mark.asyncio
    async def test_switching_user_drops_previous_list(self, session_flow, ledger):
        await session_flow.sign_in("user-1")
        await session_flow.sign_in("user-2")
        assert ledger.transactions == ()
        assert ledger.state.owner_id == "user-2"

    @pytest.mark.asyncio
    async def test_close_stops_listening(self, session_flow, ledger, accounts):
        await session_flow.sign_in("user-1")
        ledger.close()
        await accounts.sign_out()
        assert len(ledger.transactions) == 3


class TestReportFlow:
    """Tests for ReportFlow.build_report."""

    @pytest.mark.asyncio
    async def test_requires_sign_in(self, ledger):
        report_flow = ReportFlow(ledger, builder=ReportBuilder(page_size=10))
        with pytest.raises(NotAuthenticatedError):
            await report_flow.build_report()

    @pytest.mark.asyncio
    async def test_report_from_snapshot(self, session_flow, ledger, audit_storage, now):
        await session_flow.sign_in("user-1")
        report_flow = ReportFlow(
            ledger,
            builder=ReportBuilder(page_size=10),
            audit_logger=AuditLogger(audit_storage),
        )

        report = await report_flow.build_report(
            filter={"search_query": "food", "sort_by": "amount", "sort_order": "asc"},
            now=now,
        )

        assert report.totals.total_income == Decimal("1000.00")
        assert [t.amount for t in report.page.items] == [Decimal("200.00"), Decimal("300.00")]
        assert event_types(audit_storage)[-1] == AuditEventType.REPORT_GENERATED


class TestCreateAppComponents:
    """Tests for the component factory."""

    @pytest.mark.asyncio
    async def test_in_memory_components(self):
        session_flow, ledger, report_flow, client = create_app_components(use_storage=False)

        assert client is None
        await session_flow.sign_in("someone")
        await ledger.add_transaction(TransactionDraft(
            kind="income",
            category="Freelance",
            amount="120",
            description="Logo design",
            occurred_at=datetime(2024, 3, 1),
        ))

        report = await report_flow.build_report(now=datetime(2024, 3, 15))
        assert report.totals.balance == Decimal("120.00")
        assert report.monthly_series["2024-03"].savings_rate == Decimal("100.00")


class GatedStorage(InMemoryTransactionStorage):
    """Holds every fetch until the gate opens."""

    def __init__(self, transactions=None):
        super().__init__(transactions=transactions)
        self.started = asyncio.Event()
        self.gate = asyncio.Event()

    async def fetch_transactions(self, owner_id):
        self.started.set()
        await self.gate.wait()
        return await super().fetch_transactions(owner_id)


class TestSessionEndsDuringFetch:
    """A fetch that resolves after sign-out must not repopulate the ledger."""

    @pytest.fixture
    def gated(self, example_transactions):
        return GatedStorage(transactions=example_transactions)

    @pytest.fixture
    def gated_ledger(self, gated, accounts):
        return TransactionLedger(
            storage=gated,
            account_provider=accounts,
            retry_min_wait=0,
            retry_max_wait=0,
        )

    @pytest.mark.asyncio
    async def test_sign_out_mid_fetch_discards_result(self, gated, gated_ledger, accounts, now):
        await accounts.sign_in("user-1")
        pending = asyncio.create_task(gated_ledger.load())
        await gated.started.wait()

        await accounts.sign_out()
        gated.gate.set()
        state = await pending

        assert state.owner_id is None
        assert gated_ledger.transactions == ()
        assert gated_ledger.is_signed_in is False

        report_flow = ReportFlow(gated_ledger, builder=ReportBuilder(page_size=10))
        with pytest.raises(NotAuthenticatedError):
            await report_flow.build_report(now=now)

    @pytest.mark.asyncio
    async def test_user_switch_mid_fetch_keeps_new_owner(self, gated, gated_ledger, accounts):
        await accounts.sign_in("user-1")
        pending = asyncio.create_task(gated_ledger.load())
        await gated.started.wait()

        await accounts.sign_in("user-2")
        gated.gate.set()
        await pending

        assert gated_ledger.state.owner_id == "user-2"
        assert gated_ledger.transactions == ()

    @pytest.mark.asyncio
    async def test_failed_fetch_after_sign_out_not_reported(self, gated, gated_ledger, accounts):
        await accounts.sign_in("user-1")
        gated.queue_failure(ServerError("500"))
        pending = asyncio.create_task(gated_ledger.load())
        await gated.started.wait()

        await accounts.sign_out()
        gated.gate.set()
        state = await pending

        assert state.has_error is False
        assert state.is_signed_in is False


class TestFailureAuditing:
    """Failures outside the store taxonomy are audited before they surface."""

    @pytest.mark.asyncio
    async def test_refused_sign_in_audited(self, session_flow, audit_storage, storage):
        with pytest.raises(AuthError):
            await session_flow.sign_in("   ")

        assert event_types(audit_storage) == [AuditEventType.EXTERNAL_SERVICE_ERROR]
        assert audit_storage.events[0].details == {"service": "account_provider"}
        assert storage.fetch_calls == 0

    @pytest.mark.asyncio
    async def test_unexpected_fetch_error_audited_and_raised(self, accounts, audit_storage):
        class BrokenStorage(InMemoryTransactionStorage):
            async def fetch_transactions(self, owner_id):
                raise RuntimeError("corrupt cursor")

        ledger = TransactionLedger(
            storage=BrokenStorage(),
            account_provider=accounts,
            audit_logger=AuditLogger(audit_storage),
            retry_min_wait=0,
            retry_max_wait=0,
        )
        await accounts.sign_in("user-1")

        with pytest.raises(RuntimeError, match="corrupt cursor"):
            await ledger.load()

        event = audit_storage.events[-1]
        assert event.event_type == AuditEventType.SYSTEM_ERROR
        assert event.description == "System error: RuntimeError"
        assert event.details["operation"] == "load"
