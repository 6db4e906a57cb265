"""
Main Orchestrator for Expense Tracker

This module ties together all the components and defines the
end-to-end flows for:
1. Session (sign in → load transactions; sign out → clear)
2. Ledger (fetch with retry; validate → save → reload)
3. Reports (snapshot → aggregate)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is fetched or reported without a signed-in session
- Nothing is stored without passing validation
- Reports only ever see a resolved snapshot, never a pending fetch
- Every step is audited
"""

from datetime import datetime
from typing import Any, Optional, Union
from uuid import UUID

import structlog
from pydantic import BaseModel, Field
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from expense_tracker.audit import AuditLogger, create_correlation_id
from expense_tracker.config import get_settings
from expense_tracker.models.report import Totals, TransactionFilter, TransactionReport
from expense_tracker.models.session import UserSession
from expense_tracker.models.transaction import (
    Transaction,
    TransactionDraft,
    ValidationResult,
)
from expense_tracker.reports import ReportBuilder, compute_totals
from expense_tracker.services.auth import (
    AccountProviderInterface,
    AuthError,
    LocalAccountProvider,
)
from expense_tracker.services.storage import (
    ConnectionError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
    InMemoryTransactionStorage,
    IndexNotReadyError,
    ServerError,
    StorageError,
    TransactionStorageInterface,
)
from expense_tracker.validation import TransactionValidator


logger = structlog.get_logger(__name__)

INDEX_BUILDING_MESSAGE = "Setting up database... Please wait a moment and try again."
LOAD_FAILED_MESSAGE = "Failed to load transactions. Please try again later."
NOT_SIGNED_IN_MESSAGE = "User must be logged in"


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class NotAuthenticatedError(LedgerError):
    """An operation needed a signed-in user and there was none."""
    pass


class TransactionValidationError(LedgerError):
    """A draft failed validation and was not saved."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = "; ".join(i.message for i in result.issues if i.severity == "error")
        super().__init__(f"Transaction is invalid: {messages}")


class LedgerState(BaseModel):
    """
    What the UI renders about the owner's transaction list.

    error_kind distinguishes 'index_not_ready' (retry after a delay)
    from 'network' and 'server' failures.
    """

    owner_id: Optional[str] = None
    transactions: list[Transaction] = Field(default_factory=list)
    loaded_at: Optional[datetime] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    index_building: bool = False

    @property
    def is_signed_in(self) -> bool:
        return self.owner_id is not None

    @property
    def has_error(self) -> bool:
        return self.error is not None


def _error_kind(error: StorageError) -> str:
    if isinstance(error, IndexNotReadyError):
        return "index_not_ready"
    if isinstance(error, ConnectionError):
        return "network"
    if isinstance(error, ServerError):
        return "server"
    return "storage"


class TransactionLedger:
    """
    Holds the signed-in owner's transaction list.

    Flow:
    1. load → fetch from store (retry while the index is building)
    2. add_transaction → validate → save → reload

    The ledger listens to the account provider and drops its list the
    moment the user signs out.
    """

    def __init__(
        self,
        storage: TransactionStorageInterface,
        account_provider: AccountProviderInterface,
        validator: Optional[TransactionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        retry_attempts: Optional[int] = None,
        retry_min_wait: Optional[float] = None,
        retry_max_wait: Optional[float] = None,
    ):
        settings = get_settings().app
        self._storage = storage
        self._accounts = account_provider
        self._validator = validator or TransactionValidator()
        self._audit_logger = audit_logger
        self._retry_attempts = retry_attempts or settings.fetch_retry_attempts
        self._retry_min_wait = (
            settings.fetch_retry_min_wait_seconds if retry_min_wait is None else retry_min_wait
        )
        self._retry_max_wait = (
            settings.fetch_retry_max_wait_seconds if retry_max_wait is None else retry_max_wait
        )
        self._state = LedgerState()
        self._unsubscribe = account_provider.add_listener(self._on_session_change)

    @property
    def state(self) -> LedgerState:
        return self._state

    @property
    def transactions(self) -> tuple[Transaction, ...]:
        """Immutable snapshot of the loaded list."""
        return tuple(self._state.transactions)

    @property
    def is_signed_in(self) -> bool:
        """True while the provider's session matches the loaded owner."""
        return not self._session_changed(self._state.owner_id)

    def close(self) -> None:
        """Stop listening to session changes."""
        self._unsubscribe()

    def _on_session_change(self, session: Optional[UserSession]) -> None:
        if session is None or session.user_id != self._state.owner_id:
            self._state = LedgerState(owner_id=session.user_id if session else None)

    def _session_changed(self, owner_id: Optional[str]) -> bool:
        session = self._accounts.current_session()
        return owner_id is None or session is None or session.user_id != owner_id

    async def _fetch_with_retry(self, owner_id: str) -> tuple[list[Transaction], int]:
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(IndexNotReadyError),
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_exponential(
                multiplier=1,
                min=self._retry_min_wait,
                max=self._retry_max_wait,
            ),
            reraise=True,
        )
        transactions: list[Transaction] = []
        async for attempt in retrying:
            with attempt:
                transactions = await self._storage.fetch_transactions(owner_id)
        return transactions, retrying.statistics.get("attempt_number", 1)

    async def load(self, correlation_id: Optional[UUID] = None) -> LedgerState:
        """
        Fetch the signed-in owner's transactions.

        Returns an empty state, without touching the store, when nobody
        is signed in. Store failures are reported in the state rather
        than raised, so the UI can show them. A result that arrives
        after the session ended or changed hands is discarded.
        """
        session = self._accounts.current_session()
        if session is None:
            self._state = LedgerState()
            return self._state

        owner_id = session.user_id
        previous = self._state.transactions if self._state.owner_id == owner_id else []

        try:
            transactions, attempts = await self._fetch_with_retry(owner_id)
        except IndexNotReadyError as e:
            if self._session_changed(owner_id):
                return self._discard_stale(owner_id)
            self._state = LedgerState(
                owner_id=owner_id,
                transactions=previous,
                error=INDEX_BUILDING_MESSAGE,
                error_kind="index_not_ready",
                index_building=True,
            )
            if self._audit_logger:
                await self._audit_logger.log_index_not_ready(
                    owner_id=owner_id,
                    attempts=self._retry_attempts,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            return self._state
        except StorageError as e:
            if self._session_changed(owner_id):
                return self._discard_stale(owner_id)
            kind = _error_kind(e)
            self._state = LedgerState(
                owner_id=owner_id,
                transactions=previous,
                error=LOAD_FAILED_MESSAGE,
                error_kind=kind,
            )
            if self._audit_logger:
                await self._audit_logger.log_fetch_failed(
                    owner_id=owner_id,
                    error_code=kind,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            return self._state
        except Exception as e:
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"operation": "load", "owner_id": owner_id},
                    correlation_id=correlation_id,
                )
            raise

        if self._session_changed(owner_id):
            return self._discard_stale(owner_id)

        if attempts > 1:
            logger.info("fetch_recovered", owner_id=owner_id, attempts=attempts)

        self._state = LedgerState(
            owner_id=owner_id,
            transactions=transactions,
            loaded_at=datetime.utcnow(),
        )
        if self._audit_logger:
            await self._audit_logger.log_transactions_fetched(
                owner_id=owner_id,
                count=len(transactions),
                correlation_id=correlation_id,
            )
        return self._state

    def _discard_stale(self, owner_id: str) -> LedgerState:
        logger.info("stale_fetch_discarded", owner_id=owner_id)
        return self._state

    async def add_transaction(
        self,
        draft: TransactionDraft,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Validate and store a new transaction, then reload the list.

        Raises:
            NotAuthenticatedError: Nobody is signed in
            TransactionValidationError: The draft has blocking issues
            StorageError: The store rejected the write
        """
        correlation_id = correlation_id or create_correlation_id()

        session = self._accounts.current_session()
        if session is None:
            raise NotAuthenticatedError(NOT_SIGNED_IN_MESSAGE)
        owner_id = session.user_id

        result = self._validator.validate(draft)
        if result.has_errors:
            if self._audit_logger:
                await self._audit_logger.log_validation_failed(
                    draft_id=draft.draft_id,
                    owner_id=owner_id,
                    issues=[issue.model_dump() for issue in result.issues],
                    correlation_id=correlation_id,
                )
            raise TransactionValidationError(result)

        try:
            transaction = await self._storage.create_transaction(owner_id, draft)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_save_failed(
                    owner_id=owner_id,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_transaction_created(
                transaction_id=transaction.id,
                owner_id=owner_id,
                kind=transaction.kind.value,
                category=transaction.category,
                amount=str(transaction.amount),
                correlation_id=correlation_id,
            )

        await self.load(correlation_id=correlation_id)
        return transaction

    def calculate_totals(self) -> Totals:
        """Income, expenses and balance over the loaded list."""
        return compute_totals(self.transactions)


class SessionFlow:
    """
    Orchestrates sign-in and sign-out.

    Signing in loads the owner's transactions; signing out clears them
    (through the ledger's session listener).
    """

    def __init__(
        self,
        account_provider: AccountProviderInterface,
        ledger: TransactionLedger,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._accounts = account_provider
        self._ledger = ledger
        self._audit_logger = audit_logger

    @property
    def current_session(self) -> Optional[UserSession]:
        return self._accounts.current_session()

    async def sign_in(
        self,
        user_id: str,
        display_name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> LedgerState:
        try:
            session = await self._accounts.sign_in(
                user_id, display_name=display_name, email=email,
            )
        except AuthError as e:
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service="account_provider",
                    error_message=str(e),
                )
            raise
        if self._audit_logger:
            await self._audit_logger.log_user_signed_in(session.user_id)
        return await self._ledger.load()

    async def sign_out(self) -> None:
        session = self._accounts.current_session()
        await self._accounts.sign_out()
        if session and self._audit_logger:
            await self._audit_logger.log_user_signed_out(session.user_id)


class ReportFlow:
    """
    Builds reports from the ledger's current snapshot.

    The builder receives "now" explicitly, so the floating date windows
    are evaluated once per report.
    """

    def __init__(
        self,
        ledger: TransactionLedger,
        builder: Optional[ReportBuilder] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._ledger = ledger
        self._builder = builder or ReportBuilder()
        self._audit_logger = audit_logger

    async def build_report(
        self,
        filter: Union[TransactionFilter, dict, None] = None,
        page: Any = 1,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> TransactionReport:
        state = self._ledger.state
        if not self._ledger.is_signed_in:
            raise NotAuthenticatedError(NOT_SIGNED_IN_MESSAGE)

        report = self._builder.build(
            self._ledger.transactions,
            now=now or datetime.now(),
            filter=filter,
            page=page,
        )

        if self._audit_logger:
            await self._audit_logger.log_report_generated(
                owner_id=state.owner_id,
                transaction_count=len(state.transactions),
                filtered_count=report.page.total_items,
                correlation_id=correlation_id,
            )
        return report


def create_app_components(
    use_storage: bool = True,
    account_provider: Optional[AccountProviderInterface] = None,
) -> tuple[SessionFlow, TransactionLedger, ReportFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Falls back to in-memory storage when False or
                    when Sheets is not configured.
        account_provider: Session provider; defaults to a local one.

    Returns:
        (session_flow, ledger, report_flow, sheets_client)
    """
    sheets_client = None
    storage: TransactionStorageInterface
    audit_logger = AuditLogger()  # Local-only logging

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            storage = GoogleSheetsTransactionStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            storage = InMemoryTransactionStorage()
    else:
        storage = InMemoryTransactionStorage()

    accounts = account_provider or LocalAccountProvider()
    ledger = TransactionLedger(
        storage=storage,
        account_provider=accounts,
        audit_logger=audit_logger,
    )
    session_flow = SessionFlow(accounts, ledger, audit_logger=audit_logger)
    report_flow = ReportFlow(ledger, audit_logger=audit_logger)

    return session_flow, ledger, report_flow, sheets_client
