"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the hosted document store because:
1. Users can view their transactions directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions (rows are append-only, so we don't need them)
- Limited query capabilities (we filter by owner in Python)

The implementation follows the abstract interface, so we can swap
to another store later without changing report logic.
"""

import json
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

import gspread
import requests
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    AsyncRetrying,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from expense_tracker.config import get_settings
from expense_tracker.models.audit import AuditEvent, AuditEventType, AuditSeverity
from expense_tracker.models.transaction import Transaction, TransactionDraft
from expense_tracker.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    IndexNotReadyError,
    ServerError,
    StorageError,
    TransactionStorageInterface,
)


logger = structlog.get_logger(__name__)

# Column mappings for Transactions sheet
TRANSACTION_COLUMNS = [
    "id",
    "owner_id",
    "kind",
    "category",
    "amount",
    "description",
    "occurred_at",
    "created_at",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "owner_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

# Sheets API answers these while it is throttling or warming up
NOT_READY_STATUS_CODES = {429, 503}

WRITE_RETRY_ATTEMPTS = 3


def translate_error(action: str, error: Exception) -> StorageError:
    """
    Map a gspread/transport exception onto the storage error taxonomy.

    - 429/503 from the API: IndexNotReadyError (retry after a delay)
    - any other API status: ServerError
    - network failures: ConnectionError
    """
    if isinstance(error, StorageError):
        return error

    if isinstance(error, gspread.exceptions.APIError):
        response = getattr(error, "response", None)
        status = getattr(response, "status_code", None)
        if status in NOT_READY_STATUS_CODES:
            return IndexNotReadyError(f"{action}: store not ready (HTTP {status})")
        return ServerError(f"{action}: server error (HTTP {status}): {error}")

    if isinstance(error, (requests.exceptions.ConnectionError, requests.exceptions.Timeout)):
        return ConnectionError(f"{action}: network error: {error}")

    return StorageError(f"{action}: {error}")


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_transactions_sheet(self) -> gspread.Worksheet:
        """Get or create the Transactions worksheet."""
        return self._get_or_create_sheet(
            self._settings.transactions_sheet_name,
            TRANSACTION_COLUMNS,
            rows=1000,
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


class GoogleSheetsTransactionStorage(TransactionStorageInterface):
    """
    Google Sheets implementation of the transaction store.

    Transactions are stored as rows in a worksheet, one per row,
    with the owner's ID in its own column.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        retry_min_wait: float = 2.0,
        retry_max_wait: float = 10.0,
    ):
        self._client = client or GoogleSheetsClient()
        self._retry_min_wait = retry_min_wait
        self._retry_max_wait = retry_max_wait

    def _transaction_to_row(self, transaction: Transaction) -> list:
        """Convert a Transaction to a spreadsheet row."""
        return [
            transaction.id,
            transaction.owner_id,
            transaction.kind.value,
            transaction.category,
            str(transaction.amount),
            transaction.description,
            transaction.occurred_at.isoformat(),
            transaction.created_at.isoformat(),
        ]

    def _row_to_transaction(self, row: list) -> Transaction:
        """Convert a spreadsheet row to a Transaction."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        created_at = safe_get(7)
        return Transaction(
            id=safe_get(0),
            owner_id=safe_get(1),
            kind=safe_get(2),
            category=safe_get(3),
            amount=safe_get(4),
            description=safe_get(5),
            occurred_at=safe_get(6),
            created_at=datetime.fromisoformat(created_at) if created_at else datetime.utcnow(),
        )

    async def fetch_transactions(self, owner_id: str) -> list[Transaction]:
        """Fetch one owner's transactions, newest first."""
        try:
            sheet = self._client.get_transactions_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except Exception as e:
            raise translate_error("Failed to fetch transactions", e)

        transactions = []
        for index, row in enumerate(all_rows, start=2):
            if not row or len(row) < 2 or row[1] != owner_id:
                continue
            try:
                transactions.append(self._row_to_transaction(row))
            except ValueError as e:
                logger.warning(
                    "transaction_row_skipped",
                    row_number=index,
                    owner_id=owner_id,
                    error=str(e),
                )

        transactions.sort(key=lambda t: t.occurred_at, reverse=True)
        return transactions

    async def create_transaction(
        self,
        owner_id: str,
        draft: TransactionDraft,
    ) -> Transaction:
        """Append a new transaction row."""
        try:
            transaction = Transaction(
                id=uuid4().hex,
                owner_id=owner_id,
                kind=draft.kind,
                category=draft.category,
                amount=draft.amount,
                description=draft.description,
                occurred_at=draft.occurred_at,
            )
        except ValueError as e:
            raise StorageError(f"Failed to save transaction: {e}")

        retrying = AsyncRetrying(
            retry=retry_if_exception_type(IndexNotReadyError),
            stop=stop_after_attempt(WRITE_RETRY_ATTEMPTS),
            wait=wait_exponential(
                multiplier=1,
                min=self._retry_min_wait,
                max=self._retry_max_wait,
            ),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                self._append_once(transaction)

        return transaction

    def _append_once(self, transaction: Transaction) -> None:
        """
        Append the row unless its id is already in the sheet.

        A 503 can arrive after the row was written, so every attempt
        looks for the id first.
        """
        try:
            sheet = self._client.get_transactions_sheet()
            if transaction.id in sheet.col_values(1):
                return
            sheet.append_row(self._transaction_to_row(transaction), value_input_option="RAW")
        except Exception as e:
            raise translate_error("Failed to save transaction", e)


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            owner_id=safe_get(6) or None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_message=safe_get(10) or None,
            is_user_action=safe_get(11).lower() == "true",
        )

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning(
                "audit_append_failed",
                event_id=str(event.event_id),
                error=str(e),
            )
            return False

    def _read_events(self) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise translate_error("Failed to get audit events", e)

        events = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except ValueError:
                logger.warning("audit_row_skipped", event_id=row[0])
        return events

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        events = [e for e in self._read_events() if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        events = self._read_events()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
