"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Traceability of every transaction written
2. Debugging capability when the store misbehaves
3. A history of sign-ins and reports

The audit logger:
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from expense_tracker.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from expense_tracker.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit store (for persistence), when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("expense_tracker.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_user_signed_in(self, owner_id: str) -> None:
        await self.log(AuditEventBuilder.user_signed_in(owner_id))

    async def log_user_signed_out(self, owner_id: str) -> None:
        await self.log(AuditEventBuilder.user_signed_out(owner_id))

    async def log_transaction_created(
        self,
        transaction_id: str,
        owner_id: str,
        kind: str,
        category: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a saved transaction."""
        event = AuditEventBuilder.transaction_created(
            transaction_id=transaction_id,
            owner_id=owner_id,
            kind=kind,
            category=category,
            amount=amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_validation_failed(
        self,
        draft_id: UUID,
        owner_id: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a rejected draft."""
        event = AuditEventBuilder.validation_failed(
            draft_id=draft_id,
            owner_id=owner_id,
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_save_failed(
        self,
        owner_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.save_failed(
            owner_id=owner_id,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transactions_fetched(
        self,
        owner_id: str,
        count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.transactions_fetched(
            owner_id=owner_id,
            count=count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_fetch_failed(
        self,
        owner_id: str,
        error_code: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed fetch (network or server)."""
        event = AuditEventBuilder.fetch_failed(
            owner_id=owner_id,
            error_code=error_code,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_index_not_ready(
        self,
        owner_id: str,
        attempts: int,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a fetch that gave up while the store index was building."""
        event = AuditEventBuilder.index_not_ready(
            owner_id=owner_id,
            attempts=attempts,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_report_generated(
        self,
        owner_id: str,
        transaction_count: int,
        filtered_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.report_generated(
            owner_id=owner_id,
            transaction_count=transaction_count,
            filtered_count=filtered_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., adding a transaction).
    Pass it through all subsequent operations.
    """
    return uuid4()
