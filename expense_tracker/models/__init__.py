"""
Data Models Package

This package contains all Pydantic models used in the Expense Tracker.
All data flowing through the system must conform to these schemas.
"""

from expense_tracker.models.transaction import (
    ExpenseCategory,
    IncomeCategory,
    Transaction,
    TransactionDraft,
    TransactionKind,
    ValidationIssue,
    ValidationResult,
    categories_for,
    coerce_amount,
)
from expense_tracker.models.report import (
    DateGroup,
    DateRange,
    MonthlySummary,
    Page,
    SortBy,
    SortOrder,
    Totals,
    TransactionFilter,
    TransactionReport,
)
from expense_tracker.models.session import UserSession
from expense_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Transaction models
    "ExpenseCategory",
    "IncomeCategory",
    "Transaction",
    "TransactionDraft",
    "TransactionKind",
    "ValidationIssue",
    "ValidationResult",
    "categories_for",
    "coerce_amount",
    # Report models
    "DateGroup",
    "DateRange",
    "MonthlySummary",
    "Page",
    "SortBy",
    "SortOrder",
    "Totals",
    "TransactionFilter",
    "TransactionReport",
    # Session
    "UserSession",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
