"""
Report Models

View-ready values computed from a transaction list. Nothing here is
stored; every report is rebuilt whenever the list changes.
"""

import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from expense_tracker.models.transaction import Transaction


ZERO = Decimal("0.00")


# =============================================================================
# FILTER OPTIONS
# =============================================================================

class DateRange(str, Enum):
    """Trailing windows measured back from a reference "now"."""
    ALL = "all"
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    THREE_MONTHS = "3months"
    SIX_MONTHS = "6months"
    YEAR = "year"

    @property
    def label(self) -> str:
        return _DATE_RANGE_LABELS[self]


_DATE_RANGE_LABELS = {
    DateRange.ALL: "All Time",
    DateRange.TODAY: "Today",
    DateRange.WEEK: "Last 7 Days",
    DateRange.MONTH: "Last Month",
    DateRange.THREE_MONTHS: "Last 3 Months",
    DateRange.SIX_MONTHS: "Last 6 Months",
    DateRange.YEAR: "Last Year",
}


class SortBy(str, Enum):
    DATE = "date"
    AMOUNT = "amount"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


def _enum_or_default(enum_cls: type[Enum], value: Any, default: Enum) -> Enum:
    """Parse an enum value, falling back to the default for anything unknown."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().lower())
        except ValueError:
            return default
    return default


class TransactionFilter(BaseModel):
    """
    Search, date window and ordering for the transaction list.

    DESIGN DECISION: This is presentation input. Unknown values fall
    back to defaults instead of raising.
    """

    search_query: str = ""
    date_range: DateRange = DateRange.ALL
    sort_by: SortBy = SortBy.DATE
    sort_order: SortOrder = SortOrder.DESC

    @field_validator('search_query', mode='before')
    @classmethod
    def normalize_query(cls, v: Any) -> str:
        if v is None:
            return ""
        return str(v).strip()

    @field_validator('date_range', mode='before')
    @classmethod
    def parse_date_range(cls, v: Any) -> DateRange:
        return _enum_or_default(DateRange, v, DateRange.ALL)

    @field_validator('sort_by', mode='before')
    @classmethod
    def parse_sort_by(cls, v: Any) -> SortBy:
        return _enum_or_default(SortBy, v, SortBy.DATE)

    @field_validator('sort_order', mode='before')
    @classmethod
    def parse_sort_order(cls, v: Any) -> SortOrder:
        return _enum_or_default(SortOrder, v, SortOrder.DESC)


# =============================================================================
# AGGREGATES
# =============================================================================

class Totals(BaseModel):
    """Running income, expense and balance figures."""
    model_config = ConfigDict(frozen=True)

    total_income: Decimal = ZERO
    total_expenses: Decimal = ZERO
    balance: Decimal = ZERO


class DateGroup(BaseModel):
    """Transactions that share a calendar date."""

    date: datetime.date
    transactions: list[Transaction] = Field(default_factory=list)


class MonthlySummary(BaseModel):
    """Income, expenses and savings for one calendar month."""

    key: str = Field(
        ...,
        pattern=r"^\d{4}-\d{2}$",
        description="Year and month, e.g. '2024-01'"
    )
    label: str = Field(
        ...,
        description="Display label, e.g. 'Jan 2024'"
    )
    income: Decimal = ZERO
    expenses: Decimal = ZERO
    savings: Decimal = ZERO
    savings_rate: Decimal = Field(
        default=ZERO,
        description="Savings as a percentage of income (0 when there is no income)"
    )


class Page(BaseModel):
    """One page of an already filtered and sorted list."""

    items: list[Transaction] = Field(default_factory=list)
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=10, ge=1)
    total_items: int = Field(default=0, ge=0)
    total_pages: int = Field(default=0, ge=0)

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


class TransactionReport(BaseModel):
    """
    Everything the reports view renders, built in one pass.

    Totals, category totals and the monthly series cover the full list.
    The page and its date groups reflect the filter.
    """

    generated_at: datetime.datetime
    totals: Totals
    category_totals: dict[str, Decimal] = Field(default_factory=dict)
    monthly_series: dict[str, MonthlySummary] = Field(default_factory=dict)
    filter: TransactionFilter = Field(default_factory=TransactionFilter)
    page: Page = Field(default_factory=Page)
    date_groups: list[DateGroup] = Field(default_factory=list)

    @property
    def has_transactions(self) -> bool:
        return self.page.total_items > 0 or bool(self.monthly_series)
