"""
Transaction Aggregator

DESIGN DECISION: Every function here is PURE.
- Input is any iterable of Transaction; it is copied into a tuple
  snapshot and never mutated.
- Output is freshly built on every call.
- No clock, no storage, no session. "Now" is an argument.

Calling a function twice on the same list gives equal results.
Amounts are summed as Decimal, so many small transactions never
accumulate float drift.
"""

import calendar
import math
from datetime import datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal
from operator import attrgetter
from typing import Any, Iterable, Optional, Union

from expense_tracker.models.report import (
    DateGroup,
    DateRange,
    MonthlySummary,
    Page,
    SortBy,
    SortOrder,
    Totals,
    TransactionFilter,
)
from expense_tracker.models.transaction import CENTS, Transaction, TransactionKind


ZERO = Decimal("0.00")
HUNDRED = Decimal("100")
DEFAULT_PAGE_SIZE = 10

# Trailing calendar months per date range
_MONTH_WINDOWS = {
    DateRange.MONTH: 1,
    DateRange.THREE_MONTHS: 3,
    DateRange.SIX_MONTHS: 6,
    DateRange.YEAR: 12,
}


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


# =============================================================================
# TOTALS AND GROUPINGS
# =============================================================================

def compute_totals(transactions: Iterable[Transaction]) -> Totals:
    """Sum income and expenses; balance is income minus expenses."""
    total_income = ZERO
    total_expenses = ZERO

    for transaction in tuple(transactions):
        if transaction.kind == TransactionKind.INCOME:
            total_income += transaction.amount
        else:
            total_expenses += transaction.amount

    return Totals(
        total_income=_money(total_income),
        total_expenses=_money(total_expenses),
        balance=_money(total_income - total_expenses),
    )


def group_by_date(transactions: Iterable[Transaction]) -> list[DateGroup]:
    """
    Partition transactions by the calendar date they occurred on.

    Groups come newest date first. Inside a group, transactions keep
    the order they arrived in.
    """
    groups: dict = {}

    for transaction in tuple(transactions):
        key = transaction.occurred_at.date()
        groups.setdefault(key, []).append(transaction)

    return [
        DateGroup(date=day, transactions=members)
        for day, members in sorted(groups.items(), key=lambda item: item[0], reverse=True)
    ]


def category_totals(transactions: Iterable[Transaction]) -> dict[str, Decimal]:
    """
    Sum expense amounts per category.

    Income never contributes. Categories without expenses are left out,
    and the mapping keeps first-seen order so chart labels stay put.
    """
    totals: dict[str, Decimal] = {}

    for transaction in tuple(transactions):
        if transaction.kind != TransactionKind.EXPENSE:
            continue
        totals[transaction.category] = totals.get(transaction.category, ZERO) + transaction.amount

    return {category: _money(amount) for category, amount in totals.items()}


def month_key(moment: datetime) -> str:
    """Bucket key for a timestamp: year and month, e.g. '2024-01'."""
    return moment.strftime("%Y-%m")


def monthly_series(transactions: Iterable[Transaction]) -> dict[str, MonthlySummary]:
    """
    Income, expenses and savings per calendar month.

    Buckets are keyed by year and month so January 2023 and
    January 2024 stay apart. Only months with activity appear,
    oldest first.
    """
    buckets: dict[str, dict] = {}

    for transaction in tuple(transactions):
        key = month_key(transaction.occurred_at)
        bucket = buckets.setdefault(key, {
            "label": transaction.occurred_at.strftime("%b %Y"),
            "income": ZERO,
            "expenses": ZERO,
        })
        if transaction.kind == TransactionKind.INCOME:
            bucket["income"] += transaction.amount
        else:
            bucket["expenses"] += transaction.amount

    series = {}
    for key in sorted(buckets):
        bucket = buckets[key]
        income = bucket["income"]
        expenses = bucket["expenses"]
        savings = income - expenses
        savings_rate = savings / income * HUNDRED if income > 0 else ZERO

        series[key] = MonthlySummary(
            key=key,
            label=bucket["label"],
            income=_money(income),
            expenses=_money(expenses),
            savings=_money(savings),
            savings_rate=_money(savings_rate),
        )

    return series


# =============================================================================
# FILTERING, SORTING, PAGINATION
# =============================================================================

def subtract_months(moment: datetime, months: int) -> datetime:
    """
    Step back whole calendar months.

    The day is clamped to the target month's length,
    so 31 March minus one month is 28 (or 29) February.
    """
    index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def window_start(date_range: DateRange, now: datetime) -> Optional[datetime]:
    """Earliest timestamp included by a date range, or None for no limit."""
    if now.tzinfo is not None:
        now = now.replace(tzinfo=None)

    if date_range == DateRange.TODAY:
        return datetime.combine(now.date(), time())
    if date_range == DateRange.WEEK:
        return now - timedelta(days=7)
    if date_range in _MONTH_WINDOWS:
        return subtract_months(now, _MONTH_WINDOWS[date_range])
    return None


def _matches_search(transaction: Transaction, query: str) -> bool:
    if not query:
        return True
    return query in transaction.description.lower() or query in transaction.category.lower()


def filter_and_sort(
    transactions: Iterable[Transaction],
    filter: Union[TransactionFilter, dict, None],
    now: datetime,
) -> list[Transaction]:
    """
    Apply search text and date window, then order the result.

    The sort is stable: transactions with equal keys keep their
    input order in both directions. Malformed filter values have
    already been mapped to defaults by TransactionFilter.
    """
    if filter is None:
        filter = TransactionFilter()
    elif not isinstance(filter, TransactionFilter):
        filter = TransactionFilter.model_validate(filter)

    query = filter.search_query.lower()
    start = window_start(filter.date_range, now)

    selected = [
        transaction
        for transaction in tuple(transactions)
        if _matches_search(transaction, query)
        and (start is None or transaction.occurred_at >= start)
    ]

    sort_key = attrgetter("amount" if filter.sort_by == SortBy.AMOUNT else "occurred_at")

    return sorted(selected, key=sort_key, reverse=filter.sort_order == SortOrder.DESC)


def _as_positive_int(value: Any, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        return default
    return number if number >= 1 else default


def paginate(
    items: Iterable[Transaction],
    page: Any = 1,
    page_size: Any = DEFAULT_PAGE_SIZE,
) -> Page:
    """
    Slice one page out of a filtered, sorted list.

    The requested page is clamped into the valid range, so a page
    that no longer exists after the list shrank lands on the last one.
    """
    items = list(items)
    page_size = _as_positive_int(page_size, DEFAULT_PAGE_SIZE)
    page = _as_positive_int(page, 1)

    total_items = len(items)
    total_pages = math.ceil(total_items / page_size)
    page = min(page, max(total_pages, 1))

    start = (page - 1) * page_size
    return Page(
        items=items[start:start + page_size],
        page=page,
        page_size=page_size,
        total_items=total_items,
        total_pages=total_pages,
    )
