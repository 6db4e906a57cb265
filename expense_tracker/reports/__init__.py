"""Reporting package: pure aggregation over transaction lists."""

from expense_tracker.reports.aggregator import (
    DEFAULT_PAGE_SIZE,
    category_totals,
    compute_totals,
    filter_and_sort,
    group_by_date,
    month_key,
    monthly_series,
    paginate,
    subtract_months,
    window_start,
)
from expense_tracker.reports.builder import ReportBuilder

__all__ = [
    "DEFAULT_PAGE_SIZE",
    "ReportBuilder",
    "category_totals",
    "compute_totals",
    "filter_and_sort",
    "group_by_date",
    "month_key",
    "monthly_series",
    "paginate",
    "subtract_months",
    "window_start",
]
