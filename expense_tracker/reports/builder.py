"""
Report Builder

Assembles a TransactionReport from a transaction list in one call.

DESIGN DECISION: Report building is DETERMINISTIC.
The same list, filter, "now" and page always give the same report.
The builder never touches storage; callers hand it a snapshot.
"""

from datetime import datetime
from typing import Any, Iterable, Optional, Union

from expense_tracker.config import get_settings
from expense_tracker.models.report import TransactionFilter, TransactionReport
from expense_tracker.models.transaction import Transaction
from expense_tracker.reports.aggregator import (
    category_totals,
    compute_totals,
    filter_and_sort,
    group_by_date,
    monthly_series,
    paginate,
)


class ReportBuilder:
    """
    Builds the reports view.

    Totals, category totals and the monthly series describe the whole
    list. The filter only narrows the paginated transaction listing,
    which is then grouped by date for display.
    """

    def __init__(self, page_size: Optional[int] = None):
        self._page_size = page_size or get_settings().app.page_size

    @property
    def page_size(self) -> int:
        return self._page_size

    def build(
        self,
        transactions: Iterable[Transaction],
        now: datetime,
        filter: Union[TransactionFilter, dict, None] = None,
        page: Any = 1,
    ) -> TransactionReport:
        snapshot = tuple(transactions)

        if filter is None:
            filter = TransactionFilter()
        elif not isinstance(filter, TransactionFilter):
            filter = TransactionFilter.model_validate(filter)

        listing = filter_and_sort(snapshot, filter, now)
        current_page = paginate(listing, page=page, page_size=self._page_size)

        return TransactionReport(
            generated_at=now,
            totals=compute_totals(snapshot),
            category_totals=category_totals(snapshot),
            monthly_series=monthly_series(snapshot),
            filter=filter,
            page=current_page,
            date_groups=group_by_date(current_page.items),
        )
