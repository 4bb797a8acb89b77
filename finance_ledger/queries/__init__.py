"""Read-only ledger queries: summaries, reports and saved-view filters."""

from finance_ledger.queries.filters import RecordFilter, filter_records
from finance_ledger.queries.summary import (
    budget_variance,
    in_month,
    monthly_kpis,
    report_by_category,
    report_by_status,
)

__all__ = [
    "RecordFilter",
    "budget_variance",
    "filter_records",
    "in_month",
    "monthly_kpis",
    "report_by_category",
    "report_by_status",
]
