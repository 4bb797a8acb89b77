"""
Saved-view filtering for ledger records.

A RecordFilter is what a console "view" stores: field filters, a date
range, a free-text query and a sort. Filtering reads records only; it
never touches the store.
"""

from datetime import date
from typing import Iterable, Literal, Optional

from pydantic import Field

from finance_ledger.models.record import (
    Category,
    Currency,
    FinanceRecord,
    LedgerModel,
    RecordStatus,
    TransactionType,
)
from finance_ledger.tax.calculator import compute_totals


SortKey = Literal["date", "amount", "net", "status", "category", "description"]


class RecordFilter(LedgerModel):
    """Filter and sort settings. None means "All"."""
    type: Optional[TransactionType] = None
    status: Optional[RecordStatus] = None
    category: Optional[Category] = None
    currency: Optional[Currency] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    query: str = Field(default="", description="Case-insensitive substring match")
    sort_key: SortKey = "date"
    sort_dir: Literal["asc", "desc"] = "desc"


def _haystack(record: FinanceRecord) -> str:
    parts = [
        record.description,
        record.category.value,
        record.status.value,
        record.type.value,
        record.currency.value,
        record.client_name or "",
        record.vendor_name or "",
        record.event_title or "",
        record.invoice_no or "",
        record.reference_id or "",
        record.notes or "",
    ]
    return " ".join(parts).lower()


def matches(record: FinanceRecord, flt: RecordFilter) -> bool:
    if flt.type is not None and record.type != flt.type:
        return False
    if flt.status is not None and record.status != flt.status:
        return False
    if flt.category is not None and record.category != flt.category:
        return False
    if flt.currency is not None and record.currency != flt.currency:
        return False
    if flt.date_from is not None and record.date < flt.date_from:
        return False
    if flt.date_to is not None and record.date > flt.date_to:
        return False
    query = flt.query.strip().lower()
    if query and query not in _haystack(record):
        return False
    return True


def _sort_value(record: FinanceRecord, key: SortKey):
    if key == "amount":
        return record.amount
    if key == "net":
        return compute_totals(record).net
    if key == "status":
        return record.status.value
    if key == "category":
        return record.category.value
    if key == "description":
        return record.description.lower()
    return record.date


def filter_records(
    records: Iterable[FinanceRecord],
    flt: Optional[RecordFilter] = None,
) -> list[FinanceRecord]:
    """Apply a saved view. The sort is stable, so ties keep ledger order."""
    flt = flt or RecordFilter()
    selected = [r for r in records if matches(r, flt)]
    selected.sort(
        key=lambda r: _sort_value(r, flt.sort_key),
        reverse=flt.sort_dir == "desc",
    )
    return selected
