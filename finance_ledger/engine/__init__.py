"""Engine passes: merge, overdue scan, recurrence."""

from finance_ledger.engine.merge import (
    dedupe_budgets,
    merge_budgets,
    merge_records,
)
from finance_ledger.engine.overdue import (
    OverdueScanResult,
    is_overdue,
    scan_overdue,
)
from finance_ledger.engine.recurrence import (
    RecurrenceResult,
    advance_date,
    run_recurrence,
    spawn_instance,
)

__all__ = [
    "OverdueScanResult",
    "RecurrenceResult",
    "advance_date",
    "dedupe_budgets",
    "is_overdue",
    "merge_budgets",
    "merge_records",
    "run_recurrence",
    "scan_overdue",
    "spawn_instance",
]
