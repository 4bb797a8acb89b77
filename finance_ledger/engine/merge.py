"""
Merge Engine: last-write-wins by id.

Used identically by CSV import, JSON backup import and recurrence spawning,
so the conflict policy lives in exactly one place.

RULES:
- Same id on both sides: the record with the later `updated_at` wins whole.
  No field-level merging.
- Equal `updated_at`: incoming wins.
- Ids present on only one side are kept (union).
- Output order: existing order (with replacements in place), then new ids in
  incoming order.
"""

from typing import Iterable

from finance_ledger.models.budget import BudgetLine
from finance_ledger.models.record import FinanceRecord


def prefer(current: FinanceRecord, candidate: FinanceRecord) -> FinanceRecord:
    """Pick the winner for one id. Ties go to `candidate`."""
    if candidate.updated_at >= current.updated_at:
        return candidate
    return current


def merge_records(
    existing: Iterable[FinanceRecord],
    incoming: Iterable[FinanceRecord],
) -> list[FinanceRecord]:
    """
    Combine two record sets by id with last-write-wins.

    Duplicate ids inside either side are folded by the same rule, so the
    result always satisfies id uniqueness.
    """
    merged: dict[str, FinanceRecord] = {}
    for record in existing:
        current = merged.get(record.id)
        merged[record.id] = record if current is None else prefer(current, record)
    for record in incoming:
        current = merged.get(record.id)
        merged[record.id] = record if current is None else prefer(current, record)
    return list(merged.values())


def merge_budgets(
    existing: Iterable[BudgetLine],
    incoming: Iterable[BudgetLine],
) -> list[BudgetLine]:
    """Combine budget lines by month. Incoming (and later) lines win."""
    merged: dict[str, BudgetLine] = {}
    for line in existing:
        merged[line.month] = line
    for line in incoming:
        merged[line.month] = line
    return sorted(merged.values(), key=lambda line: line.month)


def dedupe_budgets(lines: Iterable[BudgetLine]) -> list[BudgetLine]:
    """Collapse duplicate months within one list, keeping the last one."""
    return merge_budgets([], lines)
