"""
Ledger Summaries

DESIGN DECISION: Summaries are DETERMINISTIC and never cached.
Every figure is recomputed from TaxCalculator output on each call, so a
KPI can never disagree with the records it was derived from.

All money sums use the TDS-adjusted `net` of each record.
"""

from decimal import Decimal
from typing import Iterable, Optional

from finance_ledger.models.budget import BudgetLine
from finance_ledger.models.record import (
    Category,
    FinanceRecord,
    RecordStatus,
    TransactionType,
)
from finance_ledger.models.reports import (
    BudgetVariance,
    CategoryReportRow,
    LedgerKpis,
    StatusReportRow,
)
from finance_ledger.tax.calculator import compute_totals


HUNDRED = Decimal("100")
ZERO = Decimal("0")

OPEN_STATUSES = frozenset({RecordStatus.PENDING, RecordStatus.OVERDUE})


def month_of(record: FinanceRecord) -> str:
    return record.date.strftime("%Y-%m")


def in_month(records: Iterable[FinanceRecord], month: str) -> list[FinanceRecord]:
    """Records whose `date` falls in `month` (YYYY-MM)."""
    return [r for r in records if month_of(r) == month]


def monthly_kpis(records: Iterable[FinanceRecord], month: str) -> LedgerKpis:
    """
    KPI strip for one month.

    Receivables are open (Pending or Overdue) income, payables are open
    expenses. Every status counts towards income and expense.
    """
    kpis = LedgerKpis(month=month)
    for record in in_month(records, month):
        net = compute_totals(record).net
        is_open = record.status in OPEN_STATUSES
        if record.type == TransactionType.INCOME:
            kpis.income += net
            if is_open:
                kpis.receivables += net
        else:
            kpis.expense += net
            if is_open:
                kpis.payables += net
        if record.status == RecordStatus.OVERDUE:
            kpis.overdue_count += 1

    kpis.net = kpis.income - kpis.expense
    return kpis


def report_by_category(
    records: Iterable[FinanceRecord],
    month: str,
) -> list[CategoryReportRow]:
    """Income, expense and net per category. Every category is listed."""
    rows = {category: CategoryReportRow(category=category) for category in Category}
    for record in in_month(records, month):
        row = rows[record.category]
        net = compute_totals(record).net
        if record.type == TransactionType.INCOME:
            row.income += net
        else:
            row.expense += net

    for row in rows.values():
        row.net = row.income - row.expense
    return list(rows.values())


def report_by_status(
    records: Iterable[FinanceRecord],
    month: str,
) -> list[StatusReportRow]:
    """Record count per status. Every status is listed."""
    rows = {status: StatusReportRow(status=status) for status in RecordStatus}
    for record in in_month(records, month):
        rows[record.status].count += 1
    return list(rows.values())


def budget_variance(
    budget: BudgetLine,
    records: Iterable[FinanceRecord],
) -> BudgetVariance:
    """
    Measure one month's actuals against its budget line.

    Cancelled records are not actuals. Fixed costs count against the
    expense cap but not against gross margin.
    """
    revenue = ZERO
    expense = ZERO
    for record in in_month(records, budget.month):
        if record.status == RecordStatus.CANCELLED:
            continue
        net = compute_totals(record).net
        if record.type == TransactionType.INCOME:
            revenue += net
        else:
            expense += net

    fixed = budget.fixed_costs.total
    margin_pct: Optional[Decimal] = None
    if revenue > 0:
        margin_pct = (revenue - expense) / revenue * HUNDRED

    return BudgetVariance(
        month=budget.month,
        revenue_target=budget.revenue_target,
        revenue_actual=revenue,
        revenue_gap=budget.revenue_target - revenue,
        expense_cap=budget.expense_cap,
        expense_actual=expense,
        fixed_costs=fixed,
        expense_headroom=budget.expense_cap - expense - fixed,
        gross_margin_target_pct=budget.gross_margin_target_pct,
        gross_margin_actual_pct=margin_pct,
    )
