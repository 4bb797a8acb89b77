"""
Result models returned by engine passes and the ledger orchestrator.

These are read-only summaries. Nothing here is ever persisted.
"""

from decimal import Decimal
from typing import Optional

from pydantic import Field

from finance_ledger.models.record import Category, LedgerModel, RecordStatus


class ImportResult(LedgerModel):
    """Outcome of a CSV or JSON backup import."""
    imported: int = Field(ge=0, description="Records merged into the ledger")
    dropped: int = Field(ge=0, description="Rows dropped for lack of identity")
    total: int = Field(ge=0, description="Ledger size after the merge")
    budgets_imported: int = Field(default=0, ge=0)


class SessionReport(LedgerModel):
    """Outcome of a session bootstrap (load, scan, recur, persist)."""
    loaded: int = Field(ge=0)
    dropped: int = Field(ge=0)
    marked_overdue: list[str] = Field(default_factory=list)
    spawned: list[str] = Field(default_factory=list)
    advanced_sources: list[str] = Field(default_factory=list)
    persisted: bool = False


class LedgerKpis(LedgerModel):
    """Month-scoped KPI strip. All sums are TDS-adjusted net amounts."""
    month: str
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")
    net: Decimal = Decimal("0")
    receivables: Decimal = Decimal("0")
    payables: Decimal = Decimal("0")
    overdue_count: int = 0


class CategoryReportRow(LedgerModel):
    category: Category
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")
    net: Decimal = Decimal("0")


class StatusReportRow(LedgerModel):
    status: RecordStatus
    count: int = 0


class BudgetVariance(LedgerModel):
    """Actuals for one month measured against its BudgetLine."""
    month: str
    revenue_target: Decimal
    revenue_actual: Decimal
    revenue_gap: Decimal
    expense_cap: Decimal
    expense_actual: Decimal
    fixed_costs: Decimal
    expense_headroom: Decimal
    gross_margin_target_pct: Decimal
    gross_margin_actual_pct: Optional[Decimal] = None
