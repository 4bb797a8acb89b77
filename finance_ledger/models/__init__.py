"""
Data Models Package

This package contains all Pydantic models used by the Finance Ledger Engine.
Everything past the normalizer operates on these types only.
"""

from finance_ledger.models.record import (
    Category,
    Currency,
    FinanceRecord,
    Frequency,
    LedgerModel,
    PaymentMethod,
    RecordStatus,
    Recurring,
    TaxBreakdown,
    TransactionType,
    new_record_id,
    utc_now,
)
from finance_ledger.models.budget import (
    FIXED_COST_FIELDS,
    BudgetLine,
    FixedCosts,
)
from finance_ledger.models.audit import (
    ActorRole,
    AuditAction,
    AuditEntry,
    AuditEntryBuilder,
)
from finance_ledger.models.reports import (
    BudgetVariance,
    CategoryReportRow,
    ImportResult,
    LedgerKpis,
    SessionReport,
    StatusReportRow,
)

__all__ = [
    # Record models
    "Category",
    "Currency",
    "FinanceRecord",
    "Frequency",
    "LedgerModel",
    "PaymentMethod",
    "RecordStatus",
    "Recurring",
    "TaxBreakdown",
    "TransactionType",
    "new_record_id",
    "utc_now",
    # Budget models
    "FIXED_COST_FIELDS",
    "BudgetLine",
    "FixedCosts",
    # Audit models
    "ActorRole",
    "AuditAction",
    "AuditEntry",
    "AuditEntryBuilder",
    # Reports
    "BudgetVariance",
    "CategoryReportRow",
    "ImportResult",
    "LedgerKpis",
    "SessionReport",
    "StatusReportRow",
]
