"""
Monthly budget models.

One BudgetLine exists per calendar month; `month` is the natural key.
"""

from decimal import Decimal

from pydantic import Field

from finance_ledger.models.record import LedgerModel


GROSS_MARGIN_TARGET_MAX = Decimal("80")

FIXED_COST_FIELDS = (
    "rent",
    "salaries",
    "marketing",
    "misc",
    "logistics",
    "compliance",
)


class FixedCosts(LedgerModel):
    """Fixed-cost breakdown for a month. Every value is non-negative."""
    rent: Decimal = Field(default=Decimal("0"), ge=0)
    salaries: Decimal = Field(default=Decimal("0"), ge=0)
    marketing: Decimal = Field(default=Decimal("0"), ge=0)
    misc: Decimal = Field(default=Decimal("0"), ge=0)
    logistics: Decimal = Field(default=Decimal("0"), ge=0)
    compliance: Decimal = Field(default=Decimal("0"), ge=0)

    @property
    def total(self) -> Decimal:
        return sum((getattr(self, name) for name in FIXED_COST_FIELDS), Decimal("0"))


class BudgetLine(LedgerModel):
    """Targets and caps for one calendar month."""

    month: str = Field(
        ...,
        pattern=r"^\d{4}-(0[1-9]|1[0-2])$",
        description="Calendar month, YYYY-MM",
    )
    revenue_target: Decimal = Field(default=Decimal("0"), ge=0)
    expense_cap: Decimal = Field(default=Decimal("0"), ge=0)
    gross_margin_target_pct: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        le=GROSS_MARGIN_TARGET_MAX,
    )
    fixed_costs: FixedCosts = Field(default_factory=FixedCosts)
