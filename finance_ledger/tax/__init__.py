"""Tax computation package."""

from finance_ledger.tax.calculator import compute_totals, format_money

__all__ = ["compute_totals", "format_money"]
