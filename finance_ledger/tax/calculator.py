"""
Tax Calculator

Derives GST and TDS figures for a single record. Pure: no rounding, no
caching, no error conditions. Presentation code rounds with format_money.

GST is additive only when it is not already folded into the amount.
TDS is always withheld from the post-GST subtotal, whatever gst_included says.
"""

from decimal import ROUND_HALF_UP, Decimal

from finance_ledger.models.record import Currency, FinanceRecord, TaxBreakdown


HUNDRED = Decimal("100")
CENTS = Decimal("0.01")

_CURRENCY_SYMBOLS = {
    Currency.INR: "₹",
    Currency.CAD: "CA$",
    Currency.USD: "$",
}


def compute_totals(record: FinanceRecord) -> TaxBreakdown:
    """
    Compute the tax breakdown of a normalized record.

    Example: amount 1000, GST 18% not included, TDS 10%
        gst_add=180, subtotal=1180, tds=118, net=1062
    """
    base = record.amount
    gst_add = Decimal("0") if record.gst_included else base * record.gst_rate / HUNDRED
    subtotal = base + gst_add
    tds = subtotal * record.tds_rate / HUNDRED

    return TaxBreakdown(
        base=base,
        gst_rate=record.gst_rate,
        gst_add=gst_add,
        subtotal=subtotal,
        tds_rate=record.tds_rate,
        tds=tds,
        net=subtotal - tds,
    )


def format_money(value: Decimal, currency: Currency = Currency.INR) -> str:
    """Two-decimal presentation of a money value, e.g. `₹1,062.00`."""
    rounded = value.quantize(CENTS, rounding=ROUND_HALF_UP)
    sign = "-" if rounded < 0 else ""
    symbol = _CURRENCY_SYMBOLS.get(currency)
    if symbol is None:
        return f"{sign}{abs(rounded):,.2f} {currency.value}"
    return f"{sign}{symbol}{abs(rounded):,.2f}"
