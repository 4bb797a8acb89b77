"""
Core Ledger Record Models

These models define the typed shape of every ledger entry once it has
passed through the normalizer. They are designed to:
1. Carry money as Decimal, never float
2. Keep rate fields inside their legal range at all times
3. Serialize to the camelCase wire format used by the store, CSV and backups

DESIGN DECISION: Python attributes are snake_case; the wire names are
camelCase through an alias generator. `populate_by_name` lets engine code
build records with Python names while the normalizer feeds wire names.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


GST_RATE_MAX = Decimal("28")
TDS_RATE_MAX = Decimal("20")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_record_id() -> str:
    """Fresh record id. Ids are never reused, so collisions are the only risk."""
    return f"tx_{uuid4().hex}"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of money for a ledger entry."""
    INCOME = "Income"
    EXPENSE = "Expense"


class RecordStatus(str, Enum):
    """
    Lifecycle status of a ledger entry.

    PAID and CANCELLED are terminal. OVERDUE is derived by the overdue
    scanner and is never a user-chosen target.
    """
    PLANNED = "Planned"
    PENDING = "Pending"
    PAID = "Paid"
    OVERDUE = "Overdue"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (RecordStatus.PAID, RecordStatus.CANCELLED)


class Currency(str, Enum):
    """Supported currencies. No conversion is ever performed between them."""
    INR = "INR"
    CAD = "CAD"
    USD = "USD"
    OTHER = "Other"


class PaymentMethod(str, Enum):
    CASH = "Cash"
    UPI = "UPI"
    BANK = "Bank"
    CARD = "Card"
    CHEQUE = "Cheque"
    OTHER = "Other"


class Category(str, Enum):
    """Ledger categories carried over from the finance console."""
    SALES = "Sales"
    CLIENT_ADVANCE = "ClientAdvance"
    VENDOR_PAYMENT = "VendorPayment"
    SALARY = "Salary"
    MARKETING = "Marketing"
    OFFICE = "Office"
    TRANSPORT = "Transport"
    EQUIPMENT = "Equipment"
    TAX = "Tax"
    REFUND = "Refund"
    OTHER = "Other"


class Frequency(str, Enum):
    """How often a recurring source spawns a new instance."""
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    YEARLY = "Yearly"


# =============================================================================
# BASE MODEL
# =============================================================================

class LedgerModel(BaseModel):
    """Shared config: camelCase aliases, whitespace stripping."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    def to_store_dict(self) -> dict[str, Any]:
        """
        Convert to the JSON-safe camelCase dict written to the store.

        Decimals become strings, dates and instants become ISO-8601.
        """
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# LEDGER RECORD
# =============================================================================

class Recurring(LedgerModel):
    """
    Recurrence schedule attached to a source record.

    `next_run` is owned by the recurrence engine once the source exists.
    """
    enabled: bool = True
    freq: Frequency = Frequency.MONTHLY
    next_run: Optional[date] = None


class FinanceRecord(LedgerModel):
    """
    A single income or expense entry.

    CRITICAL: Only the normalizer builds these from untyped data.
    Derived values (tax breakdown, overdue status) are computed by the
    engine, never written by callers.
    """

    # Identity
    id: str = Field(..., min_length=1, description="Stable unique record id")

    # Classification
    type: TransactionType = TransactionType.EXPENSE
    status: RecordStatus = RecordStatus.PLANNED

    # Money
    amount: Decimal = Field(default=Decimal("0"))
    currency: Currency = Currency.INR
    gst_rate: Decimal = Field(default=Decimal("0"), ge=0, le=GST_RATE_MAX)
    gst_included: bool = False
    tds_rate: Decimal = Field(default=Decimal("0"), ge=0, le=TDS_RATE_MAX)

    # Dates
    date: date
    due_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime

    # Metadata
    category: Category = Category.OTHER
    description: str = ""
    client_name: Optional[str] = None
    vendor_name: Optional[str] = None
    event_title: Optional[str] = None
    payment_method: PaymentMethod = PaymentMethod.BANK
    invoice_no: Optional[str] = None
    reference_id: Optional[str] = None
    notes: Optional[str] = None

    recurring: Optional[Recurring] = None

    @model_validator(mode="after")
    def drop_disabled_recurring(self) -> "FinanceRecord":
        """A disabled schedule is the same as no schedule."""
        if self.recurring is not None and not self.recurring.enabled:
            self.recurring = None
        return self

    @property
    def is_recurring_source(self) -> bool:
        return self.recurring is not None and self.recurring.enabled


class TaxBreakdown(LedgerModel):
    """Derived monetary fields for one record. Recomputed on every read."""
    model_config = ConfigDict(frozen=True)

    base: Decimal
    gst_rate: Decimal
    gst_add: Decimal
    subtotal: Decimal
    tds_rate: Decimal
    tds: Decimal
    net: Decimal
