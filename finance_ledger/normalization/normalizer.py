"""
Normalizer: the single boundary between untyped and typed data.

Everything the engine reads from outside (store rehydration, CSV rows,
JSON backups, a single-record edit from a form) passes through here and
nowhere else.

GUARANTEES:
- A record is rejected (None) only when no identity can be derived
- Every other field has a documented fallback (see ENUM_DEFAULTS)
- Rate fields are clamped after parsing, so out-of-range numbers are
  corrected rather than defaulted
- No store or network access; same input gives the same output
"""

import re
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from finance_ledger.models.audit import ActorRole, AuditAction, AuditEntry
from finance_ledger.models.budget import (
    FIXED_COST_FIELDS,
    GROSS_MARGIN_TARGET_MAX,
    BudgetLine,
    FixedCosts,
)
from finance_ledger.models.record import (
    GST_RATE_MAX,
    TDS_RATE_MAX,
    Category,
    Currency,
    FinanceRecord,
    Frequency,
    PaymentMethod,
    RecordStatus,
    Recurring,
    TransactionType,
    utc_now,
)


logger = structlog.get_logger(__name__)

E = TypeVar("E", bound=Enum)

ZERO = Decimal("0")

# Fallbacks for closed enums. Currency falls back to the context default.
ENUM_DEFAULTS: dict[str, Enum] = {
    "type": TransactionType.EXPENSE,
    "status": RecordStatus.PLANNED,
    "category": Category.OTHER,
    "payment_method": PaymentMethod.BANK,
    "recurring_freq": Frequency.MONTHLY,
    "actor_role": ActorRole.SYSTEM,
}

# Accepted input keys per field, lower-cased. The first non-empty one wins.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "id": ("id", "_id"),
    "type": ("type",),
    "status": ("status",),
    "currency": ("currency",),
    "amount": ("amount", "value"),
    "gst_rate": ("gstrate", "gst_rate", "gst"),
    "gst_included": ("gstincluded", "gst_included"),
    "tds_rate": ("tdsrate", "tds_rate", "tds"),
    "date": ("date", "txn_date", "transaction_date"),
    "due_date": ("duedate", "due_date"),
    "created_at": ("createdat", "created_at"),
    "updated_at": ("updatedat", "updated_at"),
    "category": ("category",),
    "description": ("description", "title", "desc", "memo"),
    "client_name": ("clientname", "client_name", "client"),
    "vendor_name": ("vendorname", "vendor_name", "vendor"),
    "event_title": ("eventtitle", "event_title", "event"),
    "payment_method": ("paymentmethod", "payment_method", "method"),
    "invoice_no": ("invoiceno", "invoice_no", "invoice"),
    "reference_id": ("referenceid", "reference_id", "ref", "reference"),
    "notes": ("notes", "note"),
    "recurring_enabled": ("recurringenabled", "recurring_enabled"),
    "recurring_freq": ("recurringfreq", "recurring_freq"),
    "recurring_next_run": ("recurringnextrun", "recurring_next_run"),
}

_TRUE_STRINGS = {"true", "1", "yes", "y", "on"}
_YMD = re.compile(r"^\d{4}-\d{2}-\d{2}")
_YM = re.compile(r"^(\d{4})-(\d{1,2})")


class NormalizationContext(BaseModel):
    """Defaults the normalizer needs from the outside world."""
    model_config = ConfigDict(frozen=True)

    default_currency: Currency = Currency.INR
    today: date = Field(default_factory=date.today)
    now: datetime = Field(default_factory=utc_now)


class NormalizationReport(BaseModel):
    """Records that survived normalization plus how many were dropped."""
    records: list[FinanceRecord] = Field(default_factory=list)
    dropped: int = 0


# =============================================================================
# SCALAR PARSERS
# =============================================================================

def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def parse_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    """
    Parse a money or rate value.

    Tolerates thousands separators and surrounding whitespace. Anything
    unparsable or non-finite gives `default`.
    """
    if isinstance(value, bool) or is_blank(value):
        return default
    if isinstance(value, Decimal):
        result = value
    else:
        text = str(value).strip().replace(",", "").replace(" ", "")
        try:
            result = Decimal(text)
        except InvalidOperation:
            return default
    if not result.is_finite():
        return default
    return result


def clamp(value: Decimal, low: Decimal, high: Decimal) -> Decimal:
    return max(low, min(high, value))


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float, Decimal)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return False


def parse_enum(value: Any, enum_cls: type[E], default: E) -> E:
    """Keep `value` only if it names a member (case-insensitive on the value)."""
    if isinstance(value, enum_cls):
        return value
    if is_blank(value):
        return default
    wanted = str(value).strip().lower()
    for member in enum_cls:
        if str(member.value).lower() == wanted:
            return member
    return default


def parse_date(value: Any) -> Optional[date]:
    """Parse YYYY-MM-DD (a trailing time part is ignored)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if is_blank(value):
        return None
    text = str(value).strip()
    if not _YMD.match(text):
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def parse_instant(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 instant. Naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif is_blank(value):
        return None
    else:
        text = str(value).strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_text(value: Any) -> Optional[str]:
    if is_blank(value):
        return None
    return str(value).strip()


def parse_month(value: Any) -> Optional[str]:
    """Parse a calendar month as YYYY-MM. Accepts YYYY-M and full dates."""
    if isinstance(value, date):
        return f"{value.year:04d}-{value.month:02d}"
    if is_blank(value):
        return None
    match = _YM.match(str(value).strip())
    if not match:
        return None
    month = int(match.group(2))
    if not 1 <= month <= 12:
        return None
    return f"{match.group(1)}-{month:02d}"


# =============================================================================
# FIELD LOOKUP
# =============================================================================

def _lower_keys(raw: Mapping[Any, Any]) -> dict[str, Any]:
    return {str(key).strip().lower(): value for key, value in raw.items()}


def _pick(fields: Mapping[str, Any], name: str) -> Any:
    """First non-blank value among the aliases of `name`."""
    for alias in FIELD_ALIASES.get(name, (name,)):
        value = fields.get(alias)
        if not is_blank(value):
            return value
    return None


def _normalize_recurring(fields: Mapping[str, Any]) -> Optional[Recurring]:
    """
    Build a schedule from a nested `recurring` object or the flat CSV columns.

    Absent unless `enabled` parses to True. An unknown freq becomes Monthly.
    """
    nested = fields.get("recurring")
    if isinstance(nested, Mapping):
        inner = _lower_keys(nested)
        enabled = inner.get("enabled")
        freq = inner.get("freq")
        next_run = inner.get("nextrun", inner.get("next_run"))
    else:
        enabled = _pick(fields, "recurring_enabled")
        freq = _pick(fields, "recurring_freq")
        next_run = _pick(fields, "recurring_next_run")

    if not parse_bool(enabled):
        return None

    return Recurring(
        enabled=True,
        freq=parse_enum(freq, Frequency, ENUM_DEFAULTS["recurring_freq"]),
        next_run=parse_date(next_run),
    )


# =============================================================================
# RECORDS
# =============================================================================

def normalize_record(
    raw: Any,
    context: Optional[NormalizationContext] = None,
) -> Optional[FinanceRecord]:
    """
    Coerce arbitrary external data into a FinanceRecord.

    Args:
        raw: A mapping from any source (CSV row, JSON object, legacy store)
        context: Defaults for currency and the current date/instant

    Returns:
        The typed record, or None if no id could be derived
    """
    if isinstance(raw, BaseModel):
        raw = raw.model_dump(mode="json", by_alias=True)
    if not isinstance(raw, Mapping):
        return None

    context = context or NormalizationContext()
    fields = _lower_keys(raw)

    record_id = parse_text(_pick(fields, "id"))
    if record_id is None:
        return None

    created_at = parse_instant(_pick(fields, "created_at")) or context.now
    updated_at = parse_instant(_pick(fields, "updated_at")) or created_at

    try:
        return FinanceRecord(
            id=record_id,
            type=parse_enum(_pick(fields, "type"), TransactionType, ENUM_DEFAULTS["type"]),
            status=parse_enum(_pick(fields, "status"), RecordStatus, ENUM_DEFAULTS["status"]),
            amount=parse_decimal(_pick(fields, "amount")),
            currency=parse_enum(_pick(fields, "currency"), Currency, context.default_currency),
            gst_rate=clamp(parse_decimal(_pick(fields, "gst_rate")), ZERO, GST_RATE_MAX),
            gst_included=parse_bool(_pick(fields, "gst_included")),
            tds_rate=clamp(parse_decimal(_pick(fields, "tds_rate")), ZERO, TDS_RATE_MAX),
            date=parse_date(_pick(fields, "date")) or context.today,
            due_date=parse_date(_pick(fields, "due_date")),
            created_at=created_at,
            updated_at=updated_at,
            category=parse_enum(_pick(fields, "category"), Category, ENUM_DEFAULTS["category"]),
            description=parse_text(_pick(fields, "description")) or "",
            client_name=parse_text(_pick(fields, "client_name")),
            vendor_name=parse_text(_pick(fields, "vendor_name")),
            event_title=parse_text(_pick(fields, "event_title")),
            payment_method=parse_enum(
                _pick(fields, "payment_method"), PaymentMethod, ENUM_DEFAULTS["payment_method"]
            ),
            invoice_no=parse_text(_pick(fields, "invoice_no")),
            reference_id=parse_text(_pick(fields, "reference_id")),
            notes=parse_text(_pick(fields, "notes")),
            recurring=_normalize_recurring(fields),
        )
    except ValidationError as e:
        logger.warning("record_normalization_failed", record_id=record_id, error=str(e))
        return None


def normalize_records(
    raws: Any,
    context: Optional[NormalizationContext] = None,
) -> NormalizationReport:
    """
    Normalize a batch. Records without identity are dropped and counted;
    one bad record never aborts the rest.

    A mapping of id -> record (an older store layout) is accepted too.
    """
    if isinstance(raws, Mapping):
        items: Iterable[Any] = raws.values()
    elif isinstance(raws, (list, tuple)):
        items = raws
    else:
        return NormalizationReport()

    context = context or NormalizationContext()
    report = NormalizationReport()
    for raw in items:
        record = normalize_record(raw, context)
        if record is None:
            report.dropped += 1
        else:
            report.records.append(record)

    if report.dropped:
        logger.info("records_dropped", dropped=report.dropped, kept=len(report.records))
    return report


# =============================================================================
# BUDGETS AND AUDIT ENTRIES
# =============================================================================

def normalize_budget(raw: Any) -> Optional[BudgetLine]:
    """
    Coerce a stored budget object. Returns None without a valid month.

    Fixed costs may be nested under `fixedCosts` or given flat.
    """
    if not isinstance(raw, Mapping):
        return None
    fields = _lower_keys(raw)

    month = parse_month(fields.get("month"))
    if month is None:
        return None

    nested = fields.get("fixedcosts", fields.get("fixed_costs"))
    cost_fields = _lower_keys(nested) if isinstance(nested, Mapping) else fields
    costs = FixedCosts(**{
        name: max(ZERO, parse_decimal(cost_fields.get(name)))
        for name in FIXED_COST_FIELDS
    })

    margin = fields.get("grossmargintargetpct", fields.get("gross_margin_target_pct"))
    return BudgetLine(
        month=month,
        revenue_target=max(ZERO, parse_decimal(
            fields.get("revenuetarget", fields.get("revenue_target"))
        )),
        expense_cap=max(ZERO, parse_decimal(
            fields.get("expensecap", fields.get("expense_cap"))
        )),
        gross_margin_target_pct=clamp(parse_decimal(margin), ZERO, GROSS_MARGIN_TARGET_MAX),
        fixed_costs=costs,
    )


def normalize_audit_entry(
    raw: Any,
    context: Optional[NormalizationContext] = None,
) -> Optional[AuditEntry]:
    """
    Coerce a stored audit entry. Entries without an id or with an action
    outside the closed set are dropped.
    """
    if not isinstance(raw, Mapping):
        return None
    context = context or NormalizationContext()
    fields = _lower_keys(raw)

    entry_id = parse_text(fields.get("id"))
    action = parse_enum(fields.get("action"), AuditAction, None)
    if entry_id is None or action is None:
        return None

    return AuditEntry(
        id=entry_id,
        at=parse_instant(fields.get("at")) or context.now,
        actor_role=parse_enum(
            fields.get("actorrole", fields.get("actor_role")),
            ActorRole,
            ENUM_DEFAULTS["actor_role"],
        ),
        action=action,
        detail=(parse_text(fields.get("detail")) or "")[:500],
    )
