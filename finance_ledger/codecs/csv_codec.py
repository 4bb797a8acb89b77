"""
CSV Codec for ledger import and export.

The parser is a small hand-written state machine rather than the csv
module so the quoting rules stay exactly the ones the finance console has
always written:
- `""` inside a quoted field is a literal quote
- commas (and tabs) inside quotes are data
- CR, LF and CRLF outside quotes end a row; inside quotes they are data

Column mapping is header-driven. Unknown headers are ignored and missing
columns come back as empty strings, so reordered or extended files import
cleanly.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Sequence

from pydantic.alias_generators import to_camel

from finance_ledger.errors import InsufficientRowsError
from finance_ledger.models.record import FinanceRecord
from finance_ledger.normalization.normalizer import FIELD_ALIASES


# Always emitted on export, in this order.
CSV_COLUMNS: tuple[str, ...] = (
    "id",
    "date",
    "type",
    "status",
    "currency",
    "amount",
    "gstRate",
    "gstIncluded",
    "tdsRate",
    "category",
    "description",
    "clientName",
    "vendorName",
    "paymentMethod",
    "dueDate",
    "recurringEnabled",
    "recurringFreq",
    "recurringNextRun",
    "notes",
    "createdAt",
    "updatedAt",
    "eventTitle",
    "invoiceNo",
    "referenceId",
)

DELIMITERS = (",", "\t")
_NEEDS_QUOTES = (",", '"', "\t", "\r", "\n")


# =============================================================================
# PARSING
# =============================================================================

def _split_rows(text: str) -> list[list[str]]:
    """Split text into rows of raw fields. Rows with no content are skipped."""
    rows: list[list[str]] = []
    row: list[str] = []
    field: list[str] = []
    in_quotes = False
    i = 0
    n = len(text)

    def end_row() -> None:
        row.append("".join(field))
        field.clear()
        if any(value.strip() for value in row):
            rows.append(list(row))
        row.clear()

    while i < n:
        ch = text[i]
        if in_quotes:
            if ch == '"':
                if i + 1 < n and text[i + 1] == '"':
                    field.append('"')
                    i += 2
                    continue
                in_quotes = False
            else:
                field.append(ch)
        elif ch == '"':
            in_quotes = True
        elif ch in DELIMITERS:
            row.append("".join(field))
            field.clear()
        elif ch in ("\r", "\n"):
            if ch == "\r" and i + 1 < n and text[i + 1] == "\n":
                i += 1
            end_row()
        else:
            field.append(ch)
        i += 1

    end_row()
    return rows


def _header_index(header_order: Sequence[str]) -> dict[str, str]:
    """Lower-cased header (or legacy alias) -> canonical column name."""
    wanted = set(header_order)
    index = {column.lower(): column for column in header_order}
    for field_name, aliases in FIELD_ALIASES.items():
        column = to_camel(field_name)
        if column not in wanted:
            continue
        for alias in aliases:
            index.setdefault(alias, column)
    return index


def parse_csv(
    text: str,
    header_order: Sequence[str] = CSV_COLUMNS,
) -> list[dict[str, str]]:
    """
    Parse CSV text into one dict per data row, keyed by `header_order`.

    Raises:
        InsufficientRowsError: fewer than two non-empty rows (header + data)
    """
    rows = _split_rows(text.lstrip("\ufeff"))
    if len(rows) < 2:
        raise InsufficientRowsError(len(rows))

    index = _header_index(header_order)
    positions: list[Optional[str]] = [
        index.get(cell.strip().lower()) for cell in rows[0]
    ]

    out: list[dict[str, str]] = []
    for cells in rows[1:]:
        mapped = {column: "" for column in header_order}
        for position, column in enumerate(positions):
            if column is None or position >= len(cells):
                continue
            value = cells[position].strip()
            if value and not mapped[column]:
                mapped[column] = value
        out.append(mapped)
    return out


# =============================================================================
# WRITING
# =============================================================================

def stringify(value: Any) -> str:
    """Render a single cell value before escaping."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def escape_cell(value: Any) -> str:
    text = stringify(value)
    if any(token in text for token in _NEEDS_QUOTES):
        return '"' + text.replace('"', '""') + '"'
    return text


def write_csv(
    rows: Iterable[Mapping[str, Any]],
    columns: Sequence[str] = CSV_COLUMNS,
) -> str:
    """Serialize rows under a header line. Missing keys become empty cells."""
    lines = [",".join(escape_cell(column) for column in columns)]
    for row in rows:
        lines.append(",".join(escape_cell(row.get(column)) for column in columns))
    return "\n".join(lines)


def record_to_row(record: FinanceRecord) -> dict[str, Any]:
    """Flatten a record into the CSV column set."""
    row = record.model_dump(mode="json", by_alias=True)
    recurring = row.pop("recurring", None) or {}
    row["recurringEnabled"] = bool(recurring.get("enabled", False))
    row["recurringFreq"] = recurring.get("freq")
    row["recurringNextRun"] = recurring.get("nextRun")
    return row


def records_to_rows(records: Iterable[FinanceRecord]) -> list[dict[str, Any]]:
    return [record_to_row(record) for record in records]
