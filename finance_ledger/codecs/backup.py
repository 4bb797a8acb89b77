"""
JSON backup format.

A backup is one flat object:

    {"version", "exportedAt", "settings", "budgets", "txs", "audit"}

Any top-level key may be missing on import and is treated as empty.
`settings` belongs to the console, so it is carried through untouched.
"""

import json
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional

from pydantic import BaseModel, Field

from finance_ledger.errors import InvalidBackupError, MalformedInputError
from finance_ledger.models.audit import AuditEntry
from finance_ledger.models.budget import BudgetLine
from finance_ledger.models.record import FinanceRecord, utc_now
from finance_ledger.normalization.normalizer import (
    NormalizationContext,
    NormalizationReport,
    normalize_audit_entry,
    normalize_budget,
    normalize_records,
    parse_instant,
)


BACKUP_VERSION = "finance-ledger-export-v1"


class ParsedBackup(BaseModel):
    """Typed contents of a backup file after normalization."""
    version: Optional[str] = None
    exported_at: Optional[datetime] = None
    settings: dict[str, Any] = Field(default_factory=dict)
    records: NormalizationReport = Field(default_factory=NormalizationReport)
    budgets: list[BudgetLine] = Field(default_factory=list)
    budgets_dropped: int = 0
    audit: list[AuditEntry] = Field(default_factory=list)


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, list):
        return value
    if isinstance(value, Mapping):
        return list(value.values())
    return []


def parse_backup(
    text: str,
    context: Optional[NormalizationContext] = None,
) -> ParsedBackup:
    """
    Parse and normalize a JSON backup.

    Raises:
        MalformedInputError: the text is not JSON
        InvalidBackupError: the JSON is not an object
    """
    try:
        payload = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise MalformedInputError(f"Backup is not valid JSON: {e}") from e

    if not isinstance(payload, Mapping):
        raise InvalidBackupError(
            f"Backup must be a JSON object, got {type(payload).__name__}"
        )

    context = context or NormalizationContext()

    budgets: list[BudgetLine] = []
    budgets_dropped = 0
    for raw in _as_list(payload.get("budgets")):
        line = normalize_budget(raw)
        if line is None:
            budgets_dropped += 1
        else:
            budgets.append(line)

    audit = [
        entry
        for entry in (normalize_audit_entry(raw, context) for raw in _as_list(payload.get("audit")))
        if entry is not None
    ]

    settings = payload.get("settings")
    version = payload.get("version")

    return ParsedBackup(
        version=str(version) if version is not None else None,
        exported_at=parse_instant(payload.get("exportedAt")),
        settings=dict(settings) if isinstance(settings, Mapping) else {},
        records=normalize_records(_as_list(payload.get("txs")), context),
        budgets=budgets,
        budgets_dropped=budgets_dropped,
        audit=audit,
    )


def build_backup(
    records: Iterable[FinanceRecord],
    budgets: Iterable[BudgetLine] = (),
    audit: Iterable[AuditEntry] = (),
    settings: Optional[Mapping[str, Any]] = None,
    exported_at: Optional[datetime] = None,
) -> str:
    """Serialize the full ledger state as an indented JSON backup."""
    payload = {
        "version": BACKUP_VERSION,
        "exportedAt": (exported_at or utc_now()).isoformat(),
        "settings": dict(settings or {}),
        "budgets": [line.to_store_dict() for line in budgets],
        "txs": [record.to_store_dict() for record in records],
        "audit": [entry.to_store_dict() for entry in audit],
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)
