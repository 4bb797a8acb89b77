"""
Audit Models for the Finance Ledger

Every mutating action, whether triggered by a user or by the engine on
session load, produces one AuditEntry. The log is append-only and bounded:
the oldest entries fall off the end, they are never edited or archived.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import Field

from finance_ledger.models.record import LedgerModel, utc_now


def new_audit_id() -> str:
    return f"audit_{uuid4().hex}"


class ActorRole(str, Enum):
    """Who triggered an action. SYSTEM covers engine passes on load."""
    CEO = "CEO"
    STAFF = "Staff"
    SYSTEM = "System"


class AuditAction(str, Enum):
    """
    Types of actions we audit.

    Engine-triggered actions (overdue scan, recurrence) are batched: one
    entry per pass, never one per record.
    """
    # Record edits
    RECORD_CREATED = "record_created"
    RECORD_UPDATED = "record_updated"
    RECORD_DELETED = "record_deleted"
    RECORD_DUPLICATED = "record_duplicated"
    STATUS_CHANGED = "status_changed"

    # Engine passes
    OVERDUE_SCAN = "overdue_scan"
    RECURRENCE_SPAWNED = "recurrence_spawned"
    SESSION_LOADED = "session_loaded"

    # Import / export
    CSV_IMPORTED = "csv_imported"
    JSON_IMPORTED = "json_imported"
    CSV_EXPORTED = "csv_exported"
    JSON_EXPORTED = "json_exported"

    # Budgets
    BUDGET_SAVED = "budget_saved"


class AuditEntry(LedgerModel):
    """A single audit log entry."""

    id: str = Field(default_factory=new_audit_id)
    at: datetime = Field(default_factory=utc_now)
    actor_role: ActorRole = ActorRole.SYSTEM
    action: AuditAction
    detail: str = Field(default="", max_length=500)

    def to_log_dict(self) -> dict[str, Any]:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "audit_id": self.id,
            "at": self.at.isoformat(),
            "actor_role": self.actor_role.value,
            "action": self.action.value,
            "detail": self.detail,
        }


class AuditEntryBuilder:
    """
    Helper class to build audit entries with common wording.

    Usage:
        entry = AuditEntryBuilder.overdue_scan(transitioned=3)
        entry = AuditEntryBuilder.csv_imported(ActorRole.CEO, 10, 2)
    """

    @staticmethod
    def record_saved(role: ActorRole, record_id: str, created: bool) -> AuditEntry:
        return AuditEntry(
            actor_role=role,
            action=AuditAction.RECORD_CREATED if created else AuditAction.RECORD_UPDATED,
            detail=f"{'Created' if created else 'Updated'} record {record_id}",
        )

    @staticmethod
    def status_changed(
        role: ActorRole,
        record_id: str,
        old_status: str,
        new_status: str,
    ) -> AuditEntry:
        return AuditEntry(
            actor_role=role,
            action=AuditAction.STATUS_CHANGED,
            detail=f"Record {record_id}: {old_status} -> {new_status}",
        )

    @staticmethod
    def record_deleted(role: ActorRole, record_id: str) -> AuditEntry:
        return AuditEntry(
            actor_role=role,
            action=AuditAction.RECORD_DELETED,
            detail=f"Deleted record {record_id}",
        )

    @staticmethod
    def record_duplicated(role: ActorRole, source_id: str, copy_id: str) -> AuditEntry:
        return AuditEntry(
            actor_role=role,
            action=AuditAction.RECORD_DUPLICATED,
            detail=f"Duplicated record {source_id} as {copy_id}",
        )

    @staticmethod
    def overdue_scan(transitioned: int) -> AuditEntry:
        return AuditEntry(
            actor_role=ActorRole.SYSTEM,
            action=AuditAction.OVERDUE_SCAN,
            detail=f"Marked {transitioned} record(s) overdue",
        )

    @staticmethod
    def recurrence_spawned(spawned: int, sources: int) -> AuditEntry:
        return AuditEntry(
            actor_role=ActorRole.SYSTEM,
            action=AuditAction.RECURRENCE_SPAWNED,
            detail=f"Spawned {spawned} record(s) from {sources} recurring source(s)",
        )

    @staticmethod
    def session_loaded(role: ActorRole, records: int, dropped: int) -> AuditEntry:
        return AuditEntry(
            actor_role=role,
            action=AuditAction.SESSION_LOADED,
            detail=f"Loaded {records} record(s), dropped {dropped} without identity",
        )

    @staticmethod
    def csv_imported(role: ActorRole, imported: int, dropped: int) -> AuditEntry:
        return AuditEntry(
            actor_role=role,
            action=AuditAction.CSV_IMPORTED,
            detail=f"CSV import: {imported} record(s) merged, {dropped} dropped",
        )

    @staticmethod
    def json_imported(role: ActorRole, imported: int, dropped: int) -> AuditEntry:
        return AuditEntry(
            actor_role=role,
            action=AuditAction.JSON_IMPORTED,
            detail=f"Backup import: {imported} record(s) merged, {dropped} dropped",
        )

    @staticmethod
    def exported(role: ActorRole, fmt: str, count: int) -> AuditEntry:
        action = AuditAction.CSV_EXPORTED if fmt == "csv" else AuditAction.JSON_EXPORTED
        return AuditEntry(
            actor_role=role,
            action=action,
            detail=f"Exported {count} record(s) as {fmt.upper()}",
        )

    @staticmethod
    def budget_saved(role: ActorRole, month: str) -> AuditEntry:
        return AuditEntry(
            actor_role=role,
            action=AuditAction.BUDGET_SAVED,
            detail=f"Saved budget for {month}",
        )
