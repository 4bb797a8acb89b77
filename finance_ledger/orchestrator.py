"""
Ledger Orchestrator

This module ties together all the engine components and defines the
end-to-end flows for:
1. Session load (read -> normalize -> overdue scan -> recurrence -> persist)
2. Single-record edits (save, delete, duplicate)
3. Import and export (CSV, JSON backup)
4. Monthly budgets

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every untyped input goes through the normalizer
- Every merge goes through last-write-wins by id
- Each flow writes each store key at most once
- Every mutation is audited

Engine passes are pure functions; this is the only class that reads the
clock or touches the store.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Literal, Mapping, Optional

import structlog
from pydantic import BaseModel

from finance_ledger.audit import AuditSink
from finance_ledger.codecs import (
    CSV_COLUMNS,
    build_backup,
    parse_backup,
    parse_csv,
    records_to_rows,
    write_csv,
)
from finance_ledger.config import LedgerSettings, get_settings
from finance_ledger.engine import (
    dedupe_budgets,
    merge_budgets,
    merge_records,
    run_recurrence,
    scan_overdue,
)
from finance_ledger.errors import (
    ForbiddenTransitionError,
    MalformedInputError,
    RecordNotFoundError,
)
from finance_ledger.models import (
    ActorRole,
    AuditEntryBuilder,
    BudgetLine,
    FinanceRecord,
    ImportResult,
    RecordStatus,
    SessionReport,
    new_record_id,
    utc_now,
)
from finance_ledger.normalization import (
    NormalizationContext,
    NormalizationReport,
    normalize_budget,
    normalize_record,
    normalize_records,
)
from finance_ledger.queries import RecordFilter, filter_records
from finance_ledger.services.storage import (
    GoogleSheetsStore,
    InMemoryStore,
    JsonFileStore,
    KeyValueStore,
)


Clock = Callable[[], datetime]

logger = structlog.get_logger(__name__)


def _has_id(raw: Mapping[Any, Any]) -> bool:
    for key, value in raw.items():
        if str(key).lower() in ("id", "_id") and str(value or "").strip():
            return True
    return False


class LedgerEngine:
    """
    Orchestrates every ledger flow against one key-value store.

    Flow on session load:
    1. Read  -> raw records from the store
    2. Normalize -> typed records, unidentifiable ones dropped and counted
    3. Scan  -> Planned/Pending past their grace period become Overdue
    4. Recur -> due recurring sources spawn instances, schedules advance
       and spawned instances already past due are scanned too
    5. Persist -> one write, only if the normalized set differs from storage
    6. Audit -> one batched write

    Running bootstrap twice in a row is a no-op the second time.
    """

    def __init__(
        self,
        store: KeyValueStore,
        settings: Optional[LedgerSettings] = None,
        audit_sink: Optional[AuditSink] = None,
        clock: Optional[Clock] = None,
    ):
        self._store = store
        self._settings = settings or get_settings().ledger
        self._audit = audit_sink or AuditSink(store, self._settings)
        self._clock = clock or utc_now

    @property
    def audit(self) -> AuditSink:
        return self._audit

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _now(self) -> datetime:
        now = self._clock()
        if now.tzinfo is None:
            return now.replace(tzinfo=timezone.utc)
        return now.astimezone(timezone.utc)

    def _context(self, now: datetime) -> NormalizationContext:
        return NormalizationContext(
            default_currency=self._settings.default_currency,
            today=now.date(),
            now=now,
        )

    async def _read_records(
        self,
        context: NormalizationContext,
    ) -> tuple[Any, NormalizationReport]:
        raw = await self._store.read(self._settings.records_key)
        return raw, normalize_records(raw if raw is not None else [], context)

    async def _write_records(self, records: list[FinanceRecord]) -> None:
        await self._store.write(
            self._settings.records_key,
            [record.to_store_dict() for record in records],
        )

    async def _read_budgets(self) -> list[BudgetLine]:
        raw = await self._store.read(self._settings.budgets_key)
        if not isinstance(raw, list):
            return []
        lines = [line for line in (normalize_budget(item) for item in raw) if line is not None]
        return dedupe_budgets(lines)

    async def _write_budgets(self, lines: list[BudgetLine]) -> None:
        await self._store.write(
            self._settings.budgets_key,
            [line.to_store_dict() for line in lines],
        )

    async def _load(self, now: datetime) -> list[FinanceRecord]:
        _, report = await self._read_records(self._context(now))
        return merge_records([], report.records)

    @staticmethod
    def _find(records: list[FinanceRecord], record_id: str) -> FinanceRecord:
        for record in records:
            if record.id == record_id:
                return record
        raise RecordNotFoundError(record_id)

    # =========================================================================
    # SESSION
    # =========================================================================

    async def bootstrap(self, actor_role: ActorRole = ActorRole.SYSTEM) -> SessionReport:
        """
        Load the ledger and bring it up to date for today.

        Returns:
            SessionReport with counts, the ids that moved to Overdue, the
            spawned ids and whether the record set was written back
        """
        now = self._now()
        context = self._context(now)

        raw, report = await self._read_records(context)
        records = merge_records([], report.records)

        scan = scan_overdue(
            records,
            today=context.today,
            overdue_rule_days=self._settings.overdue_rule_days,
            now=now,
        )
        recurrence = run_recurrence(
            scan.records,
            today=context.today,
            now=now,
            max_catch_up=self._settings.recurrence_max_catch_up,
        )
        # Catch-up instances can already be past due
        late = scan_overdue(
            recurrence.records,
            today=context.today,
            overdue_rule_days=self._settings.overdue_rule_days,
            now=now,
        )
        transitioned = scan.transitioned + late.transitioned

        serialized = [record.to_store_dict() for record in late.records]
        persisted = serialized != (raw if raw is not None else [])
        if persisted:
            await self._store.write(self._settings.records_key, serialized)

        entries = [AuditEntryBuilder.session_loaded(actor_role, len(records), report.dropped)]
        if transitioned:
            entries.append(AuditEntryBuilder.overdue_scan(len(transitioned)))
        if recurrence.spawned:
            entries.append(AuditEntryBuilder.recurrence_spawned(
                len(recurrence.spawned), len(recurrence.advanced)
            ))
        await self._audit.log_many(entries)

        logger.info(
            "session_bootstrapped",
            loaded=len(records),
            dropped=report.dropped,
            marked_overdue=len(transitioned),
            spawned=len(recurrence.spawned),
            persisted=persisted,
        )

        return SessionReport(
            loaded=len(records),
            dropped=report.dropped,
            marked_overdue=transitioned,
            spawned=[record.id for record in recurrence.spawned],
            advanced_sources=recurrence.advanced,
            persisted=persisted,
        )

    async def records(self) -> list[FinanceRecord]:
        """The normalized record set as stored. No engine passes are run."""
        return await self._load(self._now())

    async def budgets(self) -> list[BudgetLine]:
        return await self._read_budgets()

    # =========================================================================
    # RECORD EDITS
    # =========================================================================

    async def save_record(
        self,
        raw: Any,
        actor_role: ActorRole = ActorRole.STAFF,
    ) -> FinanceRecord:
        """
        Create or update one record from form input.

        Input without an id is a creation and gets a fresh id. The stored
        `created_at` is kept on update and `updated_at` never moves back.

        Raises:
            MalformedInputError: the input is not a record at all
            ForbiddenTransitionError: the edit sets Overdue on a record
                that is not already Overdue
        """
        now = self._now()
        context = self._context(now)

        if isinstance(raw, Mapping) and not _has_id(raw):
            raw = {**raw, "id": new_record_id()}
        incoming = normalize_record(raw, context)
        if incoming is None:
            raise MalformedInputError("Record input has no usable id")

        records = await self._load(now)
        previous = next((r for r in records if r.id == incoming.id), None)

        # next_run belongs to the recurrence pass once a schedule exists
        if (
            previous is not None
            and previous.recurring is not None
            and incoming.recurring is not None
            and incoming.recurring.enabled
        ):
            incoming = incoming.model_copy(update={
                "recurring": incoming.recurring.model_copy(
                    update={"next_run": previous.recurring.next_run}
                ),
            })

        if incoming.status == RecordStatus.OVERDUE and (
            previous is None or previous.status != RecordStatus.OVERDUE
        ):
            raise ForbiddenTransitionError(
                "Overdue is set by the overdue scan and cannot be chosen directly"
            )

        if previous is None:
            record = incoming.model_copy(update={"created_at": now, "updated_at": now})
            records.append(record)
        else:
            record = incoming.model_copy(update={
                "created_at": previous.created_at,
                "updated_at": max(now, previous.updated_at),
            })
            records = [record if r.id == record.id else r for r in records]

        await self._write_records(records)

        entries = [AuditEntryBuilder.record_saved(actor_role, record.id, previous is None)]
        if previous is not None and previous.status != record.status:
            entries.append(AuditEntryBuilder.status_changed(
                actor_role, record.id, previous.status.value, record.status.value
            ))
        await self._audit.log_many(entries)
        return record

    async def delete_record(
        self,
        record_id: str,
        actor_role: ActorRole = ActorRole.STAFF,
    ) -> None:
        """Remove a record. Raises RecordNotFoundError for unknown ids."""
        records = await self._load(self._now())
        self._find(records, record_id)
        await self._write_records([r for r in records if r.id != record_id])
        await self._audit.log(AuditEntryBuilder.record_deleted(actor_role, record_id))

    async def duplicate_record(
        self,
        record_id: str,
        actor_role: ActorRole = ActorRole.STAFF,
    ) -> FinanceRecord:
        """
        Copy a record under a fresh id.

        The copy's description gets a " (copy)" suffix and it is never a
        recurring source itself.
        """
        now = self._now()
        records = await self._load(now)
        source = self._find(records, record_id)

        copy = source.model_copy(update={
            "id": new_record_id(),
            "description": f"{source.description} (copy)".strip(),
            "created_at": now,
            "updated_at": now,
            "recurring": None,
        })
        records.append(copy)
        await self._write_records(records)
        await self._audit.log(
            AuditEntryBuilder.record_duplicated(actor_role, source.id, copy.id)
        )
        return copy

    # =========================================================================
    # IMPORT / EXPORT
    # =========================================================================

    async def import_csv(
        self,
        text: str,
        actor_role: ActorRole = ActorRole.STAFF,
    ) -> ImportResult:
        """
        Merge a CSV export into the ledger.

        Raises:
            InsufficientRowsError: no header plus data row
        """
        now = self._now()
        context = self._context(now)

        rows = parse_csv(text)
        report = normalize_records(rows, context)

        merged = merge_records(await self._load(now), report.records)
        await self._write_records(merged)
        await self._audit.log(
            AuditEntryBuilder.csv_imported(actor_role, len(report.records), report.dropped)
        )

        return ImportResult(
            imported=len(report.records),
            dropped=report.dropped,
            total=len(merged),
        )

    async def import_backup(
        self,
        text: str,
        actor_role: ActorRole = ActorRole.STAFF,
    ) -> ImportResult:
        """
        Merge a JSON backup: records by id, budgets by month, audit entries
        by id. Console settings in the backup replace the stored ones.

        Raises:
            MalformedInputError: the text is not JSON
            InvalidBackupError: the JSON is not an object
        """
        now = self._now()
        context = self._context(now)

        backup = parse_backup(text, context)

        merged = merge_records(await self._load(now), backup.records.records)
        await self._write_records(merged)

        if backup.budgets:
            budgets = merge_budgets(await self._read_budgets(), backup.budgets)
            await self._write_budgets(budgets)
        if backup.settings:
            await self._store.write(self._settings.settings_key, backup.settings)
        if backup.audit:
            await self._audit.absorb(backup.audit)

        await self._audit.log(AuditEntryBuilder.json_imported(
            actor_role, len(backup.records.records), backup.records.dropped
        ))

        return ImportResult(
            imported=len(backup.records.records),
            dropped=backup.records.dropped,
            total=len(merged),
            budgets_imported=len(backup.budgets),
        )

    async def export_csv(
        self,
        actor_role: ActorRole = ActorRole.STAFF,
        view: Optional[RecordFilter] = None,
    ) -> str:
        """Export all records, or those matching a saved view, as CSV."""
        records = await self._load(self._now())
        if view is not None:
            records = filter_records(records, view)

        text = write_csv(records_to_rows(records), CSV_COLUMNS)
        await self._audit.log(AuditEntryBuilder.exported(actor_role, "csv", len(records)))
        return text

    async def export_backup(self, actor_role: ActorRole = ActorRole.STAFF) -> str:
        """Export records, budgets, audit log and console settings as JSON."""
        now = self._now()
        records = await self._load(now)
        budgets = await self._read_budgets()
        audit = await self._audit.entries()
        settings = await self._store.read(self._settings.settings_key)

        text = build_backup(
            records,
            budgets=budgets,
            audit=audit,
            settings=settings if isinstance(settings, Mapping) else None,
            exported_at=now,
        )
        await self._audit.log(AuditEntryBuilder.exported(actor_role, "json", len(records)))
        return text

    # =========================================================================
    # BUDGETS
    # =========================================================================

    async def save_budget(
        self,
        raw: Any,
        actor_role: ActorRole = ActorRole.CEO,
    ) -> BudgetLine:
        """
        Insert or replace the budget line for one month.

        Raises:
            MalformedInputError: no valid YYYY-MM month in the input
        """
        if isinstance(raw, BaseModel):
            raw = raw.model_dump(mode="json", by_alias=True)
        line = normalize_budget(raw)
        if line is None:
            raise MalformedInputError("Budget input has no valid YYYY-MM month")

        budgets = merge_budgets(await self._read_budgets(), [line])
        await self._write_budgets(budgets)
        await self._audit.log(AuditEntryBuilder.budget_saved(actor_role, line.month))
        return line


def create_engine(
    backend: Literal["memory", "json", "sheets"] = "json",
    clock: Optional[Clock] = None,
) -> LedgerEngine:
    """
    Factory function to create a ledger engine.

    Args:
        backend: Which store to use. "memory" is for testing without
                 persistence. If the Google Sheets store cannot be set up,
                 the local JSON file store is used instead.
        clock: Optional source of the current instant

    Returns:
        A LedgerEngine with its audit sink on the same store
    """
    store: KeyValueStore
    if backend == "memory":
        store = InMemoryStore()
    elif backend == "sheets":
        try:
            store = GoogleSheetsStore()
        except Exception as e:
            # Storage not configured - continue with the local file
            logger.warning("sheets_store_unavailable", error=str(e))
            store = JsonFileStore()
    else:
        store = JsonFileStore()

    return LedgerEngine(store, clock=clock)
