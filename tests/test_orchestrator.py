"""
Integration tests for LedgerEngine.

Every flow runs against an in-memory store with a fixed clock.
"""

import json
import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from finance_ledger.codecs import CSV_COLUMNS
from finance_ledger.errors import (
    ForbiddenTransitionError,
    InsufficientRowsError,
    InvalidBackupError,
    MalformedInputError,
    RecordNotFoundError,
)
from finance_ledger.models import (
    ActorRole,
    AuditAction,
    Frequency,
    RecordStatus,
    Recurring,
    TransactionType,
)
from finance_ledger import orchestrator
from finance_ledger.orchestrator import LedgerEngine, create_engine
from finance_ledger.queries import RecordFilter
from finance_ledger.services.storage import ConnectionError as StoreConnectionError
from finance_ledger.services.storage import InMemoryStore


APRIL = datetime(2024, 4, 20, 9, 0, tzinfo=timezone.utc)


class RecordingStore(InMemoryStore):
    """In-memory store that remembers which keys were written."""

    def __init__(self, initial=None):
        super().__init__(initial)
        self.written_keys: list[str] = []

    async def write(self, key, value):
        self.written_keys.append(key)
        await super().write(key, value)


async def seed(store, settings, records):
    await store.write(settings.records_key, [r.to_store_dict() for r in records])


async def actions(engine):
    return [e.action for e in await engine.audit.entries()]


class TestBootstrap:
    """Tests for session load."""

    @pytest.mark.asyncio
    async def test_empty_store(self, engine, store):
        report = await engine.bootstrap(ActorRole.CEO)
        assert report.loaded == 0
        assert report.persisted is False
        assert await actions(engine) == [AuditAction.SESSION_LOADED]

    @pytest.mark.asyncio
    async def test_scan_and_recurrence_in_one_write(self, settings, make_record, now):
        """Test the full load pipeline writes each key once."""
        store = RecordingStore()
        await seed(store, settings, [
            make_record(id="late", status=RecordStatus.PENDING, due_date=date(2024, 6, 1)),
            make_record(id="rent", recurring=Recurring(freq=Frequency.MONTHLY,
                                                       next_run=date(2024, 6, 1))),
            make_record(id="paid", status=RecordStatus.PAID, due_date=date(2024, 1, 1)),
        ])
        store.written_keys.clear()
        engine = LedgerEngine(store, settings=settings, clock=lambda: now)

        report = await engine.bootstrap()

        assert report.marked_overdue == ["late"]
        assert len(report.spawned) == 1
        assert report.advanced_sources == ["rent"]
        assert report.persisted is True
        assert store.written_keys.count(settings.records_key) == 1
        assert store.written_keys.count(settings.audit_key) == 1
        assert await actions(engine) == [
            AuditAction.SESSION_LOADED,
            AuditAction.OVERDUE_SCAN,
            AuditAction.RECURRENCE_SPAWNED,
        ]

        records = {r.id: r for r in await engine.records()}
        assert records["late"].status == RecordStatus.OVERDUE
        assert records["paid"].status == RecordStatus.PAID
        assert records["rent"].recurring.next_run == date(2024, 7, 1)
        assert len(records) == 4

    @pytest.mark.asyncio
    async def test_second_bootstrap_is_noop(self, engine, store, settings, make_record):
        await seed(store, settings, [
            make_record(status=RecordStatus.PENDING, due_date=date(2024, 6, 1)),
            make_record(recurring=Recurring(next_run=date(2024, 4, 1))),
        ])
        first = await engine.bootstrap()
        second = await engine.bootstrap()

        assert first.persisted is True
        assert second.persisted is False
        assert second.marked_overdue == []
        assert second.spawned == []
        assert second.loaded == first.loaded + len(first.spawned)

    @pytest.mark.asyncio
    async def test_catch_up_instances_past_due_marked_in_same_load(
        self, store, settings, make_record
    ):
        """Test spawned instances already past due do not wait for the next load."""
        await seed(store, settings, [
            make_record(id="src", date=date(2024, 1, 1), due_date=date(2024, 1, 10),
                        recurring=Recurring(freq=Frequency.MONTHLY,
                                            next_run=date(2024, 2, 1))),
        ])
        engine = LedgerEngine(store, settings=settings, clock=lambda: APRIL)

        first = await engine.bootstrap()
        second = await engine.bootstrap()

        assert len(first.spawned) == 3
        assert set(first.spawned) <= set(first.marked_overdue)
        assert second.persisted is False
        assert second.marked_overdue == []
        spawned = [r for r in await engine.records() if r.id in first.spawned]
        assert {r.due_date for r in spawned} == {
            date(2024, 2, 10), date(2024, 3, 10), date(2024, 4, 10),
        }
        assert all(r.status == RecordStatus.OVERDUE for r in spawned)
        assert (await actions(engine)).count(AuditAction.OVERDUE_SCAN) == 1

    @pytest.mark.asyncio
    async def test_dropped_records_counted_and_cleaned(self, engine, store, settings):
        await store.write(settings.records_key, [{"id": "a"}, {"amount": 5}, "junk"])
        report = await engine.bootstrap()
        assert report.loaded == 1
        assert report.dropped == 2
        assert report.persisted is True
        assert len(await store.read(settings.records_key)) == 1

    @pytest.mark.asyncio
    async def test_duplicate_ids_folded(self, engine, store, settings, make_record):
        old = make_record(id="a", description="old")
        new = make_record(id="a", description="new", updated_at=old.updated_at + timedelta(hours=1))
        await seed(store, settings, [old, new])
        report = await engine.bootstrap()
        assert report.loaded == 1
        assert (await engine.records())[0].description == "new"


class TestSaveRecord:
    """Tests for single-record edits."""

    @pytest.mark.asyncio
    async def test_create_assigns_id(self, engine, now):
        record = await engine.save_record({"description": "Venue deposit", "amount": "5000"})
        assert record.id.startswith("tx_")
        assert record.created_at == now
        assert record.updated_at == now
        assert [r.id for r in await engine.records()] == [record.id]
        assert await actions(engine) == [AuditAction.RECORD_CREATED]

    @pytest.mark.asyncio
    async def test_update_keeps_created_at(self, engine, store, settings, make_record, now):
        original = make_record(id="a", status=RecordStatus.PLANNED)
        await seed(store, settings, [original])

        saved = await engine.save_record({"id": "a", "status": "Paid", "amount": "10"}, ActorRole.CEO)

        assert saved.created_at == original.created_at
        assert saved.updated_at == now
        assert saved.status == RecordStatus.PAID
        assert await actions(engine) == [AuditAction.RECORD_UPDATED, AuditAction.STATUS_CHANGED]

    @pytest.mark.asyncio
    async def test_updated_at_never_moves_back(self, engine, store, settings, make_record, now):
        future = now + timedelta(days=2)
        await seed(store, settings, [make_record(id="a", updated_at=future)])
        saved = await engine.save_record({"id": "a", "notes": "edited"})
        assert saved.updated_at == future

    @pytest.mark.asyncio
    async def test_user_cannot_choose_overdue(self, engine):
        with pytest.raises(ForbiddenTransitionError):
            await engine.save_record({"id": "a", "status": "Overdue"})

    @pytest.mark.asyncio
    async def test_already_overdue_can_be_edited(self, engine, store, settings, make_record):
        await seed(store, settings, [make_record(id="a", status=RecordStatus.OVERDUE)])
        saved = await engine.save_record({"id": "a", "status": "Overdue", "notes": "chased"})
        assert saved.notes == "chased"

    @pytest.mark.parametrize("schedule", [
        {"enabled": True, "freq": "Monthly"},
        {"enabled": True, "freq": "Monthly", "nextRun": "2024-02-15"},
    ])
    @pytest.mark.asyncio
    async def test_edit_keeps_schedule_pointer(self, store, settings, make_record, schedule):
        """Test a form edit cannot reset or rewind next_run on a recurring source."""
        await seed(store, settings, [
            make_record(id="src", date=date(2024, 1, 15),
                        recurring=Recurring(freq=Frequency.MONTHLY,
                                            next_run=date(2024, 2, 15))),
        ])
        engine = LedgerEngine(store, settings=settings, clock=lambda: APRIL)
        first = await engine.bootstrap()

        saved = await engine.save_record({
            "id": "src",
            "amount": "2000",
            "date": "2024-01-15",
            "recurring": schedule,
        })
        second = await engine.bootstrap()

        assert len(first.spawned) == 3
        assert saved.amount == Decimal("2000")
        assert saved.recurring.next_run == date(2024, 5, 15)
        assert second.spawned == []

    @pytest.mark.asyncio
    async def test_edit_can_switch_schedule_off(self, engine, store, settings, make_record):
        await seed(store, settings, [
            make_record(id="src", recurring=Recurring(next_run=date(2024, 7, 1))),
        ])
        saved = await engine.save_record({"id": "src", "recurring": {"enabled": False}})
        assert saved.recurring is None

    @pytest.mark.asyncio
    async def test_rates_are_clamped(self, engine):
        saved = await engine.save_record({"id": "a", "gstRate": "99", "tdsRate": "-4"})
        assert saved.gst_rate == Decimal("28")
        assert saved.tds_rate == Decimal("0")

    @pytest.mark.asyncio
    async def test_not_a_record(self, engine):
        with pytest.raises(MalformedInputError):
            await engine.save_record("not a record")


class TestDeleteAndDuplicate:
    """Tests for delete and duplicate."""

    @pytest.mark.asyncio
    async def test_delete(self, engine, store, settings, make_record):
        await seed(store, settings, [make_record(id="a"), make_record(id="b")])
        await engine.delete_record("a")
        assert [r.id for r in await engine.records()] == ["b"]
        assert await actions(engine) == [AuditAction.RECORD_DELETED]

    @pytest.mark.asyncio
    async def test_delete_unknown(self, engine):
        with pytest.raises(RecordNotFoundError) as exc_info:
            await engine.delete_record("ghost")
        assert exc_info.value.record_id == "ghost"

    @pytest.mark.asyncio
    async def test_duplicate(self, engine, store, settings, make_record, now):
        source = make_record(
            id="a",
            description="Retainer",
            recurring=Recurring(next_run=date(2024, 7, 1)),
        )
        await seed(store, settings, [source])

        copy = await engine.duplicate_record("a")

        assert copy.id != "a"
        assert copy.description == "Retainer (copy)"
        assert copy.recurring is None
        assert copy.created_at == copy.updated_at == now
        assert copy.amount == source.amount
        assert len(await engine.records()) == 2

    @pytest.mark.asyncio
    async def test_duplicate_unknown(self, engine):
        with pytest.raises(RecordNotFoundError):
            await engine.duplicate_record("ghost")


class TestCsvImportExport:
    """Tests for CSV flows."""

    @pytest.mark.asyncio
    async def test_import_merges_last_write_wins(self, engine, store, settings, make_record):
        await seed(store, settings, [
            make_record(id="a", description="newer local",
                        updated_at=datetime(2024, 6, 10, tzinfo=timezone.utc)),
        ])
        text = (
            "id,description,amount,updatedAt\n"
            "a,older import,1,2024-06-05T00:00:00Z\n"
            "b,fresh,2,2024-06-05T00:00:00Z\n"
            ",no id,3,\n"
        )

        result = await engine.import_csv(text, ActorRole.STAFF)

        assert result.imported == 2
        assert result.dropped == 1
        assert result.total == 2
        records = {r.id: r for r in await engine.records()}
        assert records["a"].description == "newer local"
        assert records["b"].description == "fresh"
        assert await actions(engine) == [AuditAction.CSV_IMPORTED]

    @pytest.mark.asyncio
    async def test_import_needs_two_rows(self, engine):
        with pytest.raises(InsufficientRowsError):
            await engine.import_csv("id,amount")

    @pytest.mark.asyncio
    async def test_export_then_import_round_trip(self, engine, store, settings, make_record, now):
        records = [
            make_record(id="a", type=TransactionType.INCOME, description='Fee, "final"',
                        gst_rate=Decimal("18")),
            make_record(id="b", notes="multi\nline",
                        recurring=Recurring(freq=Frequency.YEARLY, next_run=date(2025, 1, 1))),
        ]
        await seed(store, settings, records)

        text = await engine.export_csv()
        assert text.split("\n", 1)[0] == ",".join(CSV_COLUMNS)

        fresh = LedgerEngine(InMemoryStore(), settings=settings, clock=lambda: now)
        result = await fresh.import_csv(text)

        assert result.imported == 2
        assert [r.to_store_dict() for r in await fresh.records()] == [
            r.to_store_dict() for r in records
        ]

    @pytest.mark.asyncio
    async def test_export_with_view(self, engine, store, settings, make_record):
        await seed(store, settings, [
            make_record(id="a", type=TransactionType.INCOME),
            make_record(id="b", type=TransactionType.EXPENSE),
        ])
        text = await engine.export_csv(view=RecordFilter(type=TransactionType.INCOME))
        lines = text.split("\n")
        assert len(lines) == 2
        assert lines[1].startswith("a,")
        assert await actions(engine) == [AuditAction.CSV_EXPORTED]


class TestBackupImportExport:
    """Tests for JSON backup flows."""

    @pytest.mark.asyncio
    async def test_backup_round_trip(self, engine, store, settings, make_record, now):
        await seed(store, settings, [make_record(id="a"), make_record(id="b")])
        await store.write(settings.settings_key, {"theme": "dark"})
        await engine.save_budget({"month": "2024-06", "revenueTarget": "5000"})

        text = await engine.export_backup(ActorRole.CEO)
        payload = json.loads(text)
        assert len(payload["txs"]) == 2
        assert payload["settings"] == {"theme": "dark"}

        fresh_store = InMemoryStore()
        fresh = LedgerEngine(fresh_store, settings=settings, clock=lambda: now)
        result = await fresh.import_backup(text)

        assert result.imported == 2
        assert result.total == 2
        assert result.budgets_imported == 1
        assert (await fresh.budgets())[0].revenue_target == Decimal("5000")
        assert await fresh_store.read(settings.settings_key) == {"theme": "dark"}
        imported_actions = await actions(fresh)
        assert AuditAction.BUDGET_SAVED in imported_actions
        assert imported_actions[-1] == AuditAction.JSON_IMPORTED

    @pytest.mark.asyncio
    async def test_backup_with_missing_keys(self, engine):
        result = await engine.import_backup('{"version": "finance-ledger-export-v1"}')
        assert result.imported == 0
        assert result.total == 0

    @pytest.mark.asyncio
    async def test_backup_not_an_object(self, engine):
        with pytest.raises(InvalidBackupError):
            await engine.import_backup("[]")

    @pytest.mark.asyncio
    async def test_backup_not_json(self, engine):
        with pytest.raises(MalformedInputError):
            await engine.import_backup("{oops")


class TestBudgets:
    """Tests for monthly budgets."""

    @pytest.mark.asyncio
    async def test_save_budget_clamps_and_replaces(self, engine):
        await engine.save_budget({"month": "2024-06", "grossMarginTargetPct": "120"})
        await engine.save_budget({"month": "2024-06", "expenseCap": "900"})
        await engine.save_budget({"month": "2024-05"})

        budgets = await engine.budgets()
        assert [line.month for line in budgets] == ["2024-05", "2024-06"]
        assert budgets[1].expense_cap == Decimal("900")
        assert budgets[1].gross_margin_target_pct == Decimal("0")

    @pytest.mark.asyncio
    async def test_first_save_clamps_margin(self, engine):
        line = await engine.save_budget({"month": "2024-06", "grossMarginTargetPct": "120"})
        assert line.gross_margin_target_pct == Decimal("80")

    @pytest.mark.asyncio
    async def test_invalid_month(self, engine):
        with pytest.raises(MalformedInputError):
            await engine.save_budget({"month": "June"})


class TestCreateEngine:
    """Tests for the engine factory."""

    @pytest.mark.asyncio
    async def test_memory_backend(self, now):
        engine = create_engine("memory", clock=lambda: now)
        saved = await engine.save_record({"id": "a", "amount": "5"})
        assert [r.id for r in await engine.records()] == [saved.id]

    @pytest.mark.asyncio
    async def test_json_backend_writes_configured_file(self, monkeypatch, tmp_path, settings, now):
        path = tmp_path / "ledger.json"
        monkeypatch.setenv("LEDGER_STORE_PATH", str(path))

        engine = create_engine("json", clock=lambda: now)
        await engine.save_record({"id": "a", "amount": "5"})

        stored = json.loads(path.read_text(encoding="utf-8"))
        assert [r["id"] for r in stored[settings.records_key]] == ["a"]

    @pytest.mark.asyncio
    async def test_sheets_falls_back_to_json_file(self, monkeypatch, tmp_path, now):
        """Test an unreachable Sheets store does not block the engine."""
        def unreachable():
            raise StoreConnectionError("Failed to connect to Google Sheets")

        path = tmp_path / "fallback.json"
        monkeypatch.setattr(orchestrator, "GoogleSheetsStore", unreachable)
        monkeypatch.setenv("LEDGER_STORE_PATH", str(path))

        engine = create_engine("sheets", clock=lambda: now)
        report = await engine.bootstrap()

        assert report.loaded == 0
        assert path.exists()
