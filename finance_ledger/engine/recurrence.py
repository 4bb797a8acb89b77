"""
Recurrence Engine

Instantiates recurring records that have come due and advances their
schedules.

For every source with `recurring.enabled` and `next_run <= today`:
1. Spawn an instance dated `next_run`: fresh id, status Planned,
   invoice/reference cleared, no `recurring` of its own
2. Advance the source's `next_run` by one period (calendar months for
   Monthly/Quarterly/Yearly, so Jan 31 -> Feb 29 -> Mar 29)
3. Return spawned instances and advanced sources in one record set, which
   the caller persists with a single write

A source that is several periods behind spawns one instance per missed
period in the same pass, so `next_run` always ends up after `today` and a
second run is a no-op.
"""

from datetime import date, datetime, timedelta
from typing import Callable, Iterable, Optional

import structlog
from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, Field

from finance_ledger.engine.merge import merge_records
from finance_ledger.models.record import (
    FinanceRecord,
    Frequency,
    RecordStatus,
    new_record_id,
    utc_now,
)


logger = structlog.get_logger(__name__)

MONTHS_PER_PERIOD = {
    Frequency.MONTHLY: 1,
    Frequency.QUARTERLY: 3,
    Frequency.YEARLY: 12,
}


class RecurrenceResult(BaseModel):
    records: list[FinanceRecord] = Field(default_factory=list)
    spawned: list[FinanceRecord] = Field(default_factory=list)
    advanced: list[str] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.spawned or self.advanced)


def advance_date(current: date, freq: Frequency) -> date:
    """
    Move a schedule date forward by one period.

    Month arithmetic clamps to the last day of a shorter month and does not
    remember the original day: 2024-01-31 -> 2024-02-29 -> 2024-03-29.
    """
    if freq == Frequency.WEEKLY:
        return current + timedelta(days=7)
    return current + relativedelta(months=MONTHS_PER_PERIOD[freq])


def spawn_instance(
    source: FinanceRecord,
    run_date: date,
    now: datetime,
    id_factory: Callable[[], str] = new_record_id,
) -> FinanceRecord:
    """Build one instance of a recurring source dated `run_date`."""
    due_date = None
    if source.due_date is not None:
        due_date = run_date + (source.due_date - source.date)

    return source.model_copy(update={
        "id": id_factory(),
        "date": run_date,
        "due_date": due_date,
        "status": RecordStatus.PLANNED,
        "created_at": now,
        "updated_at": now,
        "invoice_no": None,
        "reference_id": None,
        "recurring": None,
    })


def run_recurrence(
    records: Iterable[FinanceRecord],
    today: date,
    now: Optional[datetime] = None,
    max_catch_up: int = 120,
    id_factory: Callable[[], str] = new_record_id,
) -> RecurrenceResult:
    """
    Spawn every due instance and advance schedules.

    Args:
        records: The normalized record set
        today: The session's calendar date
        now: Instant used for created_at/updated_at stamps
        max_catch_up: Most instances a single source may spawn in one pass;
            past that the schedule is moved beyond `today` without spawning
        id_factory: Source of fresh ids

    Returns:
        RecurrenceResult with the merged record set, the spawned instances
        and the ids of sources whose schedule moved
    """
    now = now or utc_now()
    result = RecurrenceResult()
    updated: list[FinanceRecord] = []

    for record in records:
        schedule = record.recurring
        if (
            schedule is None
            or not schedule.enabled
            or record.status == RecordStatus.CANCELLED
        ):
            updated.append(record)
            continue

        next_run = schedule.next_run
        if next_run is None:
            # First sighting: the source itself is the first occurrence.
            next_run = advance_date(record.date, schedule.freq)

        spawned_here = 0
        while next_run <= today:
            if spawned_here >= max_catch_up:
                logger.warning(
                    "recurrence_catch_up_capped",
                    source_id=record.id,
                    cap=max_catch_up,
                )
                while next_run <= today:
                    next_run = advance_date(next_run, schedule.freq)
                break
            result.spawned.append(spawn_instance(record, next_run, now, id_factory))
            spawned_here += 1
            next_run = advance_date(next_run, schedule.freq)

        if next_run != schedule.next_run:
            record = record.model_copy(update={
                "recurring": schedule.model_copy(update={"next_run": next_run}),
                "updated_at": max(now, record.updated_at),
            })
            result.advanced.append(record.id)
        updated.append(record)

    result.records = merge_records(updated, result.spawned)

    if result.changed:
        logger.info(
            "recurrence_spawned",
            spawned=len(result.spawned),
            sources=len(result.advanced),
            today=today.isoformat(),
        )
    return result
