"""
Overdue Scanner

Derives the Overdue status from due dates and a grace period.

State machine:
    Planned / Pending --(today - due_date > grace)--> Overdue
    Paid, Cancelled: terminal, never left
    Overdue: re-scanning is a no-op

The scanner runs once per session load. It returns the ids it moved so the
caller can write one batched audit entry, and only when something changed.
"""

from datetime import date, datetime
from typing import Iterable, Optional

import structlog
from pydantic import BaseModel, Field

from finance_ledger.models.record import FinanceRecord, RecordStatus, utc_now


logger = structlog.get_logger(__name__)

SCANNABLE_STATUSES = frozenset({RecordStatus.PLANNED, RecordStatus.PENDING})


class OverdueScanResult(BaseModel):
    records: list[FinanceRecord] = Field(default_factory=list)
    transitioned: list[str] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.transitioned)


def is_overdue(record: FinanceRecord, today: date, overdue_rule_days: int = 0) -> bool:
    """True if the record should move to Overdue on `today`."""
    if record.status not in SCANNABLE_STATUSES or record.due_date is None:
        return False
    return (today - record.due_date).days > overdue_rule_days


def scan_overdue(
    records: Iterable[FinanceRecord],
    today: date,
    overdue_rule_days: int = 0,
    now: Optional[datetime] = None,
) -> OverdueScanResult:
    """
    Mark past-due records as Overdue.

    Args:
        records: The normalized record set
        today: The session's calendar date
        overdue_rule_days: Grace period in days after the due date
        now: Instant stamped on `updated_at` of transitioned records

    Returns:
        OverdueScanResult with the full record set (order preserved) and
        the ids that transitioned
    """
    now = now or utc_now()
    result = OverdueScanResult()

    for record in records:
        if is_overdue(record, today, overdue_rule_days):
            record = record.model_copy(update={
                "status": RecordStatus.OVERDUE,
                "updated_at": max(now, record.updated_at),
            })
            result.transitioned.append(record.id)
        result.records.append(record)

    if result.changed:
        logger.info(
            "overdue_scan_completed",
            transitioned=len(result.transitioned),
            today=today.isoformat(),
            grace_days=overdue_rule_days,
        )
    return result
