"""
Shared fixtures for the ledger tests.

Every test runs against an in-memory store and a fixed clock.
No network access, no files outside tmp_path.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from itertools import count

import pytest

from finance_ledger.config import LedgerSettings
from finance_ledger.models import FinanceRecord, TransactionType
from finance_ledger.orchestrator import LedgerEngine
from finance_ledger.services.storage import InMemoryStore


NOW = datetime(2024, 6, 15, 9, 30, tzinfo=timezone.utc)
TODAY = NOW.date()
EARLIER = datetime(2024, 6, 1, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def make_record():
    """Factory for valid records; keyword overrides win."""
    ids = count(1)

    def _make(**overrides) -> FinanceRecord:
        fields = {
            "id": f"tx_{next(ids)}",
            "type": TransactionType.EXPENSE,
            "amount": Decimal("1000"),
            "date": date(2024, 6, 1),
            "created_at": EARLIER,
            "updated_at": EARLIER,
        }
        fields.update(overrides)
        return FinanceRecord(**fields)

    return _make


@pytest.fixture
def settings() -> LedgerSettings:
    return LedgerSettings(audit_max_entries=200, overdue_rule_days=0)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def engine(store, settings) -> LedgerEngine:
    return LedgerEngine(store, settings=settings, clock=lambda: NOW)
