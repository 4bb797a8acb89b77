"""
Audit Sink

DESIGN DECISION: Every mutating action in the ledger is logged.
This provides:
1. Traceability of who changed what (CEO, Staff, or the engine itself)
2. A record of engine passes run on session load
3. History that travels with JSON backups

The audit sink:
- Mirrors each entry to the structured log before persisting it
- Gracefully handles failures (a failed audit write never breaks the
  action being audited)
- Keeps only the most recent N entries; older ones are dropped, not archived
"""

from typing import Iterable, Optional

import structlog

from finance_ledger.config import LedgerSettings, get_settings
from finance_ledger.models.audit import ActorRole, AuditAction, AuditEntry
from finance_ledger.normalization.normalizer import normalize_audit_entry
from finance_ledger.services.storage.interface import KeyValueStore


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def bound(entries: Iterable[AuditEntry], limit: int) -> list[AuditEntry]:
    """Keep the `limit` most recent entries, oldest first."""
    entries = list(entries)
    if limit <= 0:
        return []
    return entries[-limit:]


class AuditSink:
    """
    Central audit logging service.

    Logs entries both to:
    1. Structured local log (for debugging)
    2. The ledger store, under the audit key (bounded)
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        """
        Initialize the audit sink.

        Args:
            store: Storage backend for persistence.
                   If None, only logs locally.
            settings: Ledger settings; read from the environment if None.
        """
        self._store = store
        self._settings = settings or get_settings().ledger
        self._logger = structlog.get_logger(__name__)

    @property
    def limit(self) -> int:
        return self._settings.audit_max_entries

    async def entries(self) -> list[AuditEntry]:
        """Return the persisted log, oldest first. Unreadable entries are skipped."""
        if self._store is None:
            return []
        raw = await self._store.read(self._settings.audit_key)
        if not isinstance(raw, list):
            return []
        return [
            entry
            for entry in (normalize_audit_entry(item) for item in raw)
            if entry is not None
        ]

    async def record(
        self,
        action: AuditAction,
        detail: str,
        actor_role: ActorRole = ActorRole.SYSTEM,
    ) -> AuditEntry:
        """Build an entry for `action` and log it."""
        entry = AuditEntry(action=action, detail=detail[:500], actor_role=actor_role)
        await self.log(entry)
        return entry

    async def log(self, entry: AuditEntry) -> bool:
        """
        Log an audit entry.

        Always logs locally. Persists to storage if available.

        Returns True if the storage write succeeded (or no storage configured).
        """
        return await self.log_many([entry])

    async def log_many(self, entries: Iterable[AuditEntry]) -> bool:
        """Log several entries with a single store write."""
        entries = list(entries)
        for entry in entries:
            self._logger.info("audit_event", **entry.to_log_dict())
        return await self._persist(entries)

    async def absorb(self, incoming: Iterable[AuditEntry]) -> bool:
        """
        Fold entries from a backup into the log.

        Entries already present (same id) are skipped. The combined log is
        ordered by timestamp and bounded like any other write.
        """
        return await self._persist(list(incoming), sort=True)

    async def _persist(self, new_entries: list[AuditEntry], sort: bool = False) -> bool:
        if self._store is None or not new_entries:
            return True
        try:
            current = await self.entries()
            known = {entry.id for entry in current}
            combined = current + [e for e in new_entries if e.id not in known]
            if sort:
                combined.sort(key=lambda e: e.at)
            kept = bound(combined, self.limit)
            await self._store.write(
                self._settings.audit_key,
                [e.to_store_dict() for e in kept],
            )
            return True
        except Exception as e:
            # Log failure but don't raise
            self._logger.error(
                "audit_storage_failed",
                error=str(e),
                entries=len(new_entries),
            )
            return False
