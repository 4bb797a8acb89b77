"""Audit logging package."""

from finance_ledger.audit.logger import AuditSink, bound

__all__ = ["AuditSink", "bound"]
