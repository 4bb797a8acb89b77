"""Normalization package: the only place untyped data becomes typed."""

from finance_ledger.normalization.normalizer import (
    ENUM_DEFAULTS,
    FIELD_ALIASES,
    NormalizationContext,
    NormalizationReport,
    normalize_audit_entry,
    normalize_budget,
    normalize_record,
    normalize_records,
    parse_bool,
    parse_date,
    parse_decimal,
    parse_instant,
)

__all__ = [
    "ENUM_DEFAULTS",
    "FIELD_ALIASES",
    "NormalizationContext",
    "NormalizationReport",
    "normalize_audit_entry",
    "normalize_budget",
    "normalize_record",
    "normalize_records",
    "parse_bool",
    "parse_date",
    "parse_decimal",
    "parse_instant",
]
