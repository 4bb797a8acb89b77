"""
Finance Ledger Engine - Source Package

The rules that turn untyped, persisted, possibly stale ledger data into a
consistent set of financial records: normalization, tax computation,
overdue derivation, recurring instances, CSV/JSON import-export and
last-write-wins merge.

DESIGN PRINCIPLES:
1. One boundary from untyped to typed data (the normalizer)
2. Engine passes are pure and safe to run twice
3. Malformed input fails visibly; one bad record never aborts a batch
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Finance Ledger Team"
