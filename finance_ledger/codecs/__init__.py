"""Import/export codecs: quoted CSV and JSON backups."""

from finance_ledger.codecs.backup import (
    BACKUP_VERSION,
    ParsedBackup,
    build_backup,
    parse_backup,
)
from finance_ledger.codecs.csv_codec import (
    CSV_COLUMNS,
    parse_csv,
    record_to_row,
    records_to_rows,
    write_csv,
)

__all__ = [
    "BACKUP_VERSION",
    "CSV_COLUMNS",
    "ParsedBackup",
    "build_backup",
    "parse_backup",
    "parse_csv",
    "record_to_row",
    "records_to_rows",
    "write_csv",
]
