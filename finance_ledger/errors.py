"""
Exception hierarchy for the Finance Ledger Engine.

Nothing raised here is fatal to the surrounding application. Callers
catch these at the boundary where a user action started (an import,
an edit, a session load) and report them.
"""


class LedgerError(Exception):
    """Base exception for all ledger engine errors."""
    pass


class MalformedInputError(LedgerError):
    """Input text could not be parsed at all (bad JSON, broken CSV)."""
    pass


class InsufficientRowsError(MalformedInputError):
    """
    CSV input had fewer than two non-empty rows.

    Raised instead of returning an empty list so callers can tell
    "nothing to import" apart from "the file is not a ledger export".
    """

    def __init__(self, row_count: int):
        self.row_count = row_count
        super().__init__(
            f"CSV needs a header row and at least one data row (got {row_count} row(s))"
        )


class InvalidBackupError(MalformedInputError):
    """JSON backup parsed but is not an object."""
    pass


class RecordNotFoundError(LedgerError):
    """No record with the given id exists in the ledger."""

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Record not found: {record_id}")


class ForbiddenTransitionError(LedgerError):
    """A user edit tried to write a status the engine owns."""
    pass
