"""Error taxonomy for NEM12 parsing."""

from enum import Enum

ERR_HEADER_NOT_FIRST = "100 record must be first"
ERR_200_FIELDS = "Insufficient fields in 200 record"
ERR_200_INTERVAL_LENGTH = "Invalid interval length in 200 record"
ERR_300_FIELDS = "Insufficient fields in 300 record"
ERR_300_NO_NMI = "No NMI context for 300 record"
ERR_300_DATE = "Invalid date in 300 record"
ERR_300_NON_NUMERIC = "Non-numeric consumption value"
ERR_UNKNOWN_RECORD = "Unknown record type"
ERR_FILE_STRUCTURE = "File missing valid start (100) or end (900) record"


class ErrorKind(Enum):
    """Kinds of recoverable violations reported as error events."""

    RECORD_FIELD = "RecordFieldError"  # Too few columns, or a misplaced header
    CONTEXT = "ContextError"  # Interval data with no active NMI
    FORMAT = "FormatError"  # Unparseable date or interval count
    SCHEMA_MISMATCH = "SchemaMismatchError"  # Declared vs actual interval count
    VALUE = "ValueError"  # A single non-numeric interval value
    UNKNOWN_RECORD_TYPE = "UnknownRecordTypeError"


class StructuralError(Exception):
    """Raised at end of file when the 100 or 900 record was never seen."""

    def __init__(self, file_name: str, start_seen: bool, end_seen: bool) -> None:
        self.file_name = file_name
        self.start_seen = start_seen
        self.end_seen = end_seen
        super().__init__(f"{ERR_FILE_STRUCTURE}: {file_name}")


def schema_mismatch_reason(expected: int, actual: int) -> str:
    return f"Interval count mismatch: expected {expected}, got {actual}"
