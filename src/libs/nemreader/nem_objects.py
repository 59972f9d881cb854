"""Record types, value objects and per-scan state for NEM12 parsing."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import NamedTuple

from .errors import ErrorKind


class RecordType(Enum):
    """NEM12 record indicators understood by the parser."""

    HEADER = "100"
    NMI_DETAILS = "200"
    INTERVAL_DATA = "300"
    IGNORED = "500"
    END_OF_DATA = "900"
    UNKNOWN = None

    @classmethod
    def from_code(cls, code: str) -> "RecordType":
        """Map a record indicator to its type; anything unrecognised is UNKNOWN."""
        try:
            return cls(code)
        except ValueError:
            return cls.UNKNOWN


class MeterReading(NamedTuple):
    """A single interval consumption value for one meter."""

    nmi: str
    timestamp: datetime
    consumption: float


class ErrorEvent(NamedTuple):
    """One violated rule on one line of one file."""

    file_name: str
    line_number: int
    record_type: str
    kind: ErrorKind
    reason: str

    def as_row(self) -> list[str]:
        """Columns written to the CSV error log."""
        return [self.file_name, str(self.line_number), self.record_type, self.reason]


class AuditRecord(NamedTuple):
    """Summary of a single successful parse call."""

    file_name: str
    rows_emitted: int
    error_count: int

    def __str__(self) -> str:
        return f"File: {self.file_name}, Rows inserted: {self.rows_emitted}, Errors: {self.error_count}"


@dataclass(frozen=True)
class ParserConfig:
    """Settings fixed for the lifetime of a parser."""

    delimiter: str = ","
    encoding: str = "utf-8"
    # Expected interval count before any 200 record has declared one
    default_interval_count: int = 48


@dataclass
class NmiContext:
    """Meter declared by the most recent well-formed 200 record."""

    current_id: str | None = None
    expected_intervals: int = 0


@dataclass
class ScanState:
    """Mutable state for one parse call, threaded through every record handler."""

    file_name: str
    nmi_context: NmiContext = field(default_factory=NmiContext)
    line_number: int = 0
    start_seen: bool = False
    end_seen: bool = False
    rows_emitted: int = 0
    error_count: int = 0

    @property
    def structurally_valid(self) -> bool:
        return self.start_seen and self.end_seen

    def audit_record(self) -> AuditRecord:
        return AuditRecord(
            file_name=self.file_name,
            rows_emitted=self.rows_emitted,
            error_count=self.error_count,
        )
