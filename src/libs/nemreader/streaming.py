"""
Streaming NEM12 parser.

The parser scans a file one physical line at a time, tracks the active
NMI across records and hands every accepted reading, every rejected unit
of work and the final audit summary to injected sinks as soon as they are
produced. Only the current line is ever held in memory.
"""

import io
import logging
import math
import re
import zipfile
from collections.abc import Callable, Generator
from contextlib import contextmanager
from datetime import date, datetime, time
from pathlib import Path
from typing import TextIO

from .errors import (
    ERR_200_FIELDS,
    ERR_200_INTERVAL_LENGTH,
    ERR_300_DATE,
    ERR_300_FIELDS,
    ERR_300_NO_NMI,
    ERR_300_NON_NUMERIC,
    ERR_HEADER_NOT_FIRST,
    ERR_UNKNOWN_RECORD,
    ErrorKind,
    StructuralError,
    schema_mismatch_reason,
)
from .nem_objects import AuditRecord, ErrorEvent, MeterReading, NmiContext, ParserConfig, RecordType, ScanState

log = logging.getLogger(__name__)

HOURS_PER_DAY = 24
MIN_RECORD_FIELDS = 3

# Extended calendar form only, no basic (20250912) or week (2025-W37-5) dates
ISO_DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)

ReadingSink = Callable[[MeterReading], None]
ErrorSink = Callable[[ErrorEvent], None]
AuditSink = Callable[[str], None]


def tokenize_line(line: str, delimiter: str = ",") -> list[str]:
    """
    Split one physical line into trimmed fields.

    Trailing empty fields are dropped but at least one field is always
    returned, so a blank line yields ``[""]``.
    """
    fields = line.rstrip("\r\n").split(delimiter)
    while len(fields) > 1 and fields[-1] == "":
        fields.pop()
    return [f.strip() for f in fields]


class Nem12Parser:
    """
    Record-type state machine for NEM12 files.

    Args:
        error_sink: Receives one ErrorEvent per violated rule
        config: Delimiter, encoding and initial interval count
    """

    def __init__(self, error_sink: ErrorSink, config: ParserConfig | None = None) -> None:
        self.error_sink = error_sink
        self.config = config or ParserConfig()

    def parse(self, file_name: str, reading_sink: ReadingSink, audit_sink: AuditSink) -> AuditRecord:
        """
        Parse a NEM12 file, streaming readings and errors as they are found.

        Args:
            file_name: Path to NEM12 file (CSV or single-member ZIP)
            reading_sink: Receives accepted readings in file order
            audit_sink: Receives one summary line if the file is structurally valid

        Returns:
            The audit record for this call

        Raises:
            StructuralError: If no 100 or no 900 record was seen. Readings
                already delivered are not retracted.
        """
        state = ScanState(
            file_name=file_name,
            nmi_context=NmiContext(expected_intervals=self.config.default_interval_count),
        )

        with _open_nem_file(file_name, self.config.encoding) as file_handle:
            for line_number, line in enumerate(file_handle, start=1):
                state.line_number = line_number
                self._dispatch(state, tokenize_line(line, self.config.delimiter), reading_sink)

        if not state.structurally_valid:
            log.error(
                f"Structural check failed for {file_name}: start_seen={state.start_seen}, end_seen={state.end_seen}"
            )
            raise StructuralError(file_name, state.start_seen, state.end_seen)

        audit = state.audit_record()
        audit_sink(str(audit))
        return audit

    def _dispatch(self, state: ScanState, fields: list[str], reading_sink: ReadingSink) -> None:
        match RecordType.from_code(fields[0]):
            case RecordType.HEADER:
                state.start_seen = True
                if state.line_number != 1:
                    self._emit_error(state, fields[0], ErrorKind.RECORD_FIELD, ERR_HEADER_NOT_FIRST)
            case RecordType.NMI_DETAILS:
                self._handle_nmi_details(state, fields)
            case RecordType.INTERVAL_DATA:
                self._handle_interval_data(state, fields, reading_sink)
            case RecordType.IGNORED:
                pass
            case RecordType.END_OF_DATA:
                state.end_seen = True
            case RecordType.UNKNOWN:
                self._emit_error(state, fields[0], ErrorKind.UNKNOWN_RECORD_TYPE, ERR_UNKNOWN_RECORD)

    def _handle_nmi_details(self, state: ScanState, fields: list[str]) -> None:
        """
        Handle an NMI details record (200).

        Format: RecordIndicator,NMI,IntervalCount

        The NMI is switched before the count is parsed, so an unparseable
        count leaves the previous declaration's count in force.
        """
        if len(fields) < MIN_RECORD_FIELDS:
            self._emit_error(state, fields[0], ErrorKind.RECORD_FIELD, ERR_200_FIELDS)
            return

        state.nmi_context.current_id = fields[1]
        interval_count = _parse_interval_count(fields[2])
        if interval_count is None:
            self._emit_error(state, fields[0], ErrorKind.FORMAT, ERR_200_INTERVAL_LENGTH)
        else:
            state.nmi_context.expected_intervals = interval_count

    def _handle_interval_data(self, state: ScanState, fields: list[str], reading_sink: ReadingSink) -> None:
        """
        Handle an interval data record (300).

        Format: RecordIndicator,IntervalDate,IntervalValue1...IntervalValueN

        A column count that disagrees with the active 200 record rejects the
        whole row; a bad value only skips that value.
        """
        record_type = fields[0]
        context = state.nmi_context

        if len(fields) < MIN_RECORD_FIELDS:
            self._emit_error(state, record_type, ErrorKind.RECORD_FIELD, ERR_300_FIELDS)
            return

        if context.current_id is None:
            self._emit_error(state, record_type, ErrorKind.CONTEXT, ERR_300_NO_NMI)
            return

        interval_date = _parse_date(fields[1])
        if interval_date is None:
            self._emit_error(state, record_type, ErrorKind.FORMAT, ERR_300_DATE)
            return

        column_count = len(fields) - 2
        if column_count != context.expected_intervals:
            self._emit_error(
                state,
                record_type,
                ErrorKind.SCHEMA_MISMATCH,
                schema_mismatch_reason(context.expected_intervals, column_count),
            )
            return

        for i, val in enumerate(fields[2:]):
            consumption = _parse_reading_value(val)
            if consumption is None:
                self._emit_error(state, record_type, ErrorKind.VALUE, ERR_300_NON_NUMERIC)
                continue

            reading_sink(
                MeterReading(
                    nmi=context.current_id,
                    timestamp=datetime.combine(interval_date, _interval_start(i, column_count)),
                    consumption=consumption,
                )
            )
            state.rows_emitted += 1

    def _emit_error(self, state: ScanState, record_type: str, kind: ErrorKind, reason: str) -> None:
        state.error_count += 1
        event = ErrorEvent(
            file_name=state.file_name,
            line_number=state.line_number,
            record_type=record_type,
            kind=kind,
            reason=reason,
        )
        try:
            self.error_sink(event)
        except Exception:
            log.warning(f"Failed to deliver error event {event}", exc_info=True)


@contextmanager
def _open_nem_file(file_path: str, encoding: str = "utf-8") -> Generator[TextIO]:
    """
    Open NEM file (CSV or ZIP) and return a text file handle.

    Supports both plain CSV files and ZIP archives containing a single CSV.
    """
    if zipfile.is_zipfile(file_path):
        with zipfile.ZipFile(file_path) as zf:
            files = zf.namelist()
            if len(files) != 1:
                raise OSError(f"ZIP must contain exactly one file, found {len(files)}")

            with zf.open(files[0]) as binary_file:
                # Wrap binary stream in text wrapper for line-by-line reading
                yield io.TextIOWrapper(binary_file, encoding=encoding, errors="replace")
    else:
        with Path(file_path).open(encoding=encoding, errors="replace") as f:
            yield f


def _interval_start(index: int, column_count: int) -> time:
    """Hour-bucketed start time for the index-th of column_count values."""
    return time(hour=(HOURS_PER_DAY * index) // column_count)


def _parse_date(record: str) -> date | None:
    """Parse an ISO-8601 calendar date (YYYY-MM-DD)."""
    if not ISO_DATE_PATTERN.fullmatch(record):
        return None
    try:
        return date.fromisoformat(record)
    except ValueError:
        return None


def _parse_reading_value(val: str) -> float | None:
    """Convert reading value to a finite float."""
    if not _is_plain_number(val):
        return None
    try:
        value = float(val)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def _parse_interval_count(val: str) -> int | None:
    if not _is_plain_number(val):
        return None
    try:
        return int(val)
    except ValueError:
        return None


def _is_plain_number(val: str) -> bool:
    # float() and int() also take digit separators and non-ASCII digits
    return val.isascii() and "_" not in val
