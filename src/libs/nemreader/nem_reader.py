"""Parser selection and convenience readers."""

from .nem_objects import AuditRecord, MeterReading, ParserConfig
from .streaming import ErrorSink, Nem12Parser

SUPPORTED_FILE_TYPES = ("NEM12",)


def get_parser(file_type: str, error_sink: ErrorSink, config: ParserConfig | None = None) -> Nem12Parser:
    """
    Return a parser for the given metering file type.

    Raises:
        ValueError: If the file type is not supported
    """
    if file_type.upper() == "NEM12":
        return Nem12Parser(error_sink, config)
    raise ValueError(f"Unknown file type: {file_type}")


def read_nem_file(
    file_name: str,
    error_sink: ErrorSink,
    config: ParserConfig | None = None,
) -> tuple[list[MeterReading], AuditRecord]:
    """
    Parse a whole NEM12 file into memory.

    Intended for small files and tests; use Nem12Parser.parse with a
    streaming sink for anything large.
    """
    readings: list[MeterReading] = []
    audit = Nem12Parser(error_sink, config).parse(file_name, readings.append, lambda _line: None)
    return readings, audit
