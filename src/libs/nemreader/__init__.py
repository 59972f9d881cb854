"""
nemreader
~~~~~
Validate AEMO NEM12 (interval metering data) files and stream
meter readings, error events and audit records to injected sinks.

Files are scanned line by line; nothing but the current line is held
in memory.
"""

import logging
from logging import NullHandler

from .errors import ErrorKind, StructuralError
from .nem_objects import AuditRecord, ErrorEvent, MeterReading, NmiContext, ParserConfig, RecordType, ScanState
from .nem_reader import get_parser, read_nem_file
from .streaming import Nem12Parser, tokenize_line
from .version import __version__

__all__ = [
    "AuditRecord",
    "ErrorEvent",
    "ErrorKind",
    "MeterReading",
    "Nem12Parser",
    "NmiContext",
    "ParserConfig",
    "RecordType",
    "ScanState",
    "StructuralError",
    "__version__",
    "get_parser",
    "read_nem_file",
    "tokenize_line",
]

# Set default logging handler to avoid "No handler found" warnings.
logging.getLogger(__name__).addHandler(NullHandler())
