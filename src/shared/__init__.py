"""
Shared utilities for NEM12 Ingester.

This package provides configuration, error sinks, the reading store and
the constants used across the file processing pipeline.
"""

from shared.common import (
    AWS_REGION,
    BUCKET_NAME,
    INBOX_DIR,
    IRREVFILES_DIR,
    PARSE_ERR_DIR,
    PARSE_ERROR_LOG_GROUP,
    PROCESSED_DIR,
)
from shared.config import IngesterConfig, load_config
from shared.error_log import CloudWatchErrorLog, CsvErrorLog
from shared.reading_store import BatchingReadingSink, MeterReadingStore

__all__ = [
    "AWS_REGION",
    "BUCKET_NAME",
    "INBOX_DIR",
    "IRREVFILES_DIR",
    "PARSE_ERROR_LOG_GROUP",
    "PARSE_ERR_DIR",
    "PROCESSED_DIR",
    "BatchingReadingSink",
    "CloudWatchErrorLog",
    "CsvErrorLog",
    "IngesterConfig",
    "MeterReadingStore",
    "load_config",
]
