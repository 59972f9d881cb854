"""Configuration management for NEM12 Ingester.

Values are read from environment variables once, at startup, and passed
explicitly to the parser and its collaborators.
"""

import os
from dataclasses import dataclass

from libs.nemreader import ParserConfig


@dataclass(frozen=True)
class IngesterConfig:
    delimiter: str = ","
    encoding: str = "utf-8"
    # 48 x 30-minute intervals per day
    default_interval_count: int = 48
    batch_size: int = 500
    error_file: str = "error_log.csv"
    db_path: str = "meter_readings.db"
    output_bucket: str = "hudibucketsrc"
    output_prefix: str = "sensorDataFiles"

    def parser_config(self) -> ParserConfig:
        return ParserConfig(
            delimiter=self.delimiter,
            encoding=self.encoding,
            default_interval_count=self.default_interval_count,
        )


def load_config() -> IngesterConfig:
    """
    Build configuration from environment variables.

    Raises:
        ValueError: If a numeric setting is not an integer or batch size is not positive
    """
    batch_size = int(os.environ.get("NEM12_BATCH_SIZE", "500"))
    if batch_size < 1:
        raise ValueError(f"NEM12_BATCH_SIZE must be positive, got {batch_size}")

    return IngesterConfig(
        delimiter=os.environ.get("NEM12_DELIMITER", ","),
        encoding=os.environ.get("NEM12_ENCODING", "utf-8"),
        default_interval_count=int(os.environ.get("NEM12_DEFAULT_INTERVAL_COUNT", "48")),
        batch_size=batch_size,
        error_file=os.environ.get("NEM12_ERROR_FILE", "error_log.csv"),
        db_path=os.environ.get("NEM12_DB_PATH", "meter_readings.db"),
        output_bucket=os.environ.get("NEM12_OUTPUT_BUCKET", "hudibucketsrc"),
        output_prefix=os.environ.get("NEM12_OUTPUT_PREFIX", "sensorDataFiles"),
    )
