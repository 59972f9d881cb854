"""
Relational store for meter readings.

Inserts are idempotent: the (nmi, timestamp) uniqueness constraint drops
readings that are already stored, so re-processing a file never
duplicates data.
"""

import sqlite3
from collections.abc import Callable, Iterable
from pathlib import Path

from aws_lambda_powertools import Logger

from libs.nemreader import MeterReading

logger = Logger(service="nem12-reading-store", child=True)

CREATE_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS meter_readings (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        nmi VARCHAR(10) NOT NULL,
        timestamp TIMESTAMP NOT NULL,
        consumption NUMERIC NOT NULL,
        CONSTRAINT meter_readings_unique_consumption UNIQUE (nmi, timestamp)
    )
"""

INSERT_SQL = (
    "INSERT INTO meter_readings (nmi, timestamp, consumption) VALUES (?, ?, ?) ON CONFLICT (nmi, timestamp) DO NOTHING"
)


class MeterReadingStore:
    """Batch writer for the meter_readings table."""

    def __init__(self, db_path: str, batch_size: int = 500) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.db_path = str(db_path)
        self.batch_size = batch_size

    def _connect(self) -> sqlite3.Connection:
        # A connection per call keeps concurrent writers independent
        return sqlite3.connect(self.db_path, timeout=30)

    def init_schema(self) -> None:
        """Create the meter_readings table if it does not exist."""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = self._connect()
        try:
            with conn:
                conn.execute(CREATE_TABLE_SQL)
        finally:
            conn.close()

    def insert_readings(
        self,
        readings: Iterable[MeterReading],
        audit_sink: Callable[[str], None] | None = None,
    ) -> int:
        """
        Insert readings in batches of batch_size.

        Args:
            readings: Readings to insert
            audit_sink: Optional consumer for the "Rows inserted" summary

        Returns:
            Number of rows actually inserted (duplicates count zero)

        Raises:
            sqlite3.Error: On any database failure, including NULL columns
        """
        inserted = 0
        batch: list[tuple[str, str, float]] = []

        conn = self._connect()
        try:
            for reading in readings:
                batch.append((reading.nmi, reading.timestamp.isoformat(sep=" "), reading.consumption))
                if len(batch) >= self.batch_size:
                    inserted += self._execute_batch(conn, batch)
                    batch = []
            # Execute any remaining batch
            inserted += self._execute_batch(conn, batch)
        finally:
            conn.close()

        logger.debug("Inserted readings", extra={"db_path": self.db_path, "inserted": inserted})
        if audit_sink is not None:
            audit_sink(f"Rows inserted: {inserted}")
        return inserted

    def _execute_batch(self, conn: sqlite3.Connection, batch: list[tuple[str, str, float]]) -> int:
        if not batch:
            return 0
        before = conn.total_changes
        with conn:
            conn.executemany(INSERT_SQL, batch)
        return conn.total_changes - before

    def count(self) -> int:
        conn = self._connect()
        try:
            return conn.execute("SELECT COUNT(*) FROM meter_readings").fetchone()[0]
        finally:
            conn.close()


class BatchingReadingSink:
    """
    Reading sink that buffers up to one batch and flushes it to the store.

    Call flush() after parsing to write the final partial batch.
    """

    def __init__(self, store: MeterReadingStore) -> None:
        self.store = store
        self.buffer: list[MeterReading] = []
        self.rows_received = 0
        self.rows_inserted = 0

    def __call__(self, reading: MeterReading) -> None:
        self.buffer.append(reading)
        self.rows_received += 1
        if len(self.buffer) >= self.store.batch_size:
            self.flush()

    def flush(self) -> int:
        if not self.buffer:
            return 0
        inserted = self.store.insert_readings(self.buffer)
        self.buffer.clear()
        self.rows_inserted += inserted
        return inserted
