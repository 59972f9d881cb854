#!/usr/bin/env python3
"""
Local NEM12 file processor.

Parses NEM12 files on disk and stores the readings in a local database.
Use this for ad-hoc loads and for re-processing files outside Lambda.

Usage:
    uv run scripts/process_nem12_locally.py <nem12_file> [<nem12_file> ...] [--db PATH] [--dry-run]

Example:
    uv run scripts/process_nem12_locally.py /path/to/NEM12#0001.csv --dry-run
    uv run scripts/process_nem12_locally.py data/*.csv --db readings.db --error-log errors.csv
"""

import argparse
import sys
import time
from dataclasses import replace
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from libs.nemreader import Nem12Parser, StructuralError
from shared.config import IngesterConfig, load_config
from shared.error_log import CsvErrorLog
from shared.reading_store import BatchingReadingSink, MeterReadingStore


class CountingSink:
    """Reading sink used for dry runs: counts readings and discards them."""

    def __init__(self) -> None:
        self.rows_received = 0
        self.rows_inserted = 0

    def __call__(self, reading: object) -> None:
        self.rows_received += 1

    def flush(self) -> int:
        return 0


def format_duration(seconds: float) -> str:
    """Format duration in human-readable format."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    if seconds < 3600:
        minutes = int(seconds // 60)
        secs = int(seconds % 60)
        return f"{minutes}m {secs}s"
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    return f"{hours}h {minutes}m"


def process_nem12_files(file_paths: list[str], config: IngesterConfig, dry_run: bool = False) -> dict:
    """Parse each file, stream its readings to the store and collect stats."""
    stats = {
        "files_total": len(file_paths),
        "files_ok": 0,
        "files_failed": 0,
        "readings_total": 0,
        "rows_inserted": 0,
        "errors_total": 0,
        "failed_files": [],
    }

    parser = Nem12Parser(CsvErrorLog(config.error_file), config.parser_config())
    store = MeterReadingStore(config.db_path, config.batch_size)
    if not dry_run:
        store.init_schema()

    for file_path in file_paths:
        print(f"\nParsing NEM12 file: {file_path}")
        sink = CountingSink() if dry_run else BatchingReadingSink(store)
        start = time.time()

        try:
            audit = parser.parse(file_path, sink, lambda line: print(f"  Audit: {line}"))
        except (StructuralError, OSError, ValueError) as e:
            print(f"  ✗ {e}")
            stats["files_failed"] += 1
            stats["failed_files"].append(file_path)
            continue
        finally:
            # Readings streamed before a failure are kept
            sink.flush()
            stats["readings_total"] += sink.rows_received
            stats["rows_inserted"] += sink.rows_inserted

        stats["files_ok"] += 1
        stats["errors_total"] += audit.error_count
        print(
            f"  ✓ {audit.rows_emitted} readings, {sink.rows_inserted} new rows "
            f"({format_duration(time.time() - start)})"
        )

    return stats


def main() -> None:
    parser = argparse.ArgumentParser(description="Process NEM12 files locally into a readings database")
    parser.add_argument("files", nargs="+", help="Paths to NEM12 files")
    parser.add_argument("--db", help="SQLite database path (default: $NEM12_DB_PATH)")
    parser.add_argument("--error-log", help="CSV error log path (default: $NEM12_ERROR_FILE)")
    parser.add_argument("--batch-size", type=int, help="Rows per insert batch (default: $NEM12_BATCH_SIZE)")
    parser.add_argument("--dry-run", action="store_true", help="Parse and validate without storing readings")
    args = parser.parse_args()

    config = load_config()
    overrides = {
        "db_path": args.db,
        "error_file": args.error_log,
        "batch_size": args.batch_size,
    }
    config = replace(config, **{k: v for k, v in overrides.items() if v is not None})

    print("=" * 60)
    print("Local NEM12 Processor")
    print(f"Files: {len(args.files)}")
    print(f"Database: {config.db_path}")
    print(f"Dry run: {args.dry_run}")
    print("=" * 60)

    stats = process_nem12_files(args.files, config, dry_run=args.dry_run)

    # Print summary
    print("\n" + "=" * 60)
    print("Processing Summary")
    print("=" * 60)
    print(f"Files processed:      {stats['files_ok']}/{stats['files_total']}")
    print(f"Total Readings:       {stats['readings_total']:,}")
    print(f"Rows Inserted:        {stats['rows_inserted']:,}")
    print(f"Parse Errors:         {stats['errors_total']}")

    if stats["failed_files"]:
        print(f"\nFailed files ({len(stats['failed_files'])} total):")
        for path in stats["failed_files"]:
            print(f"  - {path}")
    print("=" * 60)

    if stats["failed_files"]:
        sys.exit(1)


if __name__ == "__main__":
    main()
