"""
File Processor Lambda: parses NEM12 files dropped into the ingest bucket.

Triggered by SQS messages wrapping S3 ObjectCreated events. Each file is
validated line by line; accepted readings are written to the data lake in
CSV batches, rejected records go to the parse-error log group, and the
source object is moved according to the outcome.
"""

import json
import shutil
import tempfile
import uuid
from pathlib import Path
from typing import Any
from urllib.parse import unquote

import boto3
import pandas as pd
from aws_lambda_powertools import Logger, Metrics, Tracer
from aws_lambda_powertools.metrics import MetricUnit

from libs.nemreader import MeterReading, Nem12Parser, StructuralError
from shared import (
    AWS_REGION,
    IRREVFILES_DIR,
    PARSE_ERR_DIR,
    PARSE_ERROR_LOG_GROUP,
    PROCESSED_DIR,
    CloudWatchErrorLog,
    IngesterConfig,
    load_config,
)

# Powertools instances
logger = Logger(service="file-processor")
tracer = Tracer(service="file-processor")
metrics = Metrics(namespace="NEM12/Ingester")

# S3 client (lazy initialization)
_s3_client = None


def get_s3_client() -> Any:
    """Get S3 client with lazy initialization."""
    global _s3_client
    if _s3_client is None:
        _s3_client = boto3.client("s3", region_name=AWS_REGION)
    return _s3_client


class S3ReadingWriter:
    """
    Reading sink that buffers readings and writes them to S3 as CSV batches.

    Output columns: nmi, ts, val
    """

    def __init__(self, bucket: str, prefix: str, batch_size: int, batch_timestamp: str) -> None:
        self.bucket = bucket
        self.prefix = prefix.rstrip("/")
        self.batch_size = batch_size
        self.batch_timestamp = batch_timestamp
        self.buffer: list[MeterReading] = []
        self.keys_written: list[str] = []

    def __call__(self, reading: MeterReading) -> None:
        self.buffer.append(reading)
        if len(self.buffer) >= self.batch_size:
            self.flush()

    @tracer.capture_method
    def flush(self) -> str | None:
        """Write buffered readings to S3 as a single CSV object."""
        if not self.buffer:
            return None

        df = pd.DataFrame(
            {
                "nmi": [r.nmi for r in self.buffer],
                "ts": pd.to_datetime([r.timestamp for r in self.buffer]),
                "val": [r.consumption for r in self.buffer],
            }
        )
        df["ts"] = df["ts"].dt.strftime("%Y-%m-%d %H:%M:%S")

        output_key = f"{self.prefix}/batch_{self.batch_timestamp}_{len(self.keys_written) + 1}.csv"
        get_s3_client().put_object(Bucket=self.bucket, Key=output_key, Body=df.to_csv(index=False))
        logger.debug("Flushed buffer to S3", extra={"output_key": output_key, "rows": len(df)})

        self.keys_written.append(output_key)
        self.buffer.clear()
        return output_key

    def discard(self) -> int:
        """Drop buffered readings without writing them."""
        dropped = len(self.buffer)
        self.buffer.clear()
        return dropped


def download_file_to_tmp(bucket: str, key: str, tmp_folder_path: Path) -> Path:
    local_path = tmp_folder_path / Path(key).name
    logger.info("Downloading file", extra={"bucket": bucket, "key": key, "local_path": str(local_path)})
    get_s3_client().download_file(bucket, key, str(local_path))
    return local_path


def move_s3_file(bucket: str, source_key: str, dest_prefix: str) -> str | None:
    file_name = source_key.split("/")[-1]
    dest_key = f"{dest_prefix.rstrip('/')}/{file_name}"

    try:
        s3 = get_s3_client()
        s3.copy_object(Bucket=bucket, CopySource={"Bucket": bucket, "Key": source_key}, Key=dest_key)
        s3.delete_object(Bucket=bucket, Key=source_key)
        return dest_key

    except Exception as e:
        logger.error("File move failed", exc_info=True, extra={"source": source_key, "dest": dest_key, "error": str(e)})
        return None


@tracer.capture_method
def process_file(
    bucket: str,
    key: str,
    parser: Nem12Parser,
    writer: S3ReadingWriter,
    tmp_folder_path: Path,
) -> str:
    """
    Download, parse and file away a single NEM12 object.

    Returns:
        The destination prefix the source object was moved to
    """
    try:
        local_path = download_file_to_tmp(bucket, key, tmp_folder_path)
        audit = parser.parse(str(local_path), writer, lambda line: logger.info("Audit", extra={"audit": line}))
        writer.flush()

    except StructuralError as e:
        # Readings streamed before the end-of-file check stay written
        writer.flush()
        logger.warning("Structurally invalid file", extra={"key": key, "error": str(e)})
        metrics.add_metric(name="ParseErrorFiles", unit=MetricUnit.Count, value=1)
        move_s3_file(bucket, key, PARSE_ERR_DIR)
        return PARSE_ERR_DIR

    except Exception as e:
        # Buffered readings belong to the failed file and must not reach the next batch
        dropped = writer.discard()
        logger.error(
            "File processing failed",
            exc_info=True,
            extra={"key": key, "error": str(e), "dropped_readings": dropped},
        )
        metrics.add_metric(name="ParseErrorFiles", unit=MetricUnit.Count, value=1)
        move_s3_file(bucket, key, PARSE_ERR_DIR)
        return PARSE_ERR_DIR

    metrics.add_metric(name="ReadingsEmitted", unit=MetricUnit.Count, value=audit.rows_emitted)
    metrics.add_metric(name="ParseErrors", unit=MetricUnit.Count, value=audit.error_count)

    if audit.rows_emitted:
        metrics.add_metric(name="ValidProcessedFiles", unit=MetricUnit.Count, value=1)
        move_s3_file(bucket, key, PROCESSED_DIR)
        return PROCESSED_DIR

    metrics.add_metric(name="IrrelevantFiles", unit=MetricUnit.Count, value=1)
    move_s3_file(bucket, key, IRREVFILES_DIR)
    return IRREVFILES_DIR


def parse_s3_records(event: dict[str, Any]) -> list[tuple[str, str]]:
    """Extract (bucket, decoded key) pairs from SQS-wrapped S3 events."""
    files = []
    for record in event.get("Records", []):
        try:
            message_body = json.loads(record["body"])
            for s3_event in message_body.get("Records", []):
                bucket_name = s3_event["s3"]["bucket"]["name"]
                # Always decode key before using with boto3
                file_key = unquote(s3_event["s3"]["object"]["key"].replace("+", "%20"))
                files.append((bucket_name, file_key))
        except Exception as e:
            logger.error("Error processing SQS record", exc_info=True, extra={"error": str(e)})
            continue
    return files


def run(files: list[tuple[str, str]], config: IngesterConfig, error_sink: Any) -> dict[str, int]:
    tmp_folder_path = Path(tempfile.gettempdir()) / str(uuid.uuid4())
    tmp_folder_path.mkdir(parents=True, exist_ok=True)

    batch_timestamp = pd.Timestamp.now().strftime("%Y_%b_%dT%H_%M_%S_%f")
    parser = Nem12Parser(error_sink, config.parser_config())
    writer = S3ReadingWriter(config.output_bucket, config.output_prefix, config.batch_size, batch_timestamp)

    outcomes = {PROCESSED_DIR: 0, IRREVFILES_DIR: 0, PARSE_ERR_DIR: 0}
    try:
        for bucket, key in files:
            logger.info("Processing file", extra={"bucket": bucket, "key": key})
            outcomes[process_file(bucket, key, parser, writer, tmp_folder_path)] += 1
    finally:
        shutil.rmtree(tmp_folder_path, ignore_errors=True)

    return outcomes


@tracer.capture_lambda_handler
@metrics.log_metrics
@logger.inject_lambda_context
def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    config = load_config()
    files = parse_s3_records(event)

    outcomes = {PROCESSED_DIR: 0, IRREVFILES_DIR: 0, PARSE_ERR_DIR: 0}
    if files:
        outcomes = run(files, config, CloudWatchErrorLog(PARSE_ERROR_LOG_GROUP))

    return {
        "statusCode": 200,
        "body": "Successfully processed files.",
        "processed": outcomes[PROCESSED_DIR],
        "irrelevant": outcomes[IRREVFILES_DIR],
        "failed": outcomes[PARSE_ERR_DIR],
    }
