"""Error sinks for parse error events."""

import csv
import json
from datetime import UTC, datetime
from pathlib import Path

import boto3
from aws_lambda_powertools import Logger

from libs.nemreader import ErrorEvent
from shared.common import AWS_REGION

logger = Logger(service="nem12-error-log", child=True)


def event_fields(event: ErrorEvent) -> dict[str, str | int]:
    return {
        "file": event.file_name,
        "line": event.line_number,
        "record_type": event.record_type,
        "kind": event.kind.value,
        "reason": event.reason,
    }


class CsvErrorLog:
    """Append each error event as a row of file,line,record_type,reason."""

    def __init__(self, path: str) -> None:
        self.path = Path(path)

    def __call__(self, event: ErrorEvent) -> None:
        with self.path.open("a", newline="", encoding="utf-8") as f:
            csv.writer(f).writerow(event.as_row())
        logger.warning("Parse error", extra=event_fields(event))


class CloudWatchErrorLog:
    """
    Write error events as JSON messages to CloudWatch Logs.

    Events are grouped into one stream per UTC day, named ``day-YYYY-MM-DD``.
    Streams are created on first write and may already exist from an earlier
    invocation.
    """

    STREAM_NAME_FORMAT = "day-%Y-%m-%d"

    def __init__(self, log_group: str, region_name: str = AWS_REGION) -> None:
        self.log_group = log_group
        self.client = boto3.client("logs", region_name=region_name)
        # Next sequence token for every stream this sink has written to
        self._stream_tokens: dict[str, str | None] = {}

    @classmethod
    def stream_name(cls, at: datetime) -> str:
        return at.astimezone(UTC).strftime(cls.STREAM_NAME_FORMAT)

    @property
    def streams(self) -> list[str]:
        return list(self._stream_tokens)

    def __call__(self, event: ErrorEvent) -> None:
        self.write(json.dumps(event_fields(event)))

    def write(self, message: str, at: datetime | None = None) -> None:
        """
        Put one message on the stream for the day of ``at`` (default: now).

        Raises:
            botocore.exceptions.ClientError: If CloudWatch rejects the request
        """
        at = at or datetime.now(UTC)
        stream = self.stream_name(at)
        if stream not in self._stream_tokens:
            self._create_stream(stream)

        request = {
            "logGroupName": self.log_group,
            "logStreamName": stream,
            "logEvents": [{"timestamp": int(at.timestamp() * 1000), "message": message}],
        }
        token = self._stream_tokens[stream]
        if token:
            request["sequenceToken"] = token

        response = self.client.put_log_events(**request)
        self._stream_tokens[stream] = response.get("nextSequenceToken")

    def _create_stream(self, stream: str) -> None:
        try:
            self.client.create_log_stream(logGroupName=self.log_group, logStreamName=stream)
        except self.client.exceptions.ResourceAlreadyExistsException:
            logger.debug("Log stream already exists", extra={"log_group": self.log_group, "stream": stream})
        self._stream_tokens[stream] = None
