"""Shared pytest fixtures for NEM12 Ingester tests."""

import os
import sys
from collections.abc import Callable, Generator
from pathlib import Path
from unittest.mock import MagicMock

import boto3
import pytest
from moto import mock_aws
from mypy_boto3_logs import CloudWatchLogsClient
from mypy_boto3_s3 import S3Client

# Add src to path for Lambda-style imports (libs.*, shared.*, functions.*)
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

# Module-level boto3 clients and Powertools need these before any import
os.environ.setdefault("AWS_DEFAULT_REGION", "ap-southeast-2")
os.environ.setdefault("POWERTOOLS_TRACE_DISABLED", "true")
os.environ.setdefault("POWERTOOLS_METRICS_NAMESPACE", "test")


# ==================== Environment ====================


@pytest.fixture(autouse=True)
def reset_env() -> Generator[None]:
    """Give every test a clean environment without NEM12_* overrides."""
    original_env = os.environ.copy()
    for key in list(os.environ):
        if key.startswith("NEM12_"):
            del os.environ[key]

    yield

    os.environ.clear()
    os.environ.update(original_env)


# ==================== NEM12 Files ====================


@pytest.fixture
def write_nem12(tmp_path: Path) -> Callable[..., str]:
    """Return a factory that writes the given lines as a NEM12 file and returns its path."""

    def _write(*lines: str, name: str = "test_nem12.csv") -> str:
        path = tmp_path / name
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return str(path)

    return _write


@pytest.fixture
def valid_nem12_lines() -> list[str]:
    """A well-formed two-day file for a single NMI with three intervals per day."""
    return [
        "100,HEADER",
        "200,NMI123,3",
        "300,2025-09-12,1.1,2.2,3.3",
        "300,2025-09-13,4.4,5.5,6.6",
        "900,FOOTER",
    ]


# ==================== AWS Mocks ====================


@pytest.fixture
def aws_credentials() -> None:
    """Mock AWS credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "ap-southeast-2"


@pytest.fixture
def mock_s3(aws_credentials: None) -> Generator[S3Client]:
    """Create mock S3 service with the ingest and data lake buckets."""
    with mock_aws():
        s3 = boto3.client("s3", region_name="ap-southeast-2")

        s3.create_bucket(
            Bucket="nem12-file-ingester", CreateBucketConfiguration={"LocationConstraint": "ap-southeast-2"}
        )
        s3.create_bucket(Bucket="hudibucketsrc", CreateBucketConfiguration={"LocationConstraint": "ap-southeast-2"})

        yield s3


@pytest.fixture
def mock_cloudwatch_logs(mock_s3: S3Client) -> CloudWatchLogsClient:
    """Create mock CloudWatch Logs service with the parse error log group.

    Shares the mock_aws context opened by mock_s3.
    """
    logs = boto3.client("logs", region_name="ap-southeast-2")
    logs.create_log_group(logGroupName="nem12-ingester-parse-error-log")
    return logs


# ==================== Lambda Context ====================


@pytest.fixture
def mock_lambda_context() -> MagicMock:
    """Create mock Lambda context for the file processor."""
    context = MagicMock()
    context.function_name = "nem12-file-processor"
    context.memory_limit_in_mb = 512
    context.invoked_function_arn = "arn:aws:lambda:ap-southeast-2:123456789012:function:nem12-file-processor"
    context.aws_request_id = "test-request-id"
    return context
