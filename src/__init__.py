"""
NEM12 Ingester - Validated ingestion of interval metering data.

This package parses NEM12 files line by line, streams accepted meter
readings to a store or data lake, logs every rejected record with its
context, and emits a per-file audit summary.
"""

__version__ = "0.1.0"
