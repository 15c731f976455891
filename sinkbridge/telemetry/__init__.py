"""Telemetry records, fingerprints and wire messages."""

from .fingerprint import fingerprint, render_timestamp
from .messages import TelemetryEnvelope, TelemetryMessage
from .record import TelemetryRecord, parse_record

__all__ = [
    "TelemetryEnvelope",
    "TelemetryMessage",
    "TelemetryRecord",
    "fingerprint",
    "parse_record",
    "render_timestamp",
]
