"""Parsing of delimited serial lines into telemetry records."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from datetime import datetime, timezone

import msgspec

from ..const import DEFAULT_RECORD_DELIMITER, INT32_MAX, INT32_MIN
from ..errors import ParseError, ParseField
from .fingerprint import fingerprint, render_timestamp

logger = logging.getLogger("sinkbridge.telemetry")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TelemetryRecord(msgspec.Struct, frozen=True):
    """One parsed observation from the microcontroller."""

    value: int
    voltage: float
    current: float
    timestamp: datetime
    timestamp_text: str
    raw: str
    fingerprint: str

    @property
    def epoch(self) -> float:
        return self.timestamp.timestamp()


def _reject_separators(text: str, field: ParseField, line: str) -> None:
    # int() and float() accept "1_000"; the wire format never carries digit separators.
    if "_" in text:
        raise ParseError(field, line, f"{text.strip()!r} contains a digit separator")


def _parse_int(text: str, line: str) -> int:
    _reject_separators(text, ParseField.VALUE, line)
    try:
        value = int(text.strip())
    except ValueError as exc:
        raise ParseError(ParseField.VALUE, line, str(exc)) from exc
    if not INT32_MIN <= value <= INT32_MAX:
        raise ParseError(ParseField.VALUE, line, f"{value} does not fit in 32 bits")
    return value


def _parse_float(text: str, field: ParseField, line: str) -> float:
    _reject_separators(text, field, line)
    try:
        value = float(text.strip())
    except ValueError as exc:
        raise ParseError(field, line, str(exc)) from exc
    if not math.isfinite(value):
        raise ParseError(field, line, f"{text.strip()!r} is not a finite number")
    return value


def parse_record(
    line: str,
    delimiter: str = DEFAULT_RECORD_DELIMITER,
    *,
    clock: Clock = utc_now,
) -> TelemetryRecord:
    """Build a :class:`TelemetryRecord` from a ``value|voltage|current`` line.

    Fields beyond the third are ignored. Raises :class:`ParseError` naming the
    offending field; no partial record is ever returned.
    """
    raw = line.rstrip("\r\n")
    fields = raw.split(delimiter)
    if len(fields) < 3:
        raise ParseError(
            ParseField.RECORD,
            raw,
            f"expected at least 3 fields, got {len(fields)}",
        )

    value = _parse_int(fields[0], raw)
    voltage = _parse_float(fields[1], ParseField.VOLTAGE, raw)
    current = _parse_float(fields[2], ParseField.CURRENT, raw)

    timestamp = clock()
    timestamp_text = render_timestamp(timestamp)
    record = TelemetryRecord(
        value=value,
        voltage=voltage,
        current=current,
        timestamp=timestamp,
        timestamp_text=timestamp_text,
        raw=raw,
        fingerprint=fingerprint(timestamp_text, raw),
    )
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("Parsed telemetry %r as %s", raw, record.fingerprint)
    return record


__all__ = ["Clock", "TelemetryRecord", "parse_record", "utc_now"]
