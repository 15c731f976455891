"""Exception taxonomy for the sink bridge."""

from __future__ import annotations

from enum import StrEnum


class BridgeError(Exception):
    """Base class for every error raised by the bridge."""


class ConfigError(BridgeError):
    """Raised when the runtime configuration cannot be validated."""


class ParseField(StrEnum):
    """Part of a telemetry line that failed to parse."""

    RECORD = "record"
    VALUE = "value"
    VOLTAGE = "voltage"
    CURRENT = "current"


class ParseError(BridgeError):
    """A serial line could not be turned into a telemetry record."""

    def __init__(self, field: ParseField, line: str, reason: str) -> None:
        super().__init__(f"could not parse {field.value}: {reason}")
        self.field = field
        self.line = line
        self.reason = reason


class ConnectError(BridgeError):
    """A connection attempt to the sink failed."""


class DeviceOpenError(BridgeError):
    """The serial device could not be opened. Never retried."""


class SendError(BridgeError):
    """The sink could not be reached or rejected the call."""


class AckMismatchError(BridgeError):
    """The sink answered, but echoed a different fingerprint."""

    def __init__(self, expected: str, received: str | None) -> None:
        super().__init__(f"expected hash {expected!r}, sink echoed {received!r}")
        self.expected = expected
        self.received = received


__all__ = [
    "AckMismatchError",
    "BridgeError",
    "ConfigError",
    "ConnectError",
    "DeviceOpenError",
    "ParseError",
    "ParseField",
    "SendError",
]
