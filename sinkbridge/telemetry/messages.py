"""Wire messages exchanged with the sinks."""

from __future__ import annotations

from typing import Any

import msgspec

from .record import TelemetryRecord


class TelemetryMessage(msgspec.Struct, frozen=True):
    """RPC request for a single record."""

    hash: str
    timestamp: str
    value: int
    voltage: float
    current: float

    @classmethod
    def from_record(cls, record: TelemetryRecord) -> TelemetryMessage:
        return cls(
            hash=record.fingerprint,
            timestamp=record.timestamp_text,
            value=record.value,
            voltage=record.voltage,
            current=record.current,
        )


class TelemetryEnvelope(msgspec.Struct, frozen=True):
    """Line-delimited JSON object written to stream sinks."""

    hash: str
    epoch: float
    value: int
    voltage: float
    current: float

    @classmethod
    def from_record(cls, record: TelemetryRecord) -> TelemetryEnvelope:
        return cls(
            hash=record.fingerprint,
            epoch=record.epoch,
            value=record.value,
            voltage=record.voltage,
            current=record.current,
        )


_encoder = msgspec.json.Encoder()


def encode_message(message: TelemetryMessage) -> bytes:
    return _encoder.encode(message)


def encode_envelope(envelope: TelemetryEnvelope) -> bytes:
    """Encode *envelope* as one newline-terminated JSON line."""
    buffer = bytearray()
    _encoder.encode_into(envelope, buffer)
    buffer.extend(b"\n")
    return bytes(buffer)


def decode_ack(payload: bytes) -> str | None:
    """Extract the echoed hash from a sink response, accepting ``hash`` or ``Hash``."""
    try:
        data: Any = msgspec.json.decode(payload)
    except msgspec.DecodeError:
        return None
    if not isinstance(data, dict):
        return None
    echoed = data.get("hash", data.get("Hash"))
    return echoed if isinstance(echoed, str) else None


__all__ = [
    "TelemetryEnvelope",
    "TelemetryMessage",
    "decode_ack",
    "encode_envelope",
    "encode_message",
]
