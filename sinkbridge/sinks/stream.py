"""Stream sinks writing one JSON object per line."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import BinaryIO

from ..errors import ConnectError, SendError
from ..telemetry.messages import TelemetryEnvelope, encode_envelope
from ..telemetry.record import TelemetryRecord
from .base import TelemetrySink

logger = logging.getLogger("sinkbridge.sinks.stream")


class SocketSink(TelemetrySink):
    """Write records to a local (unix domain) stream socket."""

    def __init__(self, path: str, writer: asyncio.StreamWriter) -> None:
        self.name = f"unix://{path}"
        self.path = path
        self._writer = writer
        self._closed = False

    @classmethod
    async def open(cls, path: str, attempt_timeout: float) -> SocketSink:
        try:
            _, writer = await asyncio.wait_for(asyncio.open_unix_connection(path), timeout=attempt_timeout)
        except OSError as exc:
            raise ConnectError(f"unix socket {path} unavailable: {exc}") from exc
        return cls(path, writer)

    async def send(self, record: TelemetryRecord, *, timeout: float | None = None) -> str | None:
        if self._closed or self._writer.is_closing():
            raise SendError(f"socket {self.path} is closed")
        try:
            self._writer.write(encode_envelope(TelemetryEnvelope.from_record(record)))
            await self._writer.drain()
        except OSError as exc:
            raise SendError(f"write to {self.path} failed: {exc}") from exc
        return None

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except OSError as exc:
            logger.debug("Ignoring error while closing %s: %s", self.path, exc)


class StdoutSink(TelemetrySink):
    """Write records to standard output; always ready, no peer to dial."""

    def __init__(self, stream: BinaryIO | None = None) -> None:
        self.name = "stdout"
        self._stream = stream if stream is not None else sys.stdout.buffer
        self._closed = False

    @classmethod
    async def open(cls, attempt_timeout: float = 0.0) -> StdoutSink:
        return cls()

    async def send(self, record: TelemetryRecord, *, timeout: float | None = None) -> str | None:
        if self._closed:
            raise SendError("stdout sink is closed")
        try:
            self._stream.write(encode_envelope(TelemetryEnvelope.from_record(record)))
            self._stream.flush()
        except (OSError, ValueError) as exc:
            raise SendError(f"write to stdout failed: {exc}") from exc
        return None

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._stream.flush()
        except (OSError, ValueError) as exc:
            logger.debug("Ignoring error while flushing stdout: %s", exc)


__all__ = ["SocketSink", "StdoutSink"]
