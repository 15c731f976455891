"""Forwarding pipeline: serial line -> record -> sink -> acknowledgement.

Lines are handled strictly one at a time in arrival order. Each stage
reports a :class:`ForwardResult` so callers can assert on outcomes without
reading log output.
"""

from __future__ import annotations

import asyncio
import logging
from enum import StrEnum

import msgspec

from ..const import DEFAULT_RECORD_DELIMITER, DEFAULT_SEND_TIMEOUT
from ..errors import AckMismatchError, BridgeError, ParseError, SendError
from ..sinks.base import TelemetrySink
from ..state.context import RuntimeState
from ..telemetry.record import Clock, TelemetryRecord, parse_record, utc_now

logger = logging.getLogger("sinkbridge.pipeline")


class ForwardStatus(StrEnum):
    SKIPPED = "skipped"
    PARSE_FAILED = "parse_failed"
    SEND_FAILED = "send_failed"
    CONFIRMED = "confirmed"
    UNCONFIRMED = "unconfirmed"
    DELIVERED = "delivered"


class StreamEnd(StrEnum):
    EOF = "eof"
    ERROR = "error"


class ForwardResult(msgspec.Struct, frozen=True):
    """Outcome of forwarding one serial line."""

    status: ForwardStatus
    record: TelemetryRecord | None = None
    echoed_hash: str | None = None
    error: BridgeError | None = None

    @property
    def ok(self) -> bool:
        return self.status in (ForwardStatus.CONFIRMED, ForwardStatus.DELIVERED)


class ForwardingPipeline:
    """Parse, fingerprint and forward serial lines to a sink."""

    def __init__(
        self,
        sink: TelemetrySink,
        state: RuntimeState | None = None,
        *,
        delimiter: str = DEFAULT_RECORD_DELIMITER,
        send_timeout: float = DEFAULT_SEND_TIMEOUT,
        clock: Clock = utc_now,
    ) -> None:
        self.sink = sink
        self.state = state if state is not None else RuntimeState()
        self.delimiter = delimiter
        self.send_timeout = send_timeout
        self.clock = clock

    async def process_line(self, line: str) -> ForwardResult:
        stats = self.state.forwarding
        self.state.record_line()

        if not line.strip():
            stats.lines_skipped += 1
            return ForwardResult(ForwardStatus.SKIPPED)

        try:
            record = parse_record(line, self.delimiter, clock=self.clock)
        except ParseError as exc:
            stats.parse_failures += 1
            self.state.record_error(exc)
            logger.error("Could not construct telemetry message from %r: %s", exc.line, exc)
            return ForwardResult(ForwardStatus.PARSE_FAILED, error=exc)

        logger.debug("Received data from serial: %s", record.raw)

        try:
            echoed = await self._send(record)
        except SendError as exc:
            stats.send_failures += 1
            self.state.record_error(exc)
            logger.error("Failed to send telemetry %s: %s", record.fingerprint, exc)
            return ForwardResult(ForwardStatus.SEND_FAILED, record=record, error=exc)

        stats.records_sent += 1
        if not self.sink.acknowledges:
            stats.delivered += 1
            logger.debug("Wrote telemetry %s to %s", record.fingerprint, self.sink.name)
            return ForwardResult(ForwardStatus.DELIVERED, record=record)

        if echoed != record.fingerprint:
            mismatch = AckMismatchError(record.fingerprint, echoed)
            stats.unconfirmed += 1
            self.state.record_error(mismatch)
            logger.warning("Telemetry sent but hash mismatch: %s", mismatch)
            return ForwardResult(
                ForwardStatus.UNCONFIRMED,
                record=record,
                echoed_hash=echoed,
                error=mismatch,
            )

        stats.confirmed += 1
        logger.debug("Successfully sent telemetry message %s", echoed)
        return ForwardResult(ForwardStatus.CONFIRMED, record=record, echoed_hash=echoed)

    async def _send(self, record: TelemetryRecord) -> str | None:
        try:
            return await asyncio.wait_for(
                self.sink.send(record, timeout=self.send_timeout),
                timeout=self.send_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise SendError(f"no answer from {self.sink.name} within {self.send_timeout:.1f}s") from exc

    async def _next_line(self, reader: asyncio.StreamReader) -> bytes:
        """Return the next complete line, or ``b""`` once the stream has ended.

        A line longer than the reader limit is dropped up to and including its
        newline, even when the rest of it arrives in later chunks.
        """
        discarding = False
        while True:
            try:
                line = await reader.readuntil(b"\n")
            except asyncio.IncompleteReadError as exc:
                return b"" if discarding else exc.partial
            except asyncio.LimitOverrunError as exc:
                if not discarding:
                    discarding = True
                    self.state.forwarding.parse_failures += 1
                    logger.warning("Discarding serial line longer than the read limit")
                await reader.read(exc.consumed)
                continue
            if not discarding:
                return line
            discarding = False

    async def run(self, reader: asyncio.StreamReader) -> StreamEnd:
        """Forward every line from *reader* until the stream ends."""
        self.state.pipeline_running = True
        try:
            while True:
                try:
                    raw = await self._next_line(reader)
                except OSError as exc:
                    self.state.record_error(exc)
                    logger.error("Failed to read serial stream: %s", exc)
                    return self._finish(StreamEnd.ERROR)

                if not raw:
                    logger.warning("Serial stream reached end of file")
                    return self._finish(StreamEnd.EOF)

                await self.process_line(raw.decode("ascii", errors="replace"))
        finally:
            self.state.pipeline_running = False

    def _finish(self, end: StreamEnd) -> StreamEnd:
        self.state.stream_end = end.value
        return end


__all__ = ["ForwardResult", "ForwardStatus", "ForwardingPipeline", "StreamEnd"]
