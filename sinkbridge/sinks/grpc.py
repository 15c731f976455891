"""gRPC sink.

Records are sent with a unary call (``/well.Well/SendTelemetry`` by default).
Payloads are JSON documents encoded by msgspec and plugged into grpc through
its request/response serializer hooks, so no generated stubs are needed. The
server answers with a JSON object echoing the record ``hash``.
"""

from __future__ import annotations

import asyncio
import logging

import grpc

from ..errors import ConnectError, SendError
from ..telemetry.messages import TelemetryMessage, decode_ack, encode_message
from ..telemetry.record import TelemetryRecord
from .base import TelemetrySink

logger = logging.getLogger("sinkbridge.sinks.grpc")


class GrpcSink(TelemetrySink):
    """Forward records over an insecure gRPC channel."""

    acknowledges = True

    def __init__(self, address: str, method: str, channel: grpc.aio.Channel) -> None:
        self.name = f"grpc://{address}"
        self.address = address
        self.method = method
        self._channel = channel
        self._call = channel.unary_unary(
            method,
            request_serializer=encode_message,
            response_deserializer=decode_ack,
        )
        self._closed = False

    @classmethod
    async def open(cls, address: str, method: str, attempt_timeout: float) -> GrpcSink:
        """Dial *address* and wait up to *attempt_timeout* seconds for the channel."""
        channel = grpc.aio.insecure_channel(address)
        try:
            await asyncio.wait_for(channel.channel_ready(), timeout=attempt_timeout)
        except asyncio.TimeoutError as exc:
            await channel.close()
            raise ConnectError(f"gRPC channel to {address} not ready after {attempt_timeout:.1f}s") from exc
        except asyncio.CancelledError:
            await channel.close()
            raise
        return cls(address, method, channel)

    async def send(self, record: TelemetryRecord, *, timeout: float | None = None) -> str | None:
        if self._closed:
            raise SendError("gRPC channel is closed")
        message = TelemetryMessage.from_record(record)
        try:
            echoed: str | None = await self._call(message, timeout=timeout)
        except grpc.aio.AioRpcError as exc:
            raise SendError(f"{exc.code().name}: {exc.details()}") from exc
        return echoed

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._channel.close()


__all__ = ["GrpcSink"]
