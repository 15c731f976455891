"""Serial line source backed by pyserial-asyncio-fast.

The microcontroller writes newline-terminated text. A small asyncio Protocol
feeds every received chunk into an :class:`asyncio.StreamReader`, so the
forwarding pipeline can ``await reader.readline()`` one record at a time.
"""

from __future__ import annotations

import asyncio
import logging
from typing import cast

# Fail immediately if the dependency is missing; there is no fallback.
import serial_asyncio_fast  # type: ignore[import-untyped]
from serial import SerialException

from ..config.model import RuntimeConfig
from ..const import SERIAL_READ_LIMIT
from ..errors import DeviceOpenError
from ..state.context import RuntimeState

logger = logging.getLogger("sinkbridge.serial")


class SerialLineProtocol(asyncio.Protocol):
    """Feed serial bytes into a :class:`asyncio.StreamReader`."""

    def __init__(self, limit: int = SERIAL_READ_LIMIT) -> None:
        self.reader = asyncio.StreamReader(limit=limit)
        self.transport: asyncio.Transport | None = None
        self.closed: asyncio.Future[None] = asyncio.get_running_loop().create_future()

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = cast(asyncio.Transport, transport)
        self.reader.set_transport(self.transport)
        logger.debug("Serial transport established.")

    def data_received(self, data: bytes) -> None:
        self.reader.feed_data(data)

    def connection_lost(self, exc: Exception | None) -> None:
        if exc is None:
            self.reader.feed_eof()
        else:
            logger.warning("Serial connection lost: %s", exc)
            self.reader.set_exception(exc)
        self.transport = None
        if not self.closed.done():
            self.closed.set_result(None)


class SerialLineSource:
    """Open serial handle; ``close()`` is safe to call more than once."""

    def __init__(
        self,
        port: str,
        transport: asyncio.BaseTransport,
        protocol: SerialLineProtocol,
        state: RuntimeState | None = None,
    ) -> None:
        self.port = port
        self._transport = transport
        self._protocol = protocol
        self._state = state
        self._closed = False

    @property
    def reader(self) -> asyncio.StreamReader:
        return self._protocol.reader

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._state is not None:
            self._state.serial_connected = False
        if not self._transport.is_closing():
            self._transport.close()
        try:
            await asyncio.wait_for(asyncio.shield(self._protocol.closed), timeout=1.0)
        except asyncio.TimeoutError:
            logger.debug("Serial transport did not report closure in time.")
        logger.info("Closed serial port %s", self.port)


async def open_serial_source(
    config: RuntimeConfig,
    state: RuntimeState | None = None,
) -> SerialLineSource:
    """Open the configured serial device.

    Opening is attempted once. Any failure raises :class:`DeviceOpenError`,
    which is fatal for the daemon.
    """
    loop = asyncio.get_running_loop()
    logger.info("Opening serial port %s at %d baud", config.serial_port, config.serial_bitrate)
    try:
        transport, protocol = await serial_asyncio_fast.create_serial_connection(
            loop,
            SerialLineProtocol,
            config.serial_port,
            baudrate=config.serial_bitrate,
        )
    except (SerialException, OSError, ValueError) as exc:
        raise DeviceOpenError(f"could not open serial port {config.serial_port}: {exc}") from exc

    if state is not None:
        state.serial_connected = True
    logger.info("Connected to serial port %s", config.serial_port)
    return SerialLineSource(
        config.serial_port,
        transport,
        cast(SerialLineProtocol, protocol),
        state,
    )


__all__ = ["SerialLineProtocol", "SerialLineSource", "open_serial_source"]
