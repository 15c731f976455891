"""Runtime state container for the sink bridge daemon."""

from __future__ import annotations

import time
from typing import Any

import msgspec


class ForwardingStats(msgspec.Struct):
    """Counters for the forwarding pipeline."""

    lines_received: int = 0
    lines_skipped: int = 0
    parse_failures: int = 0
    records_sent: int = 0
    send_failures: int = 0
    confirmed: int = 0
    unconfirmed: int = 0
    delivered: int = 0
    last_event_unix: float = 0.0

    def as_dict(self) -> dict[str, Any]:
        return msgspec.structs.asdict(self)


class ConnectionStats(msgspec.Struct):
    """Counters for the sink connector."""

    state: str = "disconnected"
    attempts: int = 0
    failures: int = 0
    timeouts: int = 0
    connected_unix: float | None = None

    def as_dict(self) -> dict[str, Any]:
        return msgspec.structs.asdict(self)


class RuntimeState(msgspec.Struct):
    """Mutable state shared between the connector, pipeline and status writer."""

    forwarding: ForwardingStats = msgspec.field(default_factory=ForwardingStats)
    connection: ConnectionStats = msgspec.field(default_factory=ConnectionStats)
    serial_connected: bool = False
    pipeline_running: bool = False
    stream_end: str | None = None
    last_error: str | None = None
    started_unix: float = msgspec.field(default_factory=time.time)

    def record_line(self) -> None:
        self.forwarding.lines_received += 1
        self.forwarding.last_event_unix = time.time()

    def record_error(self, exc: BaseException) -> None:
        self.last_error = f"{exc.__class__.__name__}: {exc}"

    def record_connection_state(self, state: str) -> None:
        self.connection.state = state
        if state == "connected":
            self.connection.connected_unix = time.time()

    def snapshot(self) -> dict[str, Any]:
        return {
            "serial_connected": self.serial_connected,
            "pipeline_running": self.pipeline_running,
            "stream_end": self.stream_end,
            "last_error": self.last_error,
            "started_unix": self.started_unix,
            "uptime_seconds": max(0.0, time.time() - self.started_unix),
            "forwarding": self.forwarding.as_dict(),
            "connection": self.connection.as_dict(),
            "heartbeat_unix": time.time(),
        }


__all__ = ["ConnectionStats", "ForwardingStats", "RuntimeState"]
