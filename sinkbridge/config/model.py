"""Data model for sink bridge configuration."""

from __future__ import annotations

from dataclasses import dataclass

from ..const import (
    DEFAULT_CONNECT_POLICY,
    DEFAULT_GRPC_METHOD,
    DEFAULT_LOG_FORMAT,
    DEFAULT_RECORD_DELIMITER,
    DEFAULT_SEND_TIMEOUT,
    DEFAULT_SHUTDOWN_TIMEOUT,
    DEFAULT_STATUS_INTERVAL,
    DEFAULT_STREAM_END_POLICY,
    SINK_KIND_GRPC,
)


@dataclass(frozen=True, slots=True)
class RuntimeConfig:
    """Immutable configuration built once at startup."""

    serial_port: str
    serial_bitrate: int
    sink_kind: str
    sink_address: str
    retry_interval: float
    connect_timeout: float
    grpc_method: str = DEFAULT_GRPC_METHOD
    connect_policy: str = DEFAULT_CONNECT_POLICY
    send_timeout: float = DEFAULT_SEND_TIMEOUT
    on_stream_end: str = DEFAULT_STREAM_END_POLICY
    shutdown_timeout: float = DEFAULT_SHUTDOWN_TIMEOUT
    delimiter: str = DEFAULT_RECORD_DELIMITER
    status_file: str | None = None
    status_interval: float = DEFAULT_STATUS_INTERVAL
    debug_logging: bool = False
    log_format: str = DEFAULT_LOG_FORMAT
    log_syslog: bool = False

    @property
    def uses_stdout(self) -> bool:
        """True when records go to standard output instead of a peer."""
        return self.sink_kind != SINK_KIND_GRPC and not self.sink_address
