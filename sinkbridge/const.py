"""Constants shared across the sink bridge daemon."""

from __future__ import annotations

from typing import Final

SINK_KIND_GRPC: Final[str] = "grpc"
SINK_KIND_SOCKET: Final[str] = "socket"
SINK_KINDS: Final[tuple[str, ...]] = (SINK_KIND_GRPC, SINK_KIND_SOCKET)

CONNECT_POLICY_ADVISORY: Final[str] = "advisory"
CONNECT_POLICY_TERMINAL: Final[str] = "terminal"
CONNECT_POLICIES: Final[tuple[str, ...]] = (
    CONNECT_POLICY_ADVISORY,
    CONNECT_POLICY_TERMINAL,
)

STREAM_END_STOP: Final[str] = "stop"
STREAM_END_EXIT: Final[str] = "exit"
STREAM_END_POLICIES: Final[tuple[str, ...]] = (STREAM_END_STOP, STREAM_END_EXIT)

LOG_FORMAT_CONSOLE: Final[str] = "console"
LOG_FORMAT_JSON: Final[str] = "json"
LOG_FORMATS: Final[tuple[str, ...]] = (LOG_FORMAT_CONSOLE, LOG_FORMAT_JSON)

DEFAULT_SERIAL_PORT: Final[str] = "/dev/ttyS9"
DEFAULT_SERIAL_BITRATE: Final[int] = 115200
DEFAULT_SINK_KIND: Final[str] = SINK_KIND_GRPC
DEFAULT_GRPC_ADDRESS: Final[str] = "0.0.0.0:50051"
DEFAULT_GRPC_METHOD: Final[str] = "/well.Well/SendTelemetry"
DEFAULT_SOCKET_PATH: Final[str] = ""
DEFAULT_CONNECT_POLICY: Final[str] = CONNECT_POLICY_ADVISORY
DEFAULT_SEND_TIMEOUT: Final[float] = 10.0
DEFAULT_STREAM_END_POLICY: Final[str] = STREAM_END_STOP
DEFAULT_SHUTDOWN_TIMEOUT: Final[float] = 5.0
DEFAULT_RECORD_DELIMITER: Final[str] = "|"
DEFAULT_STATUS_INTERVAL: Final[float] = 30.0
DEFAULT_LOG_FORMAT: Final[str] = LOG_FORMAT_CONSOLE

# Per sink kind: (retry interval, connect timeout) in seconds.
CONNECT_DEFAULTS: Final[dict[str, tuple[float, float]]] = {
    SINK_KIND_GRPC: (5.0, 60.0),
    SINK_KIND_SOCKET: (1.0, 5.0),
}

SERIAL_READ_LIMIT: Final[int] = 4096
FINGERPRINT_SEPARATOR: Final[str] = "|"
INT32_MIN: Final[int] = -(2**31)
INT32_MAX: Final[int] = 2**31 - 1

EXIT_OK: Final[int] = 0
EXIT_FAILURE: Final[int] = 1
EXIT_CONFIG_ERROR: Final[int] = 2
