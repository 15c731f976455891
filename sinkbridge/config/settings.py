"""Settings loader for the sink bridge daemon.

Configuration is read from environment variables first; command-line flags
override them. The merged raw values are validated by
:class:`~sinkbridge.config.schema.RuntimeConfigSchema`, which produces the
immutable :class:`RuntimeConfig` handed to every component.
"""

from __future__ import annotations

import argparse
import os
from collections.abc import Mapping, Sequence
from typing import Any

from marshmallow import ValidationError

from .. import __version__
from ..const import CONNECT_POLICIES, LOG_FORMATS, SINK_KINDS, STREAM_END_POLICIES
from ..errors import ConfigError
from .model import RuntimeConfig
from .schema import RuntimeConfigSchema

# Environment variable -> schema field.
ENVIRONMENT_KEYS: dict[str, str] = {
    "SERIAL_PORT": "serial_port",
    "SERIAL_BITRATE": "serial_bitrate",
    "SINK_KIND": "sink_kind",
    "GRPC_ADDRESS": "grpc_address",
    "GRPC_METHOD": "grpc_method",
    "SOCKET_PATH": "socket_path",
    "SOCKET_TIMEOUT": "connect_timeout",
    "RETRY_INTERVAL": "retry_interval",
    "CONNECT_POLICY": "connect_policy",
    "SEND_TIMEOUT": "send_timeout",
    "ON_STREAM_END": "on_stream_end",
    "SHUTDOWN_TIMEOUT": "shutdown_timeout",
    "RECORD_DELIMITER": "delimiter",
    "STATUS_FILE": "status_file",
    "STATUS_INTERVAL": "status_interval",
    "DEBUG": "debug_logging",
    "LOG_FORMAT": "log_format",
    "LOG_SYSLOG": "log_syslog",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sinkbridge",
        description="Forward serial telemetry records to a gRPC or socket sink.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--port", dest="serial_port", help="Serial port where the microcontroller is connected")
    parser.add_argument("--bitrate", dest="serial_bitrate", help="Serial bitrate used by the microcontroller")
    parser.add_argument("--sink", dest="sink_kind", choices=SINK_KINDS, help="Kind of sink to forward to")
    parser.add_argument("--grpc-address", dest="grpc_address", help="host:port of the gRPC sink")
    parser.add_argument("--grpc-method", dest="grpc_method", help="Fully qualified gRPC method name")
    parser.add_argument(
        "--socket",
        dest="socket_path",
        help="Path to the unix socket where data is written (stdout if empty)",
    )
    parser.add_argument(
        "--timeout",
        dest="connect_timeout",
        help="Seconds to wait for the sink before reporting a connection timeout",
    )
    parser.add_argument("--retry", dest="retry_interval", help="Seconds between connection attempts")
    parser.add_argument(
        "--connect-policy",
        dest="connect_policy",
        choices=CONNECT_POLICIES,
        help="advisory: keep retrying after the timeout; terminal: give up",
    )
    parser.add_argument("--send-timeout", dest="send_timeout", help="Deadline in seconds for each send")
    parser.add_argument(
        "--on-stream-end",
        dest="on_stream_end",
        choices=STREAM_END_POLICIES,
        help="What to do when the serial stream ends",
    )
    parser.add_argument(
        "--shutdown-timeout",
        dest="shutdown_timeout",
        help="Seconds to let the in-flight record finish on shutdown",
    )
    parser.add_argument("--delimiter", dest="delimiter", help="Field delimiter of serial records")
    parser.add_argument("--status-file", dest="status_file", help="Write a JSON status snapshot to this path")
    parser.add_argument("--status-interval", dest="status_interval", help="Seconds between status snapshots")
    parser.add_argument(
        "--debug",
        dest="debug_logging",
        action="store_const",
        const=True,
        default=None,
        help="Enable debug logging",
    )
    parser.add_argument("--log-format", dest="log_format", choices=LOG_FORMATS, help="Log output format")
    parser.add_argument(
        "--syslog",
        dest="log_syslog",
        action="store_const",
        const=True,
        default=None,
        help="Send logs to syslog instead of stderr",
    )
    return parser


def _load_environment(environ: Mapping[str, str]) -> dict[str, Any]:
    raw: dict[str, Any] = {}
    for env_key, field_name in ENVIRONMENT_KEYS.items():
        value = environ.get(env_key)
        if value is not None and value.strip() != "":
            raw[field_name] = value.strip()
    return raw


def load_runtime_config(
    argv: Sequence[str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> RuntimeConfig:
    """Build the runtime configuration from the environment and *argv*.

    Raises:
        ConfigError: a value is missing or out of range.
    """
    raw = _load_environment(os.environ if environ is None else environ)
    flags = vars(build_parser().parse_args(argv))
    raw.update({key: value for key, value in flags.items() if value is not None})

    try:
        config: RuntimeConfig = RuntimeConfigSchema().load(raw)
    except ValidationError as exc:
        raise ConfigError(f"invalid configuration: {exc.messages}") from exc
    return config


__all__ = ["ENVIRONMENT_KEYS", "build_parser", "load_runtime_config"]
