"""Telemetry sinks and the opener used by the connector."""

from __future__ import annotations

import functools
import logging

from ..config.model import RuntimeConfig
from ..const import SINK_KIND_GRPC
from ..transport.connector import Opener
from .base import TelemetrySink
from .grpc import GrpcSink
from .stream import SocketSink, StdoutSink

logger = logging.getLogger("sinkbridge.sinks")


def describe_sink(config: RuntimeConfig) -> str:
    if config.sink_kind == SINK_KIND_GRPC:
        return f"grpc://{config.sink_address}"
    if config.uses_stdout:
        return "stdout"
    return f"unix://{config.sink_address}"


def build_sink_opener(config: RuntimeConfig) -> Opener[TelemetrySink]:
    """Return the connector opener for the configured sink kind."""
    if config.sink_kind == SINK_KIND_GRPC:
        return functools.partial(GrpcSink.open, config.sink_address, config.grpc_method)
    if config.uses_stdout:
        logger.info("No socket path configured; writing telemetry to stdout")
        return StdoutSink.open
    return functools.partial(SocketSink.open, config.sink_address)


__all__ = [
    "GrpcSink",
    "SocketSink",
    "StdoutSink",
    "TelemetrySink",
    "build_sink_opener",
    "describe_sink",
]
