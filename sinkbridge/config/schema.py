"""Marshmallow schema for RuntimeConfig validation."""

from __future__ import annotations

import os
from typing import Any, Dict

from marshmallow import Schema, ValidationError, fields, post_load, pre_load, validate, validates_schema

from ..const import (
    CONNECT_DEFAULTS,
    CONNECT_POLICIES,
    DEFAULT_CONNECT_POLICY,
    DEFAULT_GRPC_ADDRESS,
    DEFAULT_GRPC_METHOD,
    DEFAULT_LOG_FORMAT,
    DEFAULT_RECORD_DELIMITER,
    DEFAULT_SEND_TIMEOUT,
    DEFAULT_SERIAL_BITRATE,
    DEFAULT_SERIAL_PORT,
    DEFAULT_SHUTDOWN_TIMEOUT,
    DEFAULT_SINK_KIND,
    DEFAULT_SOCKET_PATH,
    DEFAULT_STATUS_INTERVAL,
    DEFAULT_STREAM_END_POLICY,
    LOG_FORMATS,
    SINK_KIND_GRPC,
    SINK_KINDS,
    STREAM_END_POLICIES,
)
from .model import RuntimeConfig


class RuntimeConfigSchema(Schema):
    """Declarative validation schema for sink bridge configuration."""

    # Serial
    serial_port = fields.Str(load_default=DEFAULT_SERIAL_PORT, validate=validate.Length(min=1))
    serial_bitrate = fields.Int(load_default=DEFAULT_SERIAL_BITRATE, validate=validate.Range(min=50))
    delimiter = fields.Str(load_default=DEFAULT_RECORD_DELIMITER, validate=validate.Length(min=1))

    # Sink
    sink_kind = fields.Str(load_default=DEFAULT_SINK_KIND, validate=validate.OneOf(SINK_KINDS))
    grpc_address = fields.Str(load_default=DEFAULT_GRPC_ADDRESS)
    grpc_method = fields.Str(load_default=DEFAULT_GRPC_METHOD, validate=validate.Regexp(r"^/[^/]+/[^/]+$"))
    socket_path = fields.Str(load_default=DEFAULT_SOCKET_PATH)

    # Connection and forwarding
    connect_timeout = fields.Float(load_default=None, allow_none=True, validate=validate.Range(min=0.1))
    retry_interval = fields.Float(load_default=None, allow_none=True, validate=validate.Range(min=0.01))
    connect_policy = fields.Str(load_default=DEFAULT_CONNECT_POLICY, validate=validate.OneOf(CONNECT_POLICIES))
    send_timeout = fields.Float(load_default=DEFAULT_SEND_TIMEOUT, validate=validate.Range(min=0.01))
    on_stream_end = fields.Str(load_default=DEFAULT_STREAM_END_POLICY, validate=validate.OneOf(STREAM_END_POLICIES))
    shutdown_timeout = fields.Float(load_default=DEFAULT_SHUTDOWN_TIMEOUT, validate=validate.Range(min=0.0))

    # Observability
    status_file = fields.Str(load_default=None, allow_none=True)
    status_interval = fields.Float(load_default=DEFAULT_STATUS_INTERVAL, validate=validate.Range(min=0.1))
    debug_logging = fields.Bool(load_default=False)
    log_format = fields.Str(load_default=DEFAULT_LOG_FORMAT, validate=validate.OneOf(LOG_FORMATS))
    log_syslog = fields.Bool(load_default=False)

    @pre_load
    def drop_unset(self, data: Dict[str, Any], **kwargs: Any) -> Dict[str, Any]:
        # None means "not provided"; the field defaults apply instead.
        return {key: value for key, value in data.items() if value is not None}

    @validates_schema
    def validate_grpc_address(self, data: Dict[str, Any], **kwargs: Any) -> None:
        if data.get("sink_kind") == SINK_KIND_GRPC and not data.get("grpc_address", "").strip():
            raise ValidationError(
                "grpc_address must be configured for the grpc sink",
                field_name="grpc_address",
            )

    @staticmethod
    def _normalize_path(value: str | None) -> str | None:
        candidate = (value or "").strip()
        if not candidate:
            return None
        return os.path.abspath(os.path.expanduser(candidate))

    @post_load
    def make_config(self, data: Dict[str, Any], **kwargs: Any) -> RuntimeConfig:
        kind = data.pop("sink_kind")
        grpc_address = data.pop("grpc_address").strip()
        socket_path = self._normalize_path(data.pop("socket_path")) or ""
        retry_default, timeout_default = CONNECT_DEFAULTS[kind]

        retry_interval = data.pop("retry_interval")
        connect_timeout = data.pop("connect_timeout")

        data["status_file"] = self._normalize_path(data.get("status_file"))

        return RuntimeConfig(
            sink_kind=kind,
            sink_address=grpc_address if kind == SINK_KIND_GRPC else socket_path,
            retry_interval=retry_default if retry_interval is None else retry_interval,
            connect_timeout=timeout_default if connect_timeout is None else connect_timeout,
            **data,
        )


__all__ = ["RuntimeConfigSchema"]
