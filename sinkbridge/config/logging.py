"""Logging helpers for the sink bridge daemon."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from logging import Handler
from logging.config import dictConfig
from logging.handlers import SysLogHandler
from pathlib import Path
from typing import Any

import msgspec

from ..const import LOG_FORMAT_JSON
from .model import RuntimeConfig

SYSLOG_SOCKET = Path("/dev/log")
SYSLOG_SOCKET_FALLBACK = Path("/var/run/log")

CONSOLE_FORMAT = "%(asctime)s %(levelname)-5s %(name)s: %(message)s"


class LogLine(msgspec.Struct, omit_defaults=True):
    """One JSON log line; ``task`` and ``exception`` only when present."""

    ts: str
    level: str
    logger: str
    message: str
    task: str | None = None
    exception: str | None = None


_line_encoder = msgspec.json.Encoder()


class StructuredLogFormatter(logging.Formatter):
    """Emit one :class:`LogLine` per record, with the package prefix trimmed."""

    PREFIX = "sinkbridge."

    def format(self, record: logging.LogRecord) -> str:
        name = record.name.removeprefix(self.PREFIX)
        line = LogLine(
            ts=datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            level=record.levelname,
            logger=name,
            message=record.getMessage(),
            # Named asyncio tasks: "forwarding-pipeline", "status-writer".
            task=getattr(record, "taskName", None),
            exception=self.formatException(record.exc_info) if record.exc_info else None,
        )
        return _line_encoder.encode(line).decode("utf-8")


def _build_syslog_handler() -> Handler:
    socket_path: Path | None = None
    for candidate in (SYSLOG_SOCKET, SYSLOG_SOCKET_FALLBACK):
        if candidate.exists():
            socket_path = candidate
            break

    if socket_path is None:
        # No local syslog daemon; stderr keeps stdout free for telemetry.
        return logging.StreamHandler()

    handler = SysLogHandler(address=str(socket_path), facility=SysLogHandler.LOG_DAEMON)
    handler.ident = "sinkbridge "
    return handler


def configure_logging(config: RuntimeConfig) -> None:
    """Configure root logging based on runtime settings."""

    level_name = "DEBUG" if config.debug_logging else "INFO"
    formatter = "structured" if config.log_format == LOG_FORMAT_JSON else "console"

    handler: dict[str, Any]
    if config.log_syslog:
        handler = {"()": _build_syslog_handler}
    else:
        handler = {"class": "logging.StreamHandler", "stream": "ext://sys.stderr"}
    handler.update({"level": level_name, "formatter": formatter})

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structured": {
                    "()": "sinkbridge.config.logging.StructuredLogFormatter",
                },
                "console": {
                    "format": CONSOLE_FORMAT,
                },
            },
            "handlers": {
                "sinkbridge": handler,
            },
            "root": {
                "level": level_name,
                "handlers": ["sinkbridge"],
            },
        }
    )

    logging.getLogger("sinkbridge").info("Logging configured at level %s", level_name)
