"""Tests for the logging configuration."""

import json
import logging
import sys
from unittest.mock import patch

from sinkbridge.config import logging as log_mod
from sinkbridge.const import LOG_FORMAT_JSON


def _record(name: str = "sinkbridge.pipeline", msg: str = "hello") -> logging.LogRecord:
    return logging.LogRecord(
        name=name,
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


def test_structured_formatter_trims_prefix() -> None:
    payload = json.loads(log_mod.StructuredLogFormatter().format(_record()))

    assert payload["logger"] == "pipeline"
    assert payload["level"] == "INFO"
    assert payload["message"] == "hello"
    assert payload["ts"].endswith("Z")
    assert "task" not in payload
    assert "exception" not in payload


def test_structured_formatter_reports_task_name() -> None:
    record = _record()
    record.taskName = "forwarding-pipeline"

    payload = json.loads(log_mod.StructuredLogFormatter().format(record))

    assert payload["task"] == "forwarding-pipeline"


def test_structured_formatter_keeps_foreign_logger_names() -> None:
    payload = json.loads(log_mod.StructuredLogFormatter().format(_record(name="grpc._cython")))
    assert payload["logger"] == "grpc._cython"


def test_structured_formatter_includes_exception() -> None:
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = logging.LogRecord("sinkbridge", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())

    payload = json.loads(log_mod.StructuredLogFormatter().format(record))
    assert "RuntimeError: boom" in payload["exception"]


def test_configure_logging_console_to_stderr(runtime_config_factory) -> None:
    config = runtime_config_factory(debug_logging=True)

    with patch("sinkbridge.config.logging.dictConfig") as mock_dict_config:
        log_mod.configure_logging(config)

    config_arg = mock_dict_config.call_args[0][0]
    handler = config_arg["handlers"]["sinkbridge"]
    assert handler["stream"] == "ext://sys.stderr"
    assert handler["formatter"] == "console"
    assert config_arg["root"]["level"] == "DEBUG"


def test_configure_logging_json_format(runtime_config_factory) -> None:
    config = runtime_config_factory(log_format=LOG_FORMAT_JSON)

    with patch("sinkbridge.config.logging.dictConfig") as mock_dict_config:
        log_mod.configure_logging(config)

    config_arg = mock_dict_config.call_args[0][0]
    assert config_arg["handlers"]["sinkbridge"]["formatter"] == "structured"
    assert config_arg["root"]["level"] == "INFO"


def test_configure_logging_syslog(runtime_config_factory, tmp_path) -> None:
    fake_socket = tmp_path / "log"
    fake_socket.touch()
    config = runtime_config_factory(log_syslog=True)

    with patch("sinkbridge.config.logging.SYSLOG_SOCKET", fake_socket):
        with patch("sinkbridge.config.logging.dictConfig") as mock_dict_config:
            log_mod.configure_logging(config)
            mock_dict_config.assert_called_once()
            config_arg = mock_dict_config.call_args[0][0]
            assert config_arg["handlers"]["sinkbridge"]["()"] is log_mod._build_syslog_handler


def test_build_syslog_handler_falls_back_to_stream(tmp_path) -> None:
    with (
        patch("sinkbridge.config.logging.SYSLOG_SOCKET", tmp_path / "missing"),
        patch("sinkbridge.config.logging.SYSLOG_SOCKET_FALLBACK", tmp_path / "also-missing"),
    ):
        handler = log_mod._build_syslog_handler()

    assert type(handler) is logging.StreamHandler
