"""Pytest configuration for sink bridge tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import pytest
from sinkbridge.config.model import RuntimeConfig
from sinkbridge.const import SINK_KIND_SOCKET
from sinkbridge.errors import SendError
from sinkbridge.sinks.base import TelemetrySink
from sinkbridge.state.context import RuntimeState
from sinkbridge.telemetry.record import TelemetryRecord

FIXED_MOMENT = datetime(2024, 1, 2, 3, 4, 5, 6, tzinfo=timezone.utc)


def _config_kwargs(**overrides: Any) -> dict[str, Any]:
    base: dict[str, Any] = {
        "serial_port": "/dev/ttyTEST0",
        "serial_bitrate": 115200,
        "sink_kind": SINK_KIND_SOCKET,
        "sink_address": "",
        "retry_interval": 0.01,
        "connect_timeout": 5.0,
        "send_timeout": 1.0,
        "shutdown_timeout": 1.0,
    }
    base.update(overrides)
    return base


class FakeSink(TelemetrySink):
    """In-memory sink recording what it was asked to send."""

    def __init__(
        self,
        *,
        acknowledges: bool = True,
        echo: Callable[[TelemetryRecord], str | None] | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.name = "fake"
        self.acknowledges = acknowledges  # type: ignore[misc]
        self._echo = echo if echo is not None else (lambda record: record.fingerprint)
        self._error = error
        self._delay = delay
        self.sent: list[TelemetryRecord] = []
        self.timeouts: list[float | None] = []
        self.close_calls = 0

    async def send(self, record: TelemetryRecord, *, timeout: float | None = None) -> str | None:
        self.timeouts.append(timeout)
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        self.sent.append(record)
        return self._echo(record) if self.acknowledges else None

    async def close(self) -> None:
        self.close_calls += 1


@pytest.fixture
def runtime_config_factory() -> Callable[..., RuntimeConfig]:
    def _factory(**overrides: Any) -> RuntimeConfig:
        return RuntimeConfig(**_config_kwargs(**overrides))

    return _factory


@pytest.fixture
def runtime_config(runtime_config_factory: Callable[..., RuntimeConfig]) -> RuntimeConfig:
    return runtime_config_factory()


@pytest.fixture
def runtime_state() -> RuntimeState:
    return RuntimeState()


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: FIXED_MOMENT


@pytest.fixture
def failing_sink() -> FakeSink:
    return FakeSink(error=SendError("UNAVAILABLE: connection refused"))
