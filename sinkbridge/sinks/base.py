"""Common interface of telemetry sinks."""

from __future__ import annotations

import abc
from typing import ClassVar

from ..telemetry.record import TelemetryRecord


class TelemetrySink(abc.ABC):
    """Destination for forwarded records.

    ``send`` returns the fingerprint echoed by the sink, or ``None`` when the
    sink does not acknowledge (``acknowledges`` is False). Transport failures
    raise :class:`~sinkbridge.errors.SendError`.
    """

    acknowledges: ClassVar[bool] = False
    name: str

    @abc.abstractmethod
    async def send(self, record: TelemetryRecord, *, timeout: float | None = None) -> str | None: ...

    @abc.abstractmethod
    async def close(self) -> None: ...
