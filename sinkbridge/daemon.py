#!/usr/bin/env python3
"""Async orchestrator for the serial sink bridge daemon.

Startup order is fixed: the sink is connected first (retrying as configured),
then the serial device is opened (once; failure is fatal), then the
forwarding pipeline starts as its own task. The main coroutine then only
waits for SIGINT/SIGTERM.

Architecture:
    main() -> BridgeDaemon.run()
        ├── connector (sink retry state machine)
        ├── forwarding-pipeline (ForwardingPipeline.run)
        └── status-writer (optional)

Shutdown cancels the pipeline, waits at most ``shutdown_timeout`` seconds for
it to unwind (an in-flight record may be lost), then releases the serial port
and the sink exactly once each.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import sys
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path
from typing import NoReturn, TypeVar

# uvloop is a hard dependency; the daemon always runs on it.
import uvloop

from .config.logging import configure_logging
from .config.model import RuntimeConfig
from .config.settings import load_runtime_config
from .const import EXIT_CONFIG_ERROR, EXIT_FAILURE, EXIT_OK, STREAM_END_EXIT
from .errors import ConfigError, ConnectError, DeviceOpenError
from .services.pipeline import ForwardingPipeline, StreamEnd
from .sinks import TelemetrySink, build_sink_opener, describe_sink
from .state.context import RuntimeState
from .state.status import cleanup_status_file, status_writer
from .transport.connector import Connector, Opener
from .transport.serial import SerialLineSource, open_serial_source

logger = logging.getLogger("sinkbridge")

T = TypeVar("T")

SerialOpener = Callable[[RuntimeConfig, RuntimeState], Awaitable[SerialLineSource]]

SHUTDOWN_SIGNALS: tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM)


class BridgeDaemon:
    """Owns the connector, the serial source and the pipeline task.

    Attributes:
        config: Immutable runtime configuration.
        state: Counters shared with the pipeline and the status writer.
        connector: Retry state machine for the sink.
        shutdown_event: Set by signal handlers or :meth:`request_shutdown`.
    """

    def __init__(
        self,
        config: RuntimeConfig,
        *,
        sink_opener: Opener[TelemetrySink] | None = None,
        serial_opener: SerialOpener | None = None,
        state: RuntimeState | None = None,
    ) -> None:
        self.config = config
        self.state = state if state is not None else RuntimeState()
        self.connector: Connector[TelemetrySink] = Connector(
            describe_sink(config),
            sink_opener or build_sink_opener(config),
            retry_interval=config.retry_interval,
            timeout=config.connect_timeout,
            policy=config.connect_policy,
            state=self.state,
        )
        self._serial_opener: SerialOpener = serial_opener or open_serial_source
        self.shutdown_event = asyncio.Event()
        self.pipeline_task: asyncio.Task[StreamEnd] | None = None

    def request_shutdown(self, reason: str = "shutdown request") -> None:
        if self.shutdown_event.is_set():
            return
        logger.info("Received %s, stopping...", reason)
        self.shutdown_event.set()

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> list[signal.Signals]:
        installed: list[signal.Signals] = []
        for sig in SHUTDOWN_SIGNALS:
            try:
                loop.add_signal_handler(sig, self.request_shutdown, sig.name)
            except (NotImplementedError, RuntimeError):
                logger.debug("Signal handler for %s not supported here", sig.name)
                continue
            installed.append(sig)
        return installed

    @staticmethod
    def _remove_signal_handlers(loop: asyncio.AbstractEventLoop, installed: Sequence[signal.Signals]) -> None:
        for sig in installed:
            loop.remove_signal_handler(sig)

    async def _until_shutdown(self, awaitable: Awaitable[T]) -> T | None:
        """Await *awaitable* unless shutdown is requested first (then ``None``)."""
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.create_task(self.shutdown_event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
        if task.done():
            return task.result()
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        return None

    async def _stop_task(self, task: asyncio.Task[object], name: str) -> None:
        if task.done():
            return
        task.cancel()
        done, _ = await asyncio.wait({task}, timeout=self.config.shutdown_timeout)
        if not done:
            logger.warning("%s did not stop within %.1fs; abandoning it", name, self.config.shutdown_timeout)
            return
        if not task.cancelled() and task.exception() is not None:
            logger.error("%s failed while stopping", name, exc_info=task.exception())

    def _start_status_writer(self) -> asyncio.Task[None] | None:
        if not self.config.status_file:
            return None
        return asyncio.create_task(
            status_writer(self.state, Path(self.config.status_file), self.config.status_interval),
            name="status-writer",
        )

    async def _wait_for_pipeline(self, pipeline_task: asyncio.Task[StreamEnd]) -> int:
        waiter = asyncio.create_task(self.shutdown_event.wait())
        try:
            await asyncio.wait({pipeline_task, waiter}, return_when=asyncio.FIRST_COMPLETED)
            if self.shutdown_event.is_set() or not pipeline_task.done():
                return EXIT_OK

            exc = pipeline_task.exception()
            if exc is not None:
                logger.critical("Forwarding pipeline crashed: %s", exc, exc_info=exc)
                return EXIT_FAILURE

            end = pipeline_task.result()
            if self.config.on_stream_end == STREAM_END_EXIT:
                logger.critical("Serial stream ended (%s); exiting", end.value)
                return EXIT_FAILURE

            logger.error("Serial stream ended (%s); forwarding stopped until shutdown", end.value)
            await waiter
            return EXIT_OK
        finally:
            waiter.cancel()

    async def run(self) -> int:
        """Main async entry point; returns the process exit code."""
        loop = asyncio.get_running_loop()
        installed = self._install_signal_handlers(loop)
        logger.info("Starting serial sink bridge")

        try:
            async with contextlib.AsyncExitStack() as stack:
                stack.push_async_callback(self.connector.close)

                sink = await self._until_shutdown(self.connector.connect())
                if sink is None:
                    logger.info("Shutdown requested before the sink was connected")
                    return EXIT_OK

                serial_source = await self._serial_opener(self.config, self.state)
                stack.push_async_callback(serial_source.close)

                pipeline = ForwardingPipeline(
                    sink,
                    self.state,
                    delimiter=self.config.delimiter,
                    send_timeout=self.config.send_timeout,
                )
                self.pipeline_task = asyncio.create_task(
                    pipeline.run(serial_source.reader),
                    name="forwarding-pipeline",
                )
                stack.push_async_callback(self._stop_task, self.pipeline_task, "forwarding-pipeline")

                status_task = self._start_status_writer()
                if status_task is not None:
                    stack.push_async_callback(self._stop_task, status_task, "status-writer")

                return await self._wait_for_pipeline(self.pipeline_task)
        except DeviceOpenError as exc:
            logger.critical("Could not connect to serial device: %s", exc)
            self.state.record_error(exc)
            return EXIT_FAILURE
        except ConnectError as exc:
            logger.critical("Could not connect to sink: %s", exc)
            return EXIT_FAILURE
        finally:
            self._remove_signal_handlers(loop, installed)
            if self.config.status_file:
                cleanup_status_file(Path(self.config.status_file))
            logger.info("Serial sink bridge stopped.")


def main(argv: Sequence[str] | None = None) -> NoReturn:  # pragma: no cover (Entry point wrapper)
    try:
        config = load_runtime_config(argv)
    except ConfigError as exc:
        logger.critical("%s", exc)
        sys.exit(EXIT_CONFIG_ERROR)

    configure_logging(config)
    logger.info(
        "Serial: %s@%d Sink: %s (retry %.1fs, timeout %.1fs, %s)",
        config.serial_port,
        config.serial_bitrate,
        describe_sink(config),
        config.retry_interval,
        config.connect_timeout,
        config.connect_policy,
    )

    try:
        daemon = BridgeDaemon(config)
        exit_code = asyncio.run(daemon.run(), loop_factory=uvloop.new_event_loop)
    except KeyboardInterrupt:
        logger.info("Daemon interrupted by user.")
        exit_code = EXIT_OK
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
