"""Connection establishment with paced retries for the sink bridge.

The connector is an explicit state machine::

    disconnected -> connecting -> connected -> closed
                         |
                         +-----> failed

Two inputs drive the ``connecting`` state: the retry interval, which paces
attempts, and the overall timeout. With the ``advisory`` policy the timeout is
only reported (every time another ``timeout`` seconds pass) and retrying goes
on forever; with the ``terminal`` policy the connector gives up and fails.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Generic, Protocol, TypeVar

import tenacity
from transitions import Machine

from ..const import CONNECT_POLICY_ADVISORY, CONNECT_POLICY_TERMINAL
from ..errors import ConnectError
from ..state.context import RuntimeState

logger = logging.getLogger("sinkbridge.connector")


class ClosableHandle(Protocol):
    async def close(self) -> None: ...


H = TypeVar("H", bound=ClosableHandle)

Opener = Callable[[float], Awaitable[H]]
SleepFunc = Callable[[float], Awaitable[None]]
ClockFunc = Callable[[], float]

_RETRYABLE: tuple[type[BaseException], ...] = (ConnectError, OSError, asyncio.TimeoutError)


class Connector(Generic[H]):
    """Open a handle through *opener*, retrying every *retry_interval* seconds.

    *opener* receives the per-attempt time budget (the retry interval) and must
    raise :class:`ConnectError`, :class:`OSError` or :class:`asyncio.TimeoutError`
    on failure.
    """

    if TYPE_CHECKING:
        # FSM generated methods and attributes for static analysis
        fsm_state: str
        start_connecting: Callable[[], None]
        mark_connected: Callable[[], None]
        mark_failed: Callable[[], None]
        abort: Callable[[], None]
        mark_closed: Callable[[], None]

    # FSM States
    STATE_DISCONNECTED = "disconnected"
    STATE_CONNECTING = "connecting"
    STATE_CONNECTED = "connected"
    STATE_CLOSED = "closed"
    STATE_FAILED = "failed"

    def __init__(
        self,
        name: str,
        opener: Opener[H],
        *,
        retry_interval: float,
        timeout: float,
        policy: str = CONNECT_POLICY_ADVISORY,
        state: RuntimeState | None = None,
        sleep: SleepFunc = asyncio.sleep,
        clock: ClockFunc = time.monotonic,
    ) -> None:
        if policy not in (CONNECT_POLICY_ADVISORY, CONNECT_POLICY_TERMINAL):
            raise ValueError(f"unknown connect policy: {policy}")
        self.name = name
        self._opener = opener
        self._retry_interval = retry_interval
        self._timeout = timeout
        self._policy = policy
        self._state = state
        self._sleep = sleep
        self._clock = clock
        self._handle: H | None = None
        self._started_at = 0.0
        self._next_timeout_mark = 0.0
        self.failed_attempts = 0

        # FSM Initialization
        self.state_machine = Machine(
            model=self,
            states=[
                self.STATE_DISCONNECTED,
                self.STATE_CONNECTING,
                self.STATE_CONNECTED,
                self.STATE_CLOSED,
                self.STATE_FAILED,
            ],
            initial=self.STATE_DISCONNECTED,
            ignore_invalid_triggers=True,
            after_state_change="_on_state_change",
            model_attribute="fsm_state",
        )

        # FSM Transitions
        self.state_machine.add_transition(
            trigger="start_connecting",
            source=[self.STATE_DISCONNECTED, self.STATE_FAILED],
            dest=self.STATE_CONNECTING,
        )
        self.state_machine.add_transition(
            trigger="mark_connected", source=self.STATE_CONNECTING, dest=self.STATE_CONNECTED
        )
        self.state_machine.add_transition(
            trigger="mark_failed", source=self.STATE_CONNECTING, dest=self.STATE_FAILED
        )
        self.state_machine.add_transition(
            trigger="abort", source=self.STATE_CONNECTING, dest=self.STATE_DISCONNECTED
        )
        self.state_machine.add_transition(trigger="mark_closed", source="*", dest=self.STATE_CLOSED)

    @property
    def handle(self) -> H | None:
        return self._handle

    @property
    def is_connected(self) -> bool:
        return self.fsm_state == self.STATE_CONNECTED

    def _on_state_change(self) -> None:
        if self._state is not None:
            self._state.record_connection_state(self.fsm_state)

    def _elapsed(self) -> float:
        return self._clock() - self._started_at

    def _should_stop(self, retry_state: tenacity.RetryCallState) -> bool:
        if self._policy != CONNECT_POLICY_TERMINAL:
            return False
        return self._elapsed() >= self._timeout

    def _before_sleep(self, retry_state: tenacity.RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Could not connect to %s (attempt %d): %s; retrying in %.1fs",
            self.name,
            retry_state.attempt_number,
            exc,
            self._retry_interval,
        )
        self._report_timeout()

    def _report_timeout(self) -> None:
        if self._policy != CONNECT_POLICY_ADVISORY:
            return
        if self._elapsed() < self._next_timeout_mark:
            return
        logger.error(
            "Connection to %s timed out after %.0fs; still retrying",
            self.name,
            self._elapsed(),
        )
        self._next_timeout_mark += self._timeout
        if self._state is not None:
            self._state.connection.timeouts += 1

    async def _attempt(self) -> H:
        if self._state is not None:
            self._state.connection.attempts += 1
        try:
            return await self._opener(self._retry_interval)
        except _RETRYABLE:
            self.failed_attempts += 1
            if self._state is not None:
                self._state.connection.failures += 1
            raise

    async def connect(self) -> H:
        """Run the connecting state until a handle is open.

        Raises:
            ConnectError: the ``terminal`` policy gave up after the timeout.
        """
        if self.fsm_state == self.STATE_CONNECTED and self._handle is not None:
            return self._handle

        self.start_connecting()
        self._started_at = self._clock()
        self._next_timeout_mark = self._timeout
        self.failed_attempts = 0
        logger.info("Establishing connection to %s", self.name)

        retryer = tenacity.AsyncRetrying(
            wait=tenacity.wait_fixed(self._retry_interval),
            retry=tenacity.retry_if_exception_type(_RETRYABLE),
            stop=self._should_stop,
            before_sleep=self._before_sleep,
            sleep=self._sleep,
            reraise=True,
        )

        try:
            async for attempt in retryer:
                with attempt:
                    handle = await self._attempt()
        except _RETRYABLE as exc:
            logger.error(
                "Giving up on %s after %d attempts in %.1fs: %s",
                self.name,
                self.failed_attempts,
                self._elapsed(),
                exc,
            )
            self.mark_failed()
            if self._state is not None:
                self._state.record_error(exc)
            raise ConnectError(f"could not connect to {self.name}: {exc}") from exc
        except asyncio.CancelledError:
            self.abort()
            raise

        self._handle = handle
        self.mark_connected()
        logger.info("Connected to %s", self.name)
        return handle

    async def close(self) -> None:
        """Close the handle once and move to ``closed``; later calls do nothing."""
        if self.fsm_state == self.STATE_CLOSED:
            return
        handle, self._handle = self._handle, None
        self.mark_closed()
        if handle is None:
            return
        try:
            await handle.close()
        except OSError as exc:
            logger.warning("Error while closing %s: %s", self.name, exc)
        else:
            logger.info("Closed connection to %s", self.name)


__all__ = ["ClosableHandle", "Connector", "Opener"]
