"""Tests for the forwarding pipeline."""

from __future__ import annotations

import asyncio
import logging

import pytest
from conftest import FIXED_MOMENT, FakeSink
from sinkbridge.errors import AckMismatchError, ParseError, SendError
from sinkbridge.services.pipeline import ForwardingPipeline, ForwardStatus, StreamEnd
from sinkbridge.state.context import RuntimeState


def _pipeline(sink: FakeSink, state: RuntimeState | None = None, **kwargs) -> ForwardingPipeline:
    return ForwardingPipeline(sink, state, clock=lambda: FIXED_MOMENT, **kwargs)


@pytest.mark.asyncio
async def test_confirmed_when_sink_echoes_fingerprint() -> None:
    sink = FakeSink()
    state = RuntimeState()
    result = await _pipeline(sink, state).process_line("133|0.65|0.43")

    assert result.status is ForwardStatus.CONFIRMED
    assert result.ok
    assert result.echoed_hash == "W2kPW_tR72EALOaQDBHiZYuXyR0="
    assert sink.sent[0].value == 133
    assert state.forwarding.confirmed == 1
    assert state.forwarding.records_sent == 1


@pytest.mark.asyncio
async def test_hash_mismatch_is_reported_not_fatal(caplog: pytest.LogCaptureFixture) -> None:
    sink = FakeSink(echo=lambda record: "something-else")
    state = RuntimeState()
    pipeline = _pipeline(sink, state)

    with caplog.at_level(logging.WARNING, logger="sinkbridge.pipeline"):
        result = await pipeline.process_line("133|0.65|0.43")
        follow_up = await pipeline.process_line("134|0.65|0.43")

    assert result.status is ForwardStatus.UNCONFIRMED
    assert not result.ok
    assert isinstance(result.error, AckMismatchError)
    assert result.error.expected == "W2kPW_tR72EALOaQDBHiZYuXyR0="
    assert result.error.received == "something-else"
    assert follow_up.status is ForwardStatus.UNCONFIRMED
    assert state.forwarding.unconfirmed == 2
    assert any("hash mismatch" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_missing_ack_is_unconfirmed() -> None:
    sink = FakeSink(echo=lambda record: None)
    result = await _pipeline(sink).process_line("1|2|3")

    assert result.status is ForwardStatus.UNCONFIRMED
    assert result.echoed_hash is None


@pytest.mark.asyncio
async def test_parse_failure_sends_nothing(caplog: pytest.LogCaptureFixture) -> None:
    sink = FakeSink()
    state = RuntimeState()

    with caplog.at_level(logging.ERROR, logger="sinkbridge.pipeline"):
        result = await _pipeline(sink, state).process_line("abc|0.65|0.43")

    assert result.status is ForwardStatus.PARSE_FAILED
    assert isinstance(result.error, ParseError)
    assert result.record is None
    assert sink.sent == []
    assert sink.timeouts == []
    assert state.forwarding.parse_failures == 1
    assert len(caplog.records) == 1


@pytest.mark.asyncio
async def test_blank_line_is_skipped() -> None:
    sink = FakeSink()
    state = RuntimeState()
    result = await _pipeline(sink, state).process_line("\r\n")

    assert result.status is ForwardStatus.SKIPPED
    assert state.forwarding.lines_skipped == 1
    assert state.forwarding.parse_failures == 0
    assert sink.timeouts == []


@pytest.mark.asyncio
async def test_send_error_is_logged_and_pipeline_continues(failing_sink: FakeSink) -> None:
    state = RuntimeState()
    pipeline = _pipeline(failing_sink, state)

    first = await pipeline.process_line("1|2|3")
    second = await pipeline.process_line("2|2|3")

    assert first.status is ForwardStatus.SEND_FAILED
    assert isinstance(first.error, SendError)
    assert first.record is not None
    assert second.status is ForwardStatus.SEND_FAILED
    assert state.forwarding.send_failures == 2
    assert state.last_error is not None and "UNAVAILABLE" in state.last_error


@pytest.mark.asyncio
async def test_send_deadline_applies() -> None:
    sink = FakeSink(delay=5.0)
    result = await _pipeline(sink, send_timeout=0.05).process_line("1|2|3")

    assert result.status is ForwardStatus.SEND_FAILED
    assert "within" in str(result.error)
    assert sink.timeouts == [0.05]


@pytest.mark.asyncio
async def test_non_acknowledging_sink_is_delivered() -> None:
    sink = FakeSink(acknowledges=False)
    state = RuntimeState()
    result = await _pipeline(sink, state).process_line("1|2|3")

    assert result.status is ForwardStatus.DELIVERED
    assert result.ok
    assert state.forwarding.delivered == 1


@pytest.mark.asyncio
async def test_run_forwards_lines_in_order_until_eof() -> None:
    sink = FakeSink()
    state = RuntimeState()
    reader = asyncio.StreamReader()
    reader.feed_data(b"1|0.1|0.2\r\n2|0.1|0.2\nbad line\n\n3|0.1|0.2\n")
    reader.feed_eof()

    end = await _pipeline(sink, state).run(reader)

    assert end is StreamEnd.EOF
    assert [record.value for record in sink.sent] == [1, 2, 3]
    assert state.forwarding.lines_received == 5
    assert state.forwarding.parse_failures == 1
    assert state.forwarding.lines_skipped == 1
    assert state.stream_end == "eof"
    assert not state.pipeline_running


@pytest.mark.asyncio
async def test_run_reports_stream_error() -> None:
    sink = FakeSink()
    state = RuntimeState()
    reader = asyncio.StreamReader()
    reader.feed_data(b"1|0.1|0.2\n")
    reader.set_exception(OSError("device reports readiness to read but returned no data"))

    end = await _pipeline(sink, state).run(reader)

    assert end is StreamEnd.ERROR
    assert state.stream_end == "error"
    assert "OSError" in (state.last_error or "")


@pytest.mark.asyncio
async def test_run_discards_oversized_line() -> None:
    sink = FakeSink()
    state = RuntimeState()
    reader = asyncio.StreamReader(limit=16)
    reader.feed_data(b"9" * 64 + b"\n1|0.1|0.2\n")
    reader.feed_eof()

    end = await _pipeline(sink, state).run(reader)

    assert end is StreamEnd.EOF
    assert [record.value for record in sink.sent] == [1]
    assert state.forwarding.parse_failures == 1


@pytest.mark.asyncio
async def test_run_drops_tail_of_oversized_line_split_across_chunks() -> None:
    sink = FakeSink()
    state = RuntimeState()
    reader = asyncio.StreamReader(limit=16)
    reader.feed_data(b"x" * 40)
    task = asyncio.create_task(_pipeline(sink, state).run(reader))
    await asyncio.sleep(0.01)

    reader.feed_data(b"7|0.5|0.5\n8|0.5|0.5\n")
    reader.feed_eof()
    end = await asyncio.wait_for(task, timeout=2.0)

    assert end is StreamEnd.EOF
    assert [record.value for record in sink.sent] == [8]
    assert state.forwarding.parse_failures == 1


@pytest.mark.asyncio
async def test_run_forwards_final_line_without_newline() -> None:
    sink = FakeSink()
    reader = asyncio.StreamReader()
    reader.feed_data(b"1|0.1|0.2\n2|0.1|0.2")
    reader.feed_eof()

    assert await _pipeline(sink).run(reader) is StreamEnd.EOF
    assert [record.value for record in sink.sent] == [1, 2]


@pytest.mark.asyncio
async def test_run_can_be_cancelled_while_idle() -> None:
    sink = FakeSink()
    state = RuntimeState()
    reader = asyncio.StreamReader()
    task = asyncio.create_task(_pipeline(sink, state).run(reader))
    await asyncio.sleep(0)
    assert state.pipeline_running

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert not state.pipeline_running
