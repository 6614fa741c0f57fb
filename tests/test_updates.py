"""Tests for formwatch.updates."""

from __future__ import annotations

import re
from pathlib import Path

import pytest

from formwatch.models import EventType, OutcomeRecord, UpdateEvent
from formwatch.outcome_log import OutcomeLog
from formwatch.updates import Broadcaster, RunLogger

LINE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z \[(\w+)\] (.*)\n$")


class TestFormatLine:
    def test_with_line_number(self):
        line = RunLogger.format_line("Clicked", "success", 3)
        match = LINE_RE.match(line)
        assert match is not None
        assert match.group(1) == "SUCCESS"
        assert match.group(2) == "Line 3: Clicked"

    def test_without_line_number(self):
        match = LINE_RE.match(RunLogger.format_line("Starting bot..."))
        assert match is not None
        assert match.groups() == ("INFO", "Starting bot...")


class TestRunLogger:
    @pytest.mark.asyncio
    async def test_log_emits_and_persists(self, run_log, sink, outcome_log):
        await run_log.log("hello", "warn", 2)

        assert len(sink.log_lines()) == 1
        assert "[WARN] Line 2: hello" in sink.log_lines()[0]
        assert "[WARN] Line 2: hello" in outcome_log.path.read_text()

    @pytest.mark.asyncio
    async def test_non_persistent_line_only_emitted(self, run_log, sink, outcome_log):
        await run_log.log("EmailWatcher: polling", "debug", persist=False)

        assert len(sink.log_lines()) == 1
        assert not outcome_log.path.exists()

    @pytest.mark.asyncio
    async def test_write_failure_reported_not_raised(self, sink, tmp_path: Path):
        run_log = RunLogger(sink, OutcomeLog(tmp_path / "missing" / "out.log"))

        await run_log.log("hello")

        lines = sink.log_lines()
        assert len(lines) == 2
        assert "[ERROR]" in lines[1]
        assert "Failed to write to output log" in lines[1]

    @pytest.mark.asyncio
    async def test_record_outcome_levels(self, run_log, sink):
        await run_log.record_outcome(OutcomeRecord(line="a:b", value="42"), 1)
        await run_log.record_outcome(OutcomeRecord(line="a:b"), 2)
        await run_log.record_outcome(OutcomeRecord(line="a:b", error="boom"), 3)

        lines = sink.log_lines()
        assert "[INFO] Line 1: Input: a:b | EmailData: 42" in lines[0]
        assert "[WARN] Line 2: Input: a:b | EmailData: NOT_FOUND" in lines[1]
        assert "[ERROR] Line 3: Input: a:b | Error: boom" in lines[2]

    def test_emit(self, run_log, sink):
        run_log.emit(EventType.STATUS_DETAIL, "Waiting for email...")
        assert sink.events[0].type == EventType.STATUS_DETAIL
        assert sink.events[0].data == "Waiting for email..."


class TestBroadcaster:
    @pytest.mark.asyncio
    async def test_fan_out(self):
        broadcaster = Broadcaster()
        first = broadcaster.subscribe()
        second = broadcaster.subscribe()
        event = UpdateEvent(type=EventType.LOG, data="line")

        broadcaster(event)

        assert first.get_nowait() is event
        assert second.get_nowait() is event

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        broadcaster = Broadcaster()
        queue = broadcaster.subscribe()
        broadcaster.unsubscribe(queue)

        broadcaster(UpdateEvent(type=EventType.LOG, data="line"))

        assert queue.empty()
        assert broadcaster.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_full_queue_drops_event(self):
        broadcaster = Broadcaster(max_queue_size=1)
        queue = broadcaster.subscribe()

        broadcaster(UpdateEvent(type=EventType.LOG, data="one"))
        broadcaster(UpdateEvent(type=EventType.LOG, data="two"))

        assert queue.qsize() == 1
        assert queue.get_nowait().data == "one"
