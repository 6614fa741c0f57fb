"""Orchestrator: owns the run state and feeds records to the pipeline in order."""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

import structlog

from . import delay
from .actions import ActionExecutor
from .browser import BrowserEngine
from .config import RunConfig, Settings
from .errors import ConfigurationError
from .logging import bind_run
from .models import EventType, OutcomeRecord, Record, RunStatus, RunStatusView
from .outcome_log import OutcomeLog
from .pipeline import RecordPipeline
from .records import load_lines, parse_record
from .updates import RunLogger, UpdateSink, null_sink
from .watcher import ResponseWatcher

logger = structlog.get_logger()


class RecordProcessor(Protocol):
    async def process(self, record: Record, config: RunConfig) -> OutcomeRecord: ...


class CancellationToken:
    """Cooperative stop flag, polled before each record and at the per-line entry point.

    Each run gets a fresh token; a token is never un-cancelled.
    """

    def __init__(self) -> None:
        self._requested = False

    @property
    def requested(self) -> bool:
        return self._requested

    def cancel(self) -> None:
        self._requested = True


@dataclass
class RunState:
    """Mutable state of the single active run. Written only by the orchestrator.

    ``stop`` is the token of the run that currently owns this state.
    """

    status: RunStatus = RunStatus.IDLE
    stop: CancellationToken = field(default_factory=CancellationToken)
    current_line: int = 0
    total_lines: int = 0
    config: RunConfig | None = None

    @property
    def is_running(self) -> bool:
        return self.status in (RunStatus.RUNNING, RunStatus.STOPPING)

    def view(self) -> RunStatusView:
        return RunStatusView(
            status=self.status,
            is_running=self.is_running,
            stop_requested=self.stop.requested,
            current_line=self.current_line,
            total_lines=self.total_lines,
            configured=self.config is not None,
        )


class Orchestrator:
    """Runs one batch of records at a time.

    ``start()`` is a no-op while a run is active.  ``request_stop()`` lets
    the current record finish, including its mailbox watch, before the
    loop exits.  ``reset()`` stops, cancels a run that outlives the grace
    period, force-closes the browser, clears the state and truncates the
    outcome log.
    """

    def __init__(
        self,
        settings: Settings,
        sink: UpdateSink = null_sink,
        *,
        engine: BrowserEngine | None = None,
        pipeline_factory: Callable[[BrowserEngine, RunLogger], RecordProcessor] | None = None,
    ) -> None:
        self._settings = settings
        self._sink = sink
        self._engine = engine or BrowserEngine(
            headless=settings.headless,
            executable_path=settings.browser_executable_path,
        )
        self._pipeline_factory = pipeline_factory or self._build_pipeline
        self._state = RunState()
        self._run_log = RunLogger(sink, OutcomeLog(settings.output_log))
        self._run_task: asyncio.Task | None = None

    @property
    def run_log(self) -> RunLogger:
        return self._run_log

    def status(self) -> RunStatusView:
        return self._state.view()

    def _emit_status(self, message: str, status: RunStatus, **extra: int) -> None:
        self._run_log.emit(EventType.STATUS, {"message": message, "status": status.value, **extra})

    def _build_pipeline(self, engine: BrowserEngine, run_log: RunLogger) -> RecordPipeline:
        s = self._settings
        return RecordPipeline(
            engine,
            ActionExecutor(run_log, visibility_timeout_ms=s.visibility_timeout_ms),
            ResponseWatcher(
                run_log,
                window_seconds=s.watch_window_seconds,
                poll_interval_seconds=s.poll_interval_seconds,
                max_age_minutes=s.staleness_minutes,
            ),
            run_log,
            screenshot_dir=s.screenshot_dir,
            navigation_timeout_ms=s.navigation_timeout_ms,
        )

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def _owns(self, token: CancellationToken) -> bool:
        return self._state.stop is token

    async def start(self, config: RunConfig, lines: list[str] | None = None) -> RunStatusView:
        """Process every input line, in order, until done or stopped.

        *lines* defaults to the configured input file.  Returns the final
        state, which is idle unless the call was rejected because a run
        was already active.
        """
        state = self._state
        if state.is_running:
            await self._run_log.log("Bot is already running.", "warn")
            self._emit_status("Bot is already running.", RunStatus.RUNNING)
            return state.view()

        # Claim the run before the first await so overlapping calls see it.
        token = CancellationToken()
        state.stop = token
        state.status = RunStatus.RUNNING
        self._run_task = asyncio.current_task()

        output_log = OutcomeLog(config.output_log_path or self._settings.output_log)
        self._run_log = RunLogger(self._sink, output_log)
        run_log = self._run_log

        try:
            config.require_target()
        except ConfigurationError as exc:
            logger.error("run_rejected", error=str(exc))
            self._release(token)
            self._emit_status(str(exc), RunStatus.ERROR)
            return state.view()

        try:
            await output_log.ensure_directory()
        except OSError as exc:
            logger.error("log_directory_failed", path=str(output_log.path), error=str(exc))
            self._release(token)
            self._emit_status(f"Error creating log directory: {exc}", RunStatus.ERROR)
            return state.view()

        bind_run(uuid.uuid4().hex[:12])
        state.config = config
        state.current_line = 0
        state.total_lines = 0

        await run_log.log("Starting bot...")
        self._emit_status("Bot starting...", RunStatus.RUNNING, currentLine=0, totalLines=0)

        try:
            await self._engine.start()
            pipeline = self._pipeline_factory(self._engine, run_log)

            if lines is None:
                input_path = config.input_file_path or self._settings.input_file
                lines = await asyncio.to_thread(load_lines, input_path)
                await run_log.log(f"Loaded {len(lines)} lines from {input_path}")
            state.total_lines = len(lines)
            run_log.emit(EventType.PROGRESS_INIT, {"totalLines": state.total_lines})

            for i, line in enumerate(lines):
                if token.requested or not self._owns(token):
                    await run_log.log("Bot stop was requested. Terminating processing.")
                    break
                line_number = i + 1
                state.current_line = line_number
                run_log.emit(
                    EventType.PROGRESS_UPDATE,
                    {
                        "currentLine": line_number,
                        "totalLines": len(lines),
                        "lineContent": line,
                    },
                )
                await self._process_line(pipeline, line, line_number, token)
                if line_number < len(lines) and not token.requested:
                    await delay.pause(delay.BETWEEN_RECORDS)
            else:
                await run_log.log("All lines processed.")

        except Exception as exc:
            logger.exception("run_failed")
            await run_log.log(f"Bot error: {exc}", "error")
            run_log.emit(EventType.ERROR, message=f"Bot error: {exc}")

        finally:
            if self._owns(token):
                await self._engine.close()
                self._release(token)
                await run_log.log("Bot finished.")
                self._emit_status("Bot finished processing.", RunStatus.IDLE)
            else:
                logger.info("run_superseded")

        return state.view()

    def _release(self, token: CancellationToken) -> None:
        """Return the state to idle if *token*'s run still owns it."""
        if not self._owns(token):
            return
        self._state.status = RunStatus.IDLE
        self._state.stop = CancellationToken()
        self._run_task = None

    async def _process_line(
        self,
        pipeline: RecordProcessor,
        line: str,
        line_number: int,
        token: CancellationToken,
    ) -> None:
        state = self._state
        if token.requested or not self._owns(token):
            await self._run_log.log("Processing stopped or stop requested.", "info", line_number)
            return

        record = parse_record(line, line_number)
        if record is None:
            await self._run_log.log(f"Skipping invalid line: {line}", "warn", line_number)
            return

        assert state.config is not None
        await pipeline.process(record, state.config)

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    async def request_stop(self) -> RunStatusView:
        """Ask the active run to stop after the record in progress."""
        state = self._state
        if not state.is_running:
            await self._run_log.log("Bot is not running.", "warn")
            self._emit_status("Bot is not running.", RunStatus.IDLE)
            return state.view()

        state.stop.cancel()
        state.status = RunStatus.STOPPING
        await self._run_log.log(
            "Stop request received. Bot will stop after the current line processing completes."
        )
        self._emit_status("Bot stopping after current line...", RunStatus.STOPPING)
        return state.view()

    async def reset(self) -> RunStatusView:
        """Stop, force-close the browser, clear progress and truncate the outcome log.

        A run still active after the grace period is cancelled and awaited,
        so no record of it can start once the reset returns.
        """
        state = self._state
        run_log = self._run_log
        await run_log.log("Resetting bot...")
        if state.is_running:
            await self.request_stop()
            await asyncio.sleep(self._settings.reset_grace_seconds)
            await self._cancel_active_run()

        await self._engine.close()
        output_log = run_log.outcome_log

        state.status = RunStatus.IDLE
        state.stop = CancellationToken()
        state.config = None
        state.current_line = 0
        state.total_lines = 0
        self._run_task = None

        try:
            await output_log.truncate()
            await run_log.log(f"Output log file {output_log.path} cleared.", persist=False)
        except OSError as exc:
            await run_log.log(
                f"Error clearing output log file {output_log.path}: {exc}", "warn", persist=False
            )

        await run_log.log("Bot reset to initial state.", persist=False)
        self._emit_status("Bot reset.", RunStatus.IDLE, currentLine=0, totalLines=0)
        run_log.emit(EventType.LOG_RESET, message="Logs and bot state reset.")
        return state.view()

    async def _cancel_active_run(self) -> None:
        task = self._run_task
        if task is None or task.done() or task is asyncio.current_task():
            return
        logger.warning("run_cancelled_by_reset")
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
