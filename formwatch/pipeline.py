"""Record pipeline: drive the target page for one record, then wait for
the confirming email and record the outcome.
"""

from __future__ import annotations

import time
from pathlib import Path

import structlog
from playwright.async_api import Page

from . import delay
from .actions import ActionExecutor
from .browser import BrowserEngine, Session
from .config import RunConfig
from .logging import record_context
from .models import EventType, OutcomeRecord, Record
from .updates import RunLogger
from .watcher import ResponseWatcher

logger = structlog.get_logger()

DEFAULT_NAVIGATION_TIMEOUT_MS = 60_000


class RecordPipeline:
    """Processes one :class:`Record` end to end.

    ``Created -> SessionOpen -> Acting -> Submitted -> AwaitingResponse ->
    Resolved -> Closed``.  Any exception before the outcome is resolved is
    caught here: an error outcome is recorded, a screenshot attempted, and
    the session is still closed.  Nothing escapes :meth:`process`.
    """

    def __init__(
        self,
        engine: BrowserEngine,
        executor: ActionExecutor,
        watcher: ResponseWatcher,
        run_log: RunLogger,
        *,
        screenshot_dir: Path,
        navigation_timeout_ms: int = DEFAULT_NAVIGATION_TIMEOUT_MS,
    ) -> None:
        self._engine = engine
        self._executor = executor
        self._watcher = watcher
        self._log = run_log
        self._screenshot_dir = screenshot_dir
        self._navigation_timeout_ms = navigation_timeout_ms

    async def process(self, record: Record, config: RunConfig) -> OutcomeRecord:
        n = record.index
        with record_context(n):
            await self._log.log(
                f"Processing line {n}: text1={record.text1}, text2={record.text2}", "info"
            )
            session: Session | None = None
            try:
                if not self._engine.is_started:
                    await self._log.log(
                        "Global browser not initialized. Attempting to initialize.", "warn", n
                    )
                    await self._engine.start()

                session = await self._engine.open_session()
                await self._log.log("Isolated browser context and page created.", "debug", n)

                target_url = config.require_target()
                await session.page.goto(
                    target_url,
                    wait_until="networkidle",
                    timeout=self._navigation_timeout_ms,
                )
                await self._log.log(f"Navigated to {target_url}", "info", n)
                await delay.pause(delay.BETWEEN_STEPS)

                await self._act(session.page, record, config)

                await self._log.log("Waiting for email response...", "info", n)
                self._log.emit(EventType.STATUS_DETAIL, "Waiting for email...")
                value = await self._watcher.await_response(config.email_config, n)

                if value is not None:
                    await self._log.log(
                        f"Email response received and extracted: {value}", "success", n
                    )
                else:
                    await self._log.log(
                        "No relevant email response received within timeout.", "warn", n
                    )
                outcome = OutcomeRecord(line=record.line, value=value)
                await self._log.record_outcome(outcome, n)
                return outcome

            except Exception as exc:
                logger.exception("record_failed", input_line=record.line)
                await self._log.log(f'Error processing line "{record.line}": {exc}', "error", n)
                outcome = OutcomeRecord(line=record.line, error=str(exc))
                await self._log.record_outcome(outcome, n)
                if session is not None:
                    await self._screenshot(session.page, n)
                return outcome

            finally:
                if session is not None:
                    await self._close(session, n)

    async def _act(self, page: Page, record: Record, config: RunConfig) -> None:
        """Run the configured steps in order, pausing after each executed step."""
        n = record.index
        if config.button1_selector:
            await self._executor.click(page, config.button1_selector, n)
            await delay.pause(delay.BETWEEN_STEPS)

        if config.button2_selector:
            await self._executor.click(page, config.button2_selector, n)
            await delay.pause(delay.BETWEEN_STEPS)

        if config.input_field1_selector and record.text1:
            await self._executor.type_text(page, config.input_field1_selector, record.text1, n)
            await delay.pause(delay.BETWEEN_STEPS)

        if config.input_field2_selector and record.text2:
            await self._executor.type_text(page, config.input_field2_selector, record.text2, n)
            await delay.pause(delay.BETWEEN_STEPS)

        if config.submit_button_selector:
            await self._executor.click(page, config.submit_button_selector, n)
            await delay.pause(delay.BETWEEN_STEPS)

    async def _screenshot(self, page: Page, line_number: int) -> None:
        if page.is_closed():
            return
        path = self._screenshot_dir / (
            f"error_screenshot_line_{line_number}_{int(time.time() * 1000)}.png"
        )
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            await page.screenshot(path=str(path))
            await self._log.log(f"Screenshot taken: {path}", "debug", line_number)
        except Exception as exc:
            await self._log.log(f"Failed to take screenshot: {exc}", "error", line_number)

    async def _close(self, session: Session, line_number: int) -> None:
        try:
            await session.page.close()
            await self._log.log("Page closed.", "debug", line_number)
        except Exception as exc:
            await self._log.log(f"Error closing page: {exc}", "warn", line_number)
        try:
            await session.context.close()
            await self._log.log("Isolated browser context closed.", "debug", line_number)
        except Exception as exc:
            await self._log.log(f"Error closing browser context: {exc}", "warn", line_number)
