"""Best-effort UI interactions: click and type with human-like pacing."""

from __future__ import annotations

from playwright.async_api import Locator, Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from . import delay
from .models import ActionResult
from .updates import RunLogger

DEFAULT_VISIBILITY_TIMEOUT_MS = 30_000


class ActionExecutor:
    """Performs one interaction at a time against a page.

    An element that does not become visible within the visibility timeout
    is reported as ``ActionResult(performed=False)`` and a warning is
    logged; nothing is raised.  Any other browser error propagates.
    """

    def __init__(
        self,
        run_log: RunLogger,
        *,
        visibility_timeout_ms: int = DEFAULT_VISIBILITY_TIMEOUT_MS,
    ) -> None:
        self._log = run_log
        self._timeout = visibility_timeout_ms

    async def _find_visible(self, page: Page, selector: str) -> Locator | None:
        locator = page.locator(selector).first
        try:
            await locator.wait_for(state="visible", timeout=self._timeout)
        except PlaywrightTimeoutError:
            return None
        return locator

    async def click(self, page: Page, selector: str, line_number: int | None = None) -> ActionResult:
        """Scroll to, hover over and click the element matching *selector*."""
        await self._log.log(f"Attempting to click element: {selector}", "debug", line_number)
        element = await self._find_visible(page, selector)
        if element is None:
            await self._log.log(f"Element {selector} not found for clicking.", "warn", line_number)
            return ActionResult(performed=False, selector=selector, reason="not visible")

        await element.scroll_into_view_if_needed()
        await delay.pause(delay.AFTER_SCROLL)

        await element.hover()
        await self._log.log(f"Hovered over element: {selector}", "debug", line_number)
        await delay.pause(delay.AFTER_HOVER)

        await element.click()
        await self._log.log(f"Clicked element: {selector}", "success", line_number)
        return ActionResult(performed=True, selector=selector)

    async def type_text(
        self,
        page: Page,
        selector: str,
        text: str,
        line_number: int | None = None,
    ) -> ActionResult:
        """Focus the element matching *selector* and type *text* one key at a time."""
        await self._log.log(
            f'Attempting to type "{text}" into element: {selector}', "debug", line_number
        )
        element = await self._find_visible(page, selector)
        if element is None:
            await self._log.log(f"Element {selector} not found for typing.", "warn", line_number)
            return ActionResult(performed=False, selector=selector, reason="not visible")

        await element.scroll_into_view_if_needed()
        await delay.pause(delay.AFTER_SCROLL)
        await element.click()
        await delay.pause(delay.AFTER_FOCUS)

        for char in text:
            await page.keyboard.type(char, delay=delay.random_delay_ms(*delay.BETWEEN_KEYS))

        await self._log.log(
            f'Finished typing "{text}" into element: {selector}', "success", line_number
        )
        return ActionResult(performed=True, selector=selector)
