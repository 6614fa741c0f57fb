"""Shared Playwright browser with per-record isolated sessions."""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from .errors import BrowserNotStartedError

logger = structlog.get_logger()

VIEWPORT = {"width": 1366, "height": 768}
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/99.0.4844.51 Safari/537.36"
)
LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
    "--window-size=1366,768",
    "--disable-infobars",
]


@dataclass
class Session:
    """One isolated browser context and its page, owned by a single record."""

    context: BrowserContext
    page: Page


class BrowserEngine:
    """Long-lived Chromium instance shared by every record of a run.

    Launched once at run start (or lazily by the first session) and
    closed once at run end.  Records never share a :class:`Session`:
    each gets a fresh context with its own cookies and storage.
    """

    def __init__(self, *, headless: bool = True, executable_path: str | None = None) -> None:
        self._headless = headless
        self._executable_path = executable_path
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None

    @property
    def is_started(self) -> bool:
        return self._browser is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Launch Chromium. A no-op if already running."""
        if self._browser is not None:
            return
        logger.info("browser_starting", headless=self._headless)
        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(
                headless=self._headless,
                args=LAUNCH_ARGS,
                executable_path=self._executable_path,
            )
        except Exception:
            await self._playwright.stop()
            self._playwright = None
            raise
        logger.info("browser_started")

    async def close(self) -> None:
        """Close the browser and stop Playwright, logging (not raising) failures."""
        browser, playwright = self._browser, self._playwright
        self._browser = None
        self._playwright = None
        if browser is not None:
            try:
                await browser.close()
                logger.info("browser_closed")
            except Exception as exc:
                logger.error("browser_close_failed", error=str(exc))
        if playwright is not None:
            try:
                await playwright.stop()
            except Exception as exc:
                logger.warning("playwright_stop_failed", error=str(exc))

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def open_session(self) -> Session:
        """Create an isolated context with the fixed viewport and user agent."""
        if self._browser is None:
            raise BrowserNotStartedError("Browser has not been started")
        context = await self._browser.new_context(viewport=VIEWPORT, user_agent=USER_AGENT)
        try:
            page = await context.new_page()
        except Exception:
            await context.close()
            raise
        return Session(context=context, page=page)
