"""Response watcher: poll the mailbox for the email confirming a submission."""

from __future__ import annotations

import asyncio
import imaplib
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import UTC, date, datetime, timedelta

import structlog

from .config import EmailConfig, ImapLogin
from .errors import ConfigurationError
from .filters import FilterContext, evaluate
from .imap_client import AsyncImapClient
from .parser import MailMessage, parse_message
from .updates import RunLogger

logger = structlog.get_logger()

DEFAULT_WINDOW_SECONDS = 60.0
DEFAULT_POLL_INTERVAL_SECONDS = 7.0
DEFAULT_MAX_AGE_MINUTES = 15.0

_TRANSPORT_MARKERS = ("session ended", "socket")


def is_transport_error(exc: BaseException) -> bool:
    """True when *exc* means the IMAP session is gone and must be re-established."""
    if isinstance(exc, (imaplib.IMAP4.abort, OSError)):
        return True
    text = str(exc).lower()
    return any(marker in text for marker in _TRANSPORT_MARKERS)


class ResponseWatcher:
    """Bounded polling loop over one mailbox session.

    Each call to :meth:`await_response` owns its own IMAP connection from
    connect to disconnect.  The loop polls every ``poll_interval_seconds``
    until a message passes the filter chain or ``window_seconds`` elapse.
    """

    def __init__(
        self,
        run_log: RunLogger,
        *,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_age_minutes: float = DEFAULT_MAX_AGE_MINUTES,
        client_factory: Callable[[ImapLogin], AsyncImapClient] = AsyncImapClient,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._run_log = run_log
        self._window = window_seconds
        self._interval = poll_interval_seconds
        self._max_age = timedelta(minutes=max_age_minutes)
        self._client_factory = client_factory
        self._clock = clock
        self._sleep = sleep
        self._line_number: int | None = None

    async def _log(self, message: str, level: str = "debug") -> None:
        await self._run_log.log(
            f"EmailWatcher: {message}", level, self._line_number, persist=False
        )

    async def await_response(
        self,
        config: EmailConfig,
        line_number: int | None = None,
    ) -> str | None:
        """Wait for a matching email and return the extracted value, or ``None``."""
        self._line_number = line_number
        await self._log("Starting to watch for specific email response...", "info")

        try:
            login = config.login()
        except ConfigurationError as exc:
            await self._log(f"Error: {exc}", "error")
            return None

        client = self._client_factory(login)
        try:
            await self._log(f"Connecting to IMAP server {login.host}:{login.port}...")
            await client.connect()
        except Exception as exc:
            logger.exception("imap_connect_failed", host=login.host)
            await self._log(f"Failed to connect to IMAP for watching: {exc}", "error")
            return None

        connected_at = datetime.now(UTC)
        ctx = FilterContext(config=config, connected_at=connected_at, max_age=self._max_age)
        since = (connected_at - self._max_age).date()

        result: str | None = None
        attempts = 0
        started = self._clock()
        try:
            while (elapsed := self._clock() - started) < self._window:
                attempts += 1
                await self._log(
                    f"Checking for email... Time elapsed: {elapsed:.0f}s of {self._window:.0f}s"
                )
                result = await self._poll(client, ctx, since)
                if result is not None:
                    await self._log("Relevant email found and data extracted.", "info")
                    break
                remaining = self._window - (self._clock() - started)
                if remaining <= 0:
                    break
                await self._sleep(min(self._interval, remaining))
        finally:
            await client.disconnect()

        logger.info("watch_finished", attempts=attempts, found=result is not None)
        if result is not None:
            await self._log(f"Returning extracted data: {result}", "info")
        else:
            await self._log(
                "No relevant email found matching all criteria within the watch duration.",
                "warn",
            )
        return result

    async def _poll(self, client: AsyncImapClient, ctx: FilterContext, since: date) -> str | None:
        """Run one search-and-filter cycle. Never raises."""
        if not await client.is_connected():
            await self._log("IMAP not connected. Attempting to reconnect...", "warn")
            await client.disconnect()
            try:
                await client.connect()
            except Exception as exc:
                logger.exception("imap_reconnect_failed")
                await self._log(f"Failed to reconnect: {exc}", "error")
                return None

        try:
            uids = await client.search_unseen(since)
            if not uids:
                await self._log("No new messages found matching basic criteria.")
                return None
            await self._log(f"Found {len(uids)} new message(s) to filter.")

            async for message in self._newest_first(client, uids):
                await self._log(
                    f'Processing email from: {message.from_address or "N/A"}, '
                    f'subject: "{message.subject}"'
                )
                verdict = evaluate(message, ctx)
                if verdict.matched:
                    await self._log(
                        f'Extraction regex match found in email (subject: "{message.subject}"): '
                        f"{verdict.value}",
                        "info",
                    )
                    return verdict.value
                await self._log(f"{verdict.reason} Skipping.", verdict.level)

            await self._log("No email matched all specified filters and extraction pattern.")
            return None
        except Exception as exc:
            await self._log(f"Error searching or processing emails: {exc}", "error")
            if is_transport_error(exc):
                await self._log(
                    "IMAP session likely ended. Will attempt reconnect on next cycle.", "warn"
                )
                await client.disconnect()
            return None

    async def _newest_first(
        self,
        client: AsyncImapClient,
        uids: list[str],
    ) -> AsyncIterator[MailMessage]:
        for uid in reversed(uids):
            fetched = await client.fetch(uid)
            if fetched is None:
                await self._log(f"Skipping email {uid} with missing content.")
                continue
            yield parse_message(fetched.uid, fetched.raw_bytes)
