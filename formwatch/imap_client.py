"""Async IMAP client wrapping stdlib imaplib with asyncio.to_thread."""

from __future__ import annotations

import asyncio
import imaplib
from dataclasses import dataclass
from datetime import date

import structlog

from .config import ImapLogin

logger = structlog.get_logger()

MAILBOX = "INBOX"


@dataclass
class FetchedEmail:
    """Raw email data fetched from IMAP."""

    uid: str
    raw_bytes: bytes


class AsyncImapClient:
    """Async-friendly IMAP client for a single mailbox session.

    All blocking ``imaplib`` operations are wrapped with
    ``asyncio.to_thread()`` to avoid blocking the event loop.  Fetching a
    message with ``RFC822`` sets its ``\\Seen`` flag on the server.
    """

    def __init__(self, login: ImapLogin, *, mailbox: str = MAILBOX) -> None:
        self._login = login
        self._mailbox = mailbox
        self._conn: imaplib.IMAP4_SSL | imaplib.IMAP4 | None = None

    @property
    def connected(self) -> bool:
        return self._conn is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Connect, login, and select the mailbox."""
        logger.info("imap_connecting", host=self._login.host, port=self._login.port)
        self._conn = await asyncio.to_thread(self._connect_sync)
        logger.info("imap_connected", host=self._login.host, mailbox=self._mailbox)

    def _connect_sync(self) -> imaplib.IMAP4:
        conn: imaplib.IMAP4
        if self._login.use_tls:
            conn = imaplib.IMAP4_SSL(self._login.host, self._login.port)
        else:
            conn = imaplib.IMAP4(self._login.host, self._login.port)
        try:
            conn.login(self._login.email, self._login.password.get_secret_value())
            status, data = conn.select(self._mailbox)
            if status != "OK":
                raise imaplib.IMAP4.error(f"Cannot select {self._mailbox}: {data!r}")
        except Exception:
            try:
                conn.shutdown()
            except OSError:
                pass
            raise
        return conn

    async def disconnect(self) -> None:
        """Close mailbox and logout. Safe to call when not connected."""
        if self._conn is not None:
            conn, self._conn = self._conn, None
            await asyncio.to_thread(self._disconnect_sync, conn)
            logger.info("imap_disconnected")

    @staticmethod
    def _disconnect_sync(conn: imaplib.IMAP4) -> None:
        try:
            conn.close()
        except (imaplib.IMAP4.error, OSError):
            pass
        try:
            conn.logout()
        except (imaplib.IMAP4.error, OSError):
            pass

    async def is_connected(self) -> bool:
        """Check connection liveness with a NOOP command."""
        if self._conn is None:
            return False
        try:
            status, _ = await asyncio.to_thread(self._conn.noop)
            return status == "OK"
        except (imaplib.IMAP4.error, OSError):
            return False

    # ------------------------------------------------------------------
    # Message retrieval
    # ------------------------------------------------------------------

    async def search_unseen(self, since: date) -> list[str]:
        """Return UIDs of unseen messages received on or after *since*, oldest first.

        IMAP date search is day-granular (not timestamp-granular).
        """
        assert self._conn is not None, "Not connected"
        criteria = f"(UNSEEN SINCE {since.strftime('%d-%b-%Y')})"
        status, data = await asyncio.to_thread(self._conn.uid, "SEARCH", None, criteria)
        if status != "OK" or not data or not data[0]:
            return []
        uids = [uid.decode() for uid in data[0].split()]
        logger.debug("imap_search_complete", criteria=criteria, found=len(uids))
        return uids

    async def fetch(self, uid: str) -> FetchedEmail | None:
        """Fetch the full message for *uid*, or ``None`` if the server returned nothing."""
        assert self._conn is not None, "Not connected"
        status, msg_data = await asyncio.to_thread(self._conn.uid, "FETCH", uid, "(RFC822)")
        if status != "OK" or not msg_data or not isinstance(msg_data[0], tuple):
            return None
        raw_bytes: bytes = msg_data[0][1]
        return FetchedEmail(uid=uid, raw_bytes=raw_bytes)
