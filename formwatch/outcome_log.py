"""Append-only text log holding run log lines and per-record outcomes."""

from __future__ import annotations

import asyncio
from pathlib import Path

import structlog

logger = structlog.get_logger()


class OutcomeLog:
    """Durable log file.

    Every write is an append; the only way to remove content is
    :meth:`truncate`, used by a reset.  Blocking file I/O runs in a worker
    thread so the event loop stays responsive.
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    async def ensure_directory(self) -> None:
        await asyncio.to_thread(self._path.parent.mkdir, parents=True, exist_ok=True)

    async def append(self, entry: str) -> None:
        """Append *entry* as one line. Raises :class:`OSError` on failure."""
        if not entry.endswith("\n"):
            entry += "\n"
        await asyncio.to_thread(self._append_sync, entry)

    def _append_sync(self, entry: str) -> None:
        with self._path.open("a", encoding="utf-8") as fh:
            fh.write(entry)

    async def truncate(self) -> None:
        """Empty the log, creating it if needed."""
        await self.ensure_directory()
        await asyncio.to_thread(self._path.write_text, "", encoding="utf-8")
        logger.info("outcome_log_truncated", path=str(self._path))

    async def read_text(self) -> str | None:
        """Return the log content, or ``None`` if the file does not exist."""
        if not self._path.exists():
            return None
        return await asyncio.to_thread(self._path.read_text, encoding="utf-8")
