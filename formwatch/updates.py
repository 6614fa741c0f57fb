"""Update sinks and the per-run log line producer."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import Any, Protocol

import structlog

from .models import EventType, OutcomeRecord, UpdateEvent
from .outcome_log import OutcomeLog

logger = structlog.get_logger()

# Levels used in user-facing log lines, mapped to stdlib level names.
_LEVELS = {
    "debug": "debug",
    "info": "info",
    "success": "info",
    "warn": "warning",
    "error": "error",
}


class UpdateSink(Protocol):
    """Anything that accepts update events synchronously."""

    def __call__(self, event: UpdateEvent) -> None: ...


def null_sink(event: UpdateEvent) -> None:
    """Sink that discards every event."""


class Broadcaster:
    """Fans update events out to any number of subscriber queues.

    Each subscriber (one per WebSocket client) gets its own bounded queue;
    a subscriber that stops draining its queue loses events rather than
    blocking the run.
    """

    def __init__(self, max_queue_size: int = 1000) -> None:
        self._max_queue_size = max_queue_size
        self._subscribers: set[asyncio.Queue[UpdateEvent]] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue[UpdateEvent]:
        queue: asyncio.Queue[UpdateEvent] = asyncio.Queue(maxsize=self._max_queue_size)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[UpdateEvent]) -> None:
        self._subscribers.discard(queue)

    def __call__(self, event: UpdateEvent) -> None:
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning("update_dropped", event_type=event.type.value)


class RunLogger:
    """Produces timestamped, leveled log lines for the current run.

    Each line is pushed to the update sink as a ``log`` event and appended
    to the outcome log.  A failure to write the file is reported to the
    sink; it never interrupts the run.
    """

    def __init__(self, sink: UpdateSink, outcome_log: OutcomeLog) -> None:
        self.sink = sink
        self.outcome_log = outcome_log

    def emit(self, event_type: EventType, data: Any = None, message: str | None = None) -> None:
        self.sink(UpdateEvent(type=event_type, data=data, message=message))

    @staticmethod
    def format_line(message: str, level: str = "info", line_number: int | None = None) -> str:
        timestamp = datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
        prefix = f"Line {line_number}: " if line_number else ""
        return f"{timestamp} [{level.upper()}] {prefix}{message}\n"

    async def log(
        self,
        message: str,
        level: str = "info",
        line_number: int | None = None,
        *,
        persist: bool = True,
    ) -> None:
        """Emit a log line; with *persist* False it is not written to the outcome log."""
        entry = self.format_line(message, level, line_number)
        log_method = getattr(logger, _LEVELS.get(level, "info"))
        log_method(
            "run_log",
            message=message,
            run_level=level,
            line=line_number,
        )
        self.emit(EventType.LOG, entry)
        if not persist:
            return
        try:
            await self.outcome_log.append(entry)
        except OSError as exc:
            logger.error(
                "outcome_log_write_failed",
                path=str(self.outcome_log.path),
                error=str(exc),
            )
            self.emit(
                EventType.LOG,
                self.format_line(
                    f"Failed to write to output log {self.outcome_log.path}: {exc}",
                    "error",
                ),
            )

    async def record_outcome(self, outcome: OutcomeRecord, line_number: int) -> None:
        if outcome.error is not None:
            level = "error"
        elif outcome.found:
            level = "info"
        else:
            level = "warn"
        await self.log(outcome.render(), level, line_number)
