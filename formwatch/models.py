"""Data models shared by the pipeline, the orchestrator and the control API."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

NOT_FOUND = "NOT_FOUND"


class RunStatus(str, Enum):
    """Lifecycle of the single active run."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"
    ERROR = "error"


class EventType(str, Enum):
    """Tags understood by update sinks."""

    LOG = "log"
    STATUS = "status"
    STATUS_DETAIL = "status_detail"
    PROGRESS_INIT = "progress_init"
    PROGRESS_UPDATE = "progress_update"
    ERROR = "error"
    LOG_RESET = "log_reset"
    CONFIG_SAVED = "config_saved"


class UpdateEvent(BaseModel):
    """A tagged event pushed to the update sink."""

    type: EventType = Field(description="Event tag")
    data: Any = Field(default=None, description="Event payload")
    message: str | None = Field(default=None, description="Human-readable summary")
    emitted_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Timestamp when the event was produced (UTC)",
    )


class RunStatusView(BaseModel):
    """Read-only snapshot of the run state, returned by status queries."""

    status: RunStatus
    is_running: bool
    stop_requested: bool
    current_line: int
    total_lines: int
    configured: bool


@dataclass(frozen=True)
class Record:
    """One valid input line split into its two values."""

    line: str
    index: int
    text1: str
    text2: str


@dataclass(frozen=True)
class ActionResult:
    """Outcome of a single UI interaction.

    ``performed`` is False when the element never became visible; the
    caller decides whether that matters.
    """

    performed: bool
    selector: str
    reason: str | None = None


@dataclass(frozen=True)
class OutcomeRecord:
    """Final result for one input line, as written to the outcome log."""

    line: str
    value: str | None = None
    error: str | None = None

    @property
    def found(self) -> bool:
        return self.value is not None

    def render(self) -> str:
        if self.error is not None:
            return f"Input: {self.line} | Error: {self.error}"
        return f"Input: {self.line} | EmailData: {self.value or NOT_FOUND}"
