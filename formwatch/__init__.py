"""formwatch: submit records through a web form and collect the value each
submission's confirmation email carries.

Public API re-exported here for convenience::

    from formwatch import Orchestrator, RunConfig, Settings
"""

from .actions import ActionExecutor
from .browser import BrowserEngine, Session
from .config import EmailConfig, ImapLogin, RunConfig, Settings, load_run_config, save_run_config
from .delay import random_delay_ms
from .errors import BrowserNotStartedError, ConfigurationError, FormwatchError
from .filters import FilterContext, Verdict, evaluate, extract
from .imap_client import AsyncImapClient, FetchedEmail
from .logging import setup_logging
from .models import (
    NOT_FOUND,
    ActionResult,
    EventType,
    OutcomeRecord,
    Record,
    RunStatus,
    RunStatusView,
    UpdateEvent,
)
from .orchestrator import CancellationToken, Orchestrator, RunState
from .outcome_log import OutcomeLog
from .parser import MailMessage, html_to_text, parse_message
from .pipeline import RecordPipeline
from .records import load_lines, parse_record
from .updates import Broadcaster, RunLogger, UpdateSink
from .watcher import ResponseWatcher

__all__ = [
    "NOT_FOUND",
    "ActionExecutor",
    "ActionResult",
    "AsyncImapClient",
    "BrowserEngine",
    "BrowserNotStartedError",
    "Broadcaster",
    "CancellationToken",
    "ConfigurationError",
    "EmailConfig",
    "EventType",
    "FetchedEmail",
    "FilterContext",
    "FormwatchError",
    "ImapLogin",
    "MailMessage",
    "Orchestrator",
    "OutcomeLog",
    "OutcomeRecord",
    "Record",
    "RecordPipeline",
    "ResponseWatcher",
    "RunConfig",
    "RunLogger",
    "RunState",
    "RunStatus",
    "RunStatusView",
    "Session",
    "Settings",
    "UpdateEvent",
    "UpdateSink",
    "Verdict",
    "evaluate",
    "extract",
    "html_to_text",
    "load_lines",
    "load_run_config",
    "parse_message",
    "parse_record",
    "random_delay_ms",
    "save_run_config",
    "setup_logging",
]
