"""Shared test fixtures for the formwatch test suite."""

from __future__ import annotations

from datetime import UTC, datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import format_datetime
from pathlib import Path

import pytest

from formwatch import delay
from formwatch.config import EmailConfig, RunConfig, Settings
from formwatch.models import UpdateEvent
from formwatch.outcome_log import OutcomeLog
from formwatch.updates import RunLogger


class RecordingSink:
    """Update sink that keeps every event for assertions."""

    def __init__(self) -> None:
        self.events: list[UpdateEvent] = []

    def __call__(self, event: UpdateEvent) -> None:
        self.events.append(event)

    def of_type(self, type_: str) -> list[UpdateEvent]:
        return [e for e in self.events if e.type.value == type_]

    def log_lines(self) -> list[str]:
        return [e.data for e in self.of_type("log")]


@pytest.fixture
def no_delays(monkeypatch):
    """Make every random pause zero-length."""
    monkeypatch.setattr(delay, "random_delay_ms", lambda min_ms, max_ms: 0)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        config_file=tmp_path / "config.json",
        input_file=tmp_path / "input.txt",
        output_log=tmp_path / "logs" / "output.log",
        screenshot_dir=tmp_path / "logs",
        reset_grace_seconds=0.0,
        log_json=False,
    )


@pytest.fixture
def email_config() -> EmailConfig:
    return EmailConfig(
        email="bot@example.com",
        password="app-password",
        imap_host="imap.test.com",
        imap_port=993,
        imap_tls=True,
        subject_filter="Confirm",
        body_keyword_filter="verification",
        extraction_regex=r"code(\d+)",
    )


@pytest.fixture
def run_config(email_config: EmailConfig) -> RunConfig:
    return RunConfig(
        target_url="https://form.example.com/signup",
        button1_selector="#cookie-accept",
        button2_selector="#open-form",
        input_field1_selector="#email",
        input_field2_selector="#code",
        submit_button_selector="button[type=submit]",
        email_config=email_config,
    )


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def outcome_log(tmp_path: Path) -> OutcomeLog:
    path = tmp_path / "logs" / "output.log"
    path.parent.mkdir(parents=True, exist_ok=True)
    return OutcomeLog(path)


@pytest.fixture
def run_log(sink: RecordingSink, outcome_log: OutcomeLog) -> RunLogger:
    return RunLogger(sink, outcome_log)


# ------------------------------------------------------------------
# Sample EML builders
# ------------------------------------------------------------------


def build_plain_email(
    *,
    subject: str = "Please confirm your signup",
    body: str = "Your verification code123 is ready.",
    from_addr: str = "noreply@form.example.com",
    date: datetime | None = None,
) -> bytes:
    """Build a simple plain-text email as raw bytes."""
    msg = MIMEText(body, "plain")
    msg["Subject"] = subject
    msg["From"] = from_addr
    msg["To"] = "bot@example.com"
    msg["Date"] = format_datetime(date or datetime.now(UTC))
    return msg.as_bytes()


def build_html_email(*, body_html: str, subject: str = "Please confirm") -> bytes:
    msg = MIMEText(body_html, "html")
    msg["Subject"] = subject
    msg["From"] = "noreply@form.example.com"
    msg["To"] = "bot@example.com"
    msg["Date"] = format_datetime(datetime.now(UTC))
    return msg.as_bytes()


def build_alternative_email(*, body_text: str, body_html: str) -> bytes:
    msg = MIMEMultipart("alternative")
    msg["Subject"] = "Please confirm"
    msg["From"] = "noreply@form.example.com"
    msg["To"] = "bot@example.com"
    msg["Date"] = format_datetime(datetime.now(UTC))
    msg.attach(MIMEText(body_text, "plain"))
    msg.attach(MIMEText(body_html, "html"))
    return msg.as_bytes()


@pytest.fixture
def plain_eml_bytes() -> bytes:
    return build_plain_email()


@pytest.fixture
def plain_email_factory():
    """Factory building plain-text EML bytes with overrides."""
    return build_plain_email


@pytest.fixture
def html_email_factory():
    return build_html_email


@pytest.fixture
def alternative_email_factory():
    return build_alternative_email
