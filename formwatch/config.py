"""Configuration: process settings from environment variables and the
per-run configuration loaded from the JSON config file.

Process-level settings use pydantic-settings so every field can be
overridden via ``FORMWATCH_*`` env vars.  The run configuration is edited
through the control API and persisted as JSON; the camelCase keys written
by earlier versions of the UI are accepted as aliases.
"""

from __future__ import annotations

import json
from pathlib import Path

import structlog
from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError

logger = structlog.get_logger()


class Settings(BaseSettings):
    """Top-level process settings.

    All env vars are prefixed with ``FORMWATCH_``.
    Example: ``FORMWATCH_OUTPUT_LOG=/var/log/formwatch/output.log``
    """

    model_config = SettingsConfigDict(env_prefix="FORMWATCH_")

    # --- Files --------------------------------------------------------------
    config_file: Path = Field(
        default=Path("config.json"),
        description="JSON file holding the run configuration",
    )
    input_file: Path = Field(
        default=Path("input.txt"),
        description="Default record source, one record per line",
    )
    output_log: Path = Field(
        default=Path("logs/output.log"),
        description="Default append-only outcome log",
    )
    screenshot_dir: Path = Field(
        default=Path("logs"),
        description="Directory for error screenshots",
    )

    # --- Browser ------------------------------------------------------------
    headless: bool = Field(default=True, description="Launch Chromium headless")
    browser_executable_path: str | None = Field(
        default=None,
        description="Custom Chromium executable (defaults to the Playwright build)",
    )
    visibility_timeout_ms: int = Field(
        default=30_000,
        description="How long an element may take to become visible",
    )
    navigation_timeout_ms: int = Field(
        default=60_000,
        description="Hard timeout for loading the target page",
    )

    # --- Mailbox watch ------------------------------------------------------
    watch_window_seconds: float = Field(
        default=60.0,
        description="Maximum time spent waiting for a response email",
    )
    poll_interval_seconds: float = Field(
        default=7.0,
        description="Seconds between mailbox polls",
    )
    staleness_minutes: float = Field(
        default=15.0,
        description="Messages older than this (relative to connect time) are ignored",
    )

    # --- Run control --------------------------------------------------------
    reset_grace_seconds: float = Field(
        default=2.0,
        description="Wait after requesting a stop before a reset force-closes the browser",
    )

    # --- Server -------------------------------------------------------------
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=3000, description="Bind port")
    log_level: str = Field(default="INFO", description="Log level")
    log_json: bool = Field(
        default=True,
        description="Use JSON log output (True for prod, False for dev)",
    )


class ImapLogin(BaseModel):
    """The login subset of :class:`EmailConfig`."""

    model_config = ConfigDict(frozen=True)

    email: str
    password: SecretStr
    host: str
    port: int
    use_tls: bool = True


class EmailConfig(BaseModel):
    """Mailbox login plus the response filter and extraction settings."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    email: str = ""
    password: SecretStr = SecretStr("")
    imap_host: str = Field(default="", alias="imapHost")
    imap_port: int | None = Field(default=None, alias="imapPort")
    imap_tls: bool = Field(default=True, alias="imapTls")
    subject_filter: str | None = Field(default=None, alias="subjectFilter")
    body_keyword_filter: str | None = Field(default=None, alias="bodyKeywordFilter")
    extraction_regex: str | None = Field(default=None, alias="extractionRegex")

    @field_validator("subject_filter", "body_keyword_filter", "extraction_regex")
    @classmethod
    def _blank_is_absent(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value

    def login(self) -> ImapLogin:
        """Return the login subset, raising if any mandatory field is missing."""
        missing = [
            name
            for name, value in (
                ("email", self.email),
                ("password", self.password.get_secret_value()),
                ("imap_host", self.imap_host),
                ("imap_port", self.imap_port),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Email login configuration is incomplete (missing: {', '.join(missing)})"
            )
        assert self.imap_port is not None
        return ImapLogin(
            email=self.email,
            password=self.password,
            host=self.imap_host,
            port=self.imap_port,
            use_tls=self.imap_tls,
        )


class RunConfig(BaseModel):
    """Everything one run needs: target page, selectors and mailbox settings.

    Every selector is optional; steps whose selector is absent are skipped.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    target_url: str | None = Field(default=None, alias="targetUrl")
    button1_selector: str | None = Field(default=None, alias="button1Selector")
    button2_selector: str | None = Field(default=None, alias="button2Selector")
    input_field1_selector: str | None = Field(default=None, alias="inputField1Selector")
    input_field2_selector: str | None = Field(default=None, alias="inputField2Selector")
    submit_button_selector: str | None = Field(default=None, alias="submitButtonSelector")
    email_config: EmailConfig = Field(default_factory=EmailConfig, alias="emailConfig")
    input_file_path: Path | None = Field(default=None, alias="inputFilePath")
    output_log_path: Path | None = Field(default=None, alias="outputLogPath")

    @field_validator(
        "target_url",
        "button1_selector",
        "button2_selector",
        "input_field1_selector",
        "input_field2_selector",
        "submit_button_selector",
    )
    @classmethod
    def _blank_is_absent(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()

    def require_target(self) -> str:
        if not self.target_url:
            raise ConfigurationError("Configuration is incomplete: target URL is not set")
        return self.target_url


def load_run_config(path: Path) -> RunConfig:
    """Read the run configuration, returning an empty one if the file is
    missing or unreadable.
    """
    if not path.exists():
        return RunConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8") or "{}")
        return RunConfig.model_validate(data)
    except (OSError, ValueError) as exc:
        logger.error("run_config_unreadable", path=str(path), error=str(exc))
        return RunConfig()


def save_run_config(path: Path, config: RunConfig) -> None:
    """Persist *config* as JSON, secrets included."""
    data = config.model_dump(mode="json", exclude_none=True)
    data["email_config"]["password"] = config.email_config.password.get_secret_value()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
