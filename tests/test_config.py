"""Tests for formwatch.config."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from formwatch.config import EmailConfig, RunConfig, Settings, load_run_config, save_run_config
from formwatch.errors import ConfigurationError


class TestSettings:
    def test_defaults(self):
        cfg = Settings()
        assert cfg.output_log == Path("logs/output.log")
        assert cfg.watch_window_seconds == 60.0
        assert cfg.poll_interval_seconds == 7.0
        assert cfg.staleness_minutes == 15.0
        assert cfg.visibility_timeout_ms == 30_000
        assert cfg.navigation_timeout_ms == 60_000
        assert cfg.port == 3000

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("FORMWATCH_PORT", "8099")
        monkeypatch.setenv("FORMWATCH_HEADLESS", "false")
        monkeypatch.setenv("FORMWATCH_POLL_INTERVAL_SECONDS", "2.5")
        cfg = Settings()
        assert cfg.port == 8099
        assert cfg.headless is False
        assert cfg.poll_interval_seconds == 2.5


class TestEmailConfig:
    def test_login_subset(self, email_config: EmailConfig):
        login = email_config.login()
        assert login.email == "bot@example.com"
        assert login.password.get_secret_value() == "app-password"
        assert login.host == "imap.test.com"
        assert login.port == 993
        assert login.use_tls is True

    def test_login_incomplete_raises(self):
        cfg = EmailConfig(email="bot@example.com", imap_host="imap.test.com")
        with pytest.raises(ConfigurationError, match="password"):
            cfg.login()

    def test_blank_filters_are_absent(self):
        cfg = EmailConfig(subject_filter="   ", body_keyword_filter="", extraction_regex=None)
        assert cfg.subject_filter is None
        assert cfg.body_keyword_filter is None
        assert cfg.extraction_regex is None

    def test_tls_defaults_true(self):
        assert EmailConfig().imap_tls is True


class TestRunConfig:
    def test_camel_case_keys(self):
        cfg = RunConfig.model_validate(
            {
                "targetUrl": "https://example.com",
                "button1Selector": "#a",
                "inputField1Selector": "#email",
                "emailConfig": {
                    "email": "x@example.com",
                    "password": "p",
                    "imapHost": "imap.example.com",
                    "imapPort": 993,
                    "extractionRegex": "code(\\d+)",
                },
            }
        )
        assert cfg.target_url == "https://example.com"
        assert cfg.button1_selector == "#a"
        assert cfg.button2_selector is None
        assert cfg.email_config.imap_port == 993
        assert cfg.email_config.extraction_regex == "code(\\d+)"

    def test_blank_selectors_are_absent(self):
        cfg = RunConfig(target_url="https://example.com", submit_button_selector="  ")
        assert cfg.submit_button_selector is None

    def test_require_target(self):
        with pytest.raises(ConfigurationError):
            RunConfig().require_target()
        assert RunConfig(target_url="https://x.test").require_target() == "https://x.test"


class TestLoadSave:
    def test_missing_file_gives_empty_config(self, tmp_path: Path):
        cfg = load_run_config(tmp_path / "nope.json")
        assert cfg.target_url is None

    def test_invalid_json_gives_empty_config(self, tmp_path: Path):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        assert load_run_config(path) == RunConfig()

    def test_save_keeps_password(self, tmp_path: Path, run_config: RunConfig):
        path = tmp_path / "config.json"
        save_run_config(path, run_config)

        stored = json.loads(path.read_text())
        assert stored["email_config"]["password"] == "app-password"

        loaded = load_run_config(path)
        assert loaded.target_url == run_config.target_url
        assert loaded.email_config.password.get_secret_value() == "app-password"
