"""Tests for formwatch.filters."""

from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta

import pytest

from formwatch.config import EmailConfig
from formwatch.filters import FilterContext, evaluate, extract
from formwatch.parser import MailMessage

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


def _message(
    *,
    subject: str = "Please Confirm your account",
    body: str = "Your VERIFICATION code123",
    date: datetime | None = NOW,
    html: str | None = None,
) -> MailMessage:
    return MailMessage(
        uid="1",
        from_address="noreply@example.com",
        subject=subject,
        date=date,
        body_text=body,
        body_html=html,
    )


def _ctx(**config) -> FilterContext:
    defaults = dict(
        email="bot@example.com",
        password="p",
        imap_host="imap.test.com",
        imap_port=993,
        subject_filter="confirm",
        body_keyword_filter="verification",
        extraction_regex=r"code(\d+)",
    )
    defaults.update(config)
    return FilterContext(
        config=EmailConfig(**defaults),
        connected_at=NOW,
        max_age=timedelta(minutes=15),
    )


class TestExtract:
    def test_first_group(self):
        assert extract(r"code(\d+)", "your code123 here") == "123"

    def test_full_match_without_groups(self):
        assert extract(r"code\d+", "your code123 here") == "code123"

    def test_empty_group_falls_back_to_full_match(self):
        assert extract(r"code(\d*)x", "codex") == "codex"

    def test_no_match(self):
        assert extract(r"code(\d+)", "nothing") is None

    def test_invalid_pattern_raises(self):
        with pytest.raises(re.error):
            extract(r"code(\d+", "code1")


class TestEvaluate:
    def test_all_filters_pass(self):
        verdict = evaluate(_message(), _ctx())
        assert verdict.matched
        assert verdict.value == "123"

    def test_full_match_when_pattern_has_no_groups(self):
        assert evaluate(_message(), _ctx(extraction_regex=r"code\d+")).value == "code123"

    def test_subject_mismatch(self):
        verdict = evaluate(_message(subject="Newsletter"), _ctx())
        assert not verdict.matched
        assert "subjectFilter" in verdict.reason

    def test_no_subject_filter_accepts_any_subject(self):
        assert evaluate(_message(subject="anything at all"), _ctx(subject_filter=None)).matched

    def test_keyword_mismatch(self):
        verdict = evaluate(_message(body="code123 only"), _ctx())
        assert not verdict.matched
        assert "bodyKeywordFilter" in verdict.reason

    def test_stale_message_skipped(self):
        old = NOW - timedelta(minutes=16)
        verdict = evaluate(_message(date=old), _ctx())
        assert not verdict.matched
        assert "older" in verdict.reason

    def test_message_within_staleness_window(self):
        assert evaluate(_message(date=NOW - timedelta(minutes=14)), _ctx()).matched

    def test_undated_message_is_not_stale(self):
        assert evaluate(_message(date=None), _ctx()).matched

    def test_empty_body_skipped(self):
        verdict = evaluate(_message(body=""), _ctx(body_keyword_filter=None))
        assert not verdict.matched
        assert "no text or HTML body" in verdict.reason

    def test_html_body_used_when_no_plain_text(self):
        msg = _message(body="", html="<p>verification code77</p>")
        assert evaluate(msg, _ctx()).value == "77"

    def test_no_pattern_never_resolves(self):
        verdict = evaluate(_message(), _ctx(extraction_regex=None))
        assert not verdict.matched
        assert "nothing to extract" in verdict.reason

    def test_invalid_pattern_is_error_level(self):
        verdict = evaluate(_message(), _ctx(extraction_regex=r"code(\d+"))
        assert not verdict.matched
        assert verdict.level == "error"

    def test_pattern_without_match(self):
        verdict = evaluate(_message(body="verification pending"), _ctx())
        assert not verdict.matched
        assert verdict.level == "warn"
