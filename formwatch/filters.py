"""Ordered filter and extraction chain applied to each candidate message.

Stages run in a fixed order and the first rejecting stage ends the chain
for that message.  A message that passes every filter resolves the watch
only if the extraction pattern matches its body.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from .config import EmailConfig
from .parser import MailMessage


@dataclass(frozen=True)
class FilterContext:
    config: EmailConfig
    connected_at: datetime
    max_age: timedelta


@dataclass(frozen=True)
class Verdict:
    """Result of running the chain on one message.

    ``value`` is set when the message resolves the watch; otherwise
    ``reason`` says which stage rejected it.
    """

    value: str | None = None
    reason: str | None = None
    level: str = "debug"

    @property
    def matched(self) -> bool:
        return self.value is not None


Stage = Callable[[MailMessage, FilterContext], Verdict | None]


def staleness_guard(message: MailMessage, ctx: FilterContext) -> Verdict | None:
    if message.date is not None and ctx.connected_at - message.date > ctx.max_age:
        return Verdict(
            reason=f'Skipping older email by date: "{message.subject}" from {message.date.isoformat()}'
        )
    return None


def subject_filter(message: MailMessage, ctx: FilterContext) -> Verdict | None:
    wanted = ctx.config.subject_filter
    if wanted and wanted.lower() not in message.subject.lower():
        return Verdict(
            reason=f'Email subject "{message.subject}" does not match subjectFilter: "{wanted}".'
        )
    return None


def body_present(message: MailMessage, ctx: FilterContext) -> Verdict | None:
    if not message.body:
        return Verdict(reason=f'Email subject "{message.subject}" has no text or HTML body content.')
    return None


def keyword_filter(message: MailMessage, ctx: FilterContext) -> Verdict | None:
    wanted = ctx.config.body_keyword_filter
    if wanted and wanted.lower() not in message.body.lower():
        return Verdict(
            reason=(
                f'Email body does not contain bodyKeywordFilter: "{wanted}". '
                f'Skipping email with subject "{message.subject}".'
            )
        )
    return None


def extraction(message: MailMessage, ctx: FilterContext) -> Verdict:
    pattern = ctx.config.extraction_regex
    if not pattern:
        return Verdict(reason="No extraction regex provided. Filters passed, but nothing to extract.")
    try:
        value = extract(pattern, message.body)
    except re.error as exc:
        return Verdict(reason=f'Invalid extraction regex "{pattern}": {exc}', level="error")
    if value is None:
        return Verdict(
            reason=(
                f'Extraction regex did not match for email with subject: "{message.subject}". '
                f"Regex: {pattern}"
            ),
            level="warn",
        )
    return Verdict(value=value)


FILTERS: tuple[Stage, ...] = (staleness_guard, subject_filter, body_present, keyword_filter)


def extract(pattern: str, text: str) -> str | None:
    """Apply *pattern* to *text*.

    Returns the first capture group when it matched something, otherwise
    the full match; ``None`` when nothing (or only an empty string) matched.
    Raises :class:`re.error` for an invalid pattern.
    """
    match = re.search(pattern, text)
    if match is None or not match.group(0):
        return None
    if match.re.groups and match.group(1):
        return match.group(1)
    return match.group(0)


def evaluate(message: MailMessage, ctx: FilterContext) -> Verdict:
    """Run the full chain on *message*."""
    for stage in FILTERS:
        verdict = stage(message, ctx)
        if verdict is not None:
            return verdict
    return extraction(message, ctx)
