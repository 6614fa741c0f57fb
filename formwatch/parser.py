"""Parse fetched RFC 822 bytes into the fields the response filters need."""

from __future__ import annotations

import email
import email.message
import email.policy
import email.utils
from dataclasses import dataclass
from datetime import UTC, datetime
from html.parser import HTMLParser

_BLOCK_TAGS = {"br", "p", "div", "tr", "li", "h1", "h2", "h3", "h4", "h5", "h6", "table"}
_SKIP_TAGS = {"script", "style", "head"}


@dataclass
class MailMessage:
    """Headers and body of one candidate response email."""

    uid: str
    from_address: str
    subject: str
    date: datetime | None
    body_text: str | None
    body_html: str | None

    @property
    def body(self) -> str:
        """Plain text if present, otherwise the HTML part rendered as text."""
        if self.body_text and self.body_text.strip():
            return self.body_text
        if self.body_html:
            return html_to_text(self.body_html)
        return ""


class _TextExtractor(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self._chunks: list[str] = []
        self._skip_depth = 0

    def handle_starttag(self, tag: str, attrs) -> None:
        if tag in _SKIP_TAGS:
            self._skip_depth += 1
        elif tag in _BLOCK_TAGS:
            self._chunks.append("\n")

    def handle_endtag(self, tag: str) -> None:
        if tag in _SKIP_TAGS and self._skip_depth:
            self._skip_depth -= 1
        elif tag in _BLOCK_TAGS:
            self._chunks.append("\n")

    def handle_data(self, data: str) -> None:
        if not self._skip_depth:
            self._chunks.append(data)

    def text(self) -> str:
        lines = (" ".join(line.split()) for line in "".join(self._chunks).splitlines())
        return "\n".join(line for line in lines if line)


def html_to_text(html: str) -> str:
    """Render an HTML body to plain text, dropping scripts and styles."""
    extractor = _TextExtractor()
    extractor.feed(html)
    extractor.close()
    return extractor.text()


def parse_message(uid: str, raw_bytes: bytes) -> MailMessage:
    msg = email.message_from_bytes(raw_bytes, policy=email.policy.default)
    body_text, body_html = _extract_bodies(msg)
    return MailMessage(
        uid=uid,
        from_address=str(msg.get("From", "")),
        subject=str(msg.get("Subject", "")),
        date=_parse_date(msg.get("Date")),
        body_text=body_text,
        body_html=body_html,
    )


def _parse_date(value: object) -> datetime | None:
    if not value:
        return None
    try:
        parsed = email.utils.parsedate_to_datetime(str(value))
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _extract_bodies(msg: email.message.Message) -> tuple[str | None, str | None]:
    """Walk MIME parts and return (plain_text, html_text), skipping attachments."""
    body_text: str | None = None
    body_html: str | None = None

    for part in msg.walk():
        if part.get_content_maintype() == "multipart":
            continue
        if "attachment" in str(part.get("Content-Disposition", "")):
            continue

        content_type = part.get_content_type()
        try:
            payload = part.get_content()
        except (LookupError, ValueError):
            continue
        if not isinstance(payload, str):
            continue
        if content_type == "text/plain" and body_text is None:
            body_text = payload
        elif content_type == "text/html" and body_html is None:
            body_html = payload

    return body_text, body_html
