"""Exception types raised across the package."""

from __future__ import annotations


class FormwatchError(Exception):
    """Base class for errors raised by formwatch."""


class ConfigurationError(FormwatchError):
    """A mandatory configuration value is missing or invalid.

    Fatal to the run (missing target URL) or to a single mailbox watch
    (incomplete login).
    """


class BrowserNotStartedError(FormwatchError):
    """A session was requested before the shared browser was launched."""
