"""Cooperative stop on SIGTERM / SIGINT for command-line runs."""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Awaitable, Callable

import structlog

logger = structlog.get_logger()


def install_signal_handlers(request_stop: Callable[[], Awaitable[object]]) -> None:
    """Register SIGTERM and SIGINT handlers that call *request_stop*.

    Call this once from the running event loop.  The record in progress
    is allowed to finish; the run loop exits before the next one.
    """
    loop = asyncio.get_running_loop()
    pending: set[asyncio.Task[object]] = set()

    def _handle(sig: signal.Signals) -> None:
        logger.info("shutdown_signal_received", signal=sig.name)
        task = loop.create_task(request_stop())
        pending.add(task)
        task.add_done_callback(pending.discard)

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _handle, sig)
