"""Tests for formwatch.shutdown."""

from __future__ import annotations

import asyncio
import os
import signal
from unittest.mock import AsyncMock

import pytest

from formwatch.shutdown import install_signal_handlers


class TestInstallSignalHandlers:
    @pytest.mark.asyncio
    async def test_sigterm_requests_stop(self):
        request_stop = AsyncMock()
        install_signal_handlers(request_stop)

        os.kill(os.getpid(), signal.SIGTERM)
        # The event loop needs an I/O poll cycle to process the signal
        # self-pipe; sleep(0) only runs scheduled callbacks.
        await asyncio.sleep(0.05)
        request_stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_each_signal_requests_stop_again(self):
        request_stop = AsyncMock()
        install_signal_handlers(request_stop)

        os.kill(os.getpid(), signal.SIGTERM)
        await asyncio.sleep(0.05)
        os.kill(os.getpid(), signal.SIGTERM)
        await asyncio.sleep(0.05)
        assert request_stop.await_count == 2

    @pytest.mark.asyncio
    async def test_handlers_registered_for_both_signals(self):
        install_signal_handlers(AsyncMock())
        loop = asyncio.get_running_loop()

        assert loop.remove_signal_handler(signal.SIGTERM) is True
        assert loop.remove_signal_handler(signal.SIGINT) is True
