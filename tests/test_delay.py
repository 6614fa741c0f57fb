"""Tests for formwatch.delay."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from formwatch import delay


class TestRandomDelay:
    def test_within_bounds(self):
        values = {delay.random_delay_ms(80, 200) for _ in range(500)}
        assert min(values) >= 80
        assert max(values) <= 200

    def test_degenerate_range(self):
        assert delay.random_delay_ms(250, 250) == 250


class TestPause:
    @pytest.mark.asyncio
    async def test_sleeps_for_drawn_delay(self):
        with (
            patch.object(delay, "random_delay_ms", return_value=1500),
            patch("formwatch.delay.asyncio.sleep", new_callable=AsyncMock) as sleep,
        ):
            slept = await delay.pause(delay.BETWEEN_STEPS)
        assert slept == 1500
        sleep.assert_awaited_once_with(1.5)
