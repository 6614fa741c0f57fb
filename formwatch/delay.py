"""Bounded random waits used between interaction steps and between records."""

from __future__ import annotations

import asyncio
import random

# (min_ms, max_ms) bounds per call site
AFTER_SCROLL = (100, 300)
AFTER_HOVER = (200, 500)
AFTER_FOCUS = (100, 300)
BETWEEN_KEYS = (80, 200)
BETWEEN_STEPS = (500, 2000)
BETWEEN_RECORDS = (1000, 3000)


def random_delay_ms(min_ms: int, max_ms: int) -> int:
    """Return a uniformly distributed integer in ``[min_ms, max_ms]``."""
    return random.randint(min_ms, max_ms)


async def pause(bounds: tuple[int, int]) -> int:
    """Sleep for a random duration within *bounds*; return the milliseconds slept."""
    delay = random_delay_ms(*bounds)
    await asyncio.sleep(delay / 1000)
    return delay
