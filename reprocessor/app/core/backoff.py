"""Backoff utilities.

`exponential_backoff` is an async generator used for connection bootstrap: it
yields the current delay for the caller to attempt an operation, then sleeps
before the next attempt.

`compute_backoff_delay_ms` is the per-record formula used by the retry wrapper:
`base_ms * multiplier ** attempt` plus a jitter drawn from `[0, base_ms * 0.1)`.
"""
from __future__ import annotations

import asyncio
import random
from typing import AsyncIterator, Callable

JITTER_RATIO = 0.1


async def exponential_backoff(
    initial_delay: float,
    max_delay: float,
    multiplier: float,
    max_attempts: int,
) -> AsyncIterator[float]:
    delay = initial_delay
    for attempt in range(1, max_attempts + 1):
        yield delay
        if attempt < max_attempts:
            delay = min(delay * multiplier, max_delay)
            await asyncio.sleep(delay)


def compute_backoff_delay_ms(
    attempt: int,
    base_ms: float,
    multiplier: float,
    rng: Callable[[], float] = random.random,
) -> float:
    """Delay before retrying after 0-based `attempt` failed."""
    jitter = rng() * base_ms * JITTER_RATIO
    return base_ms * multiplier**attempt + jitter
