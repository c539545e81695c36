"""Retry wrapper with exponential backoff and jitter.

`with_retry` runs an async task up to `max_retries + 1` times. Failures whose
message matches a permanent-error pattern (or that are not exceptions at all)
are re-raised on the spot without sleeping; the last failure is re-raised once
the budget is spent.
"""
from __future__ import annotations

import asyncio
import random
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

from reprocessor.app.constants import NON_RETRYABLE_PATTERNS
from reprocessor.app.core import SERVICE_NAME
from reprocessor.app.core.backoff import compute_backoff_delay_ms
from reprocessor.app.core.cancellation import CancellationToken

T = TypeVar("T")


def error_message(error: object) -> str:
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    return str(error)


def is_retryable_error(error: object) -> bool:
    if not isinstance(error, Exception):
        return False
    message = error_message(error).lower()
    return not any(pattern in message for pattern in NON_RETRYABLE_PATTERNS)


async def with_retry(
    task: Callable[[], Awaitable[T]],
    max_retries: int,
    base_ms: float,
    multiplier: float,
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    rng: Callable[[], float] = random.random,
    on_attempt: Callable[[], None] | None = None,
    cancellation: CancellationToken | None = None,
) -> T:
    attempt = 0
    while True:
        if on_attempt is not None:
            on_attempt()
        try:
            return await task()
        except Exception as exc:
            logger.bind(
                service_name=SERVICE_NAME,
                event="attempt_failed",
                attempt=attempt,
                error=error_message(exc),
            ).debug("")
            if not is_retryable_error(exc) or attempt >= max_retries:
                raise

            delay_seconds = compute_backoff_delay_ms(attempt, base_ms, multiplier, rng) / 1000.0
            if cancellation is not None:
                await cancellation.sleep(delay_seconds, sleeper=sleep)
            else:
                await sleep(delay_seconds)
            attempt += 1
