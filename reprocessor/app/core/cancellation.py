"""Cooperative cancellation for long-running reprocessing passes.

A token fires either when its event is set (e.g. by a signal handler) or when
its deadline passes. Backoff sleeps go through `CancellationToken.sleep` so a
waiting retry wakes up as soon as the token fires. Once the deadline has been
observed the token stays fired.
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from reprocessor.app.domain.errors import ProcessingCancelledError


class CancellationToken:
    def __init__(
        self,
        event: asyncio.Event | None = None,
        *,
        deadline_seconds: float | None = None,
    ) -> None:
        if deadline_seconds is not None and deadline_seconds < 0:
            raise ValueError("deadline_seconds must be >= 0")
        self._event = event if event is not None else asyncio.Event()
        self._deadline: float | None = None
        self._deadline_hit = False
        if deadline_seconds is not None:
            self._deadline = asyncio.get_running_loop().time() + float(deadline_seconds)

    @property
    def event(self) -> asyncio.Event:
        return self._event

    def cancel(self) -> None:
        self._event.set()

    def remaining_seconds(self) -> float | None:
        if self._deadline is None:
            return None
        if self._deadline_hit:
            return 0.0
        return max(self._deadline - asyncio.get_running_loop().time(), 0.0)

    @property
    def reason(self) -> str:
        if self._event.is_set():
            return "processing cancelled"
        return "processing deadline exceeded"

    @property
    def cancelled(self) -> bool:
        if self._event.is_set() or self._deadline_hit:
            return True
        remaining = self.remaining_seconds()
        if remaining is not None and remaining <= 0:
            self._deadline_hit = True
        return self._deadline_hit

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise ProcessingCancelledError(self.reason)

    async def sleep(
        self,
        seconds: float,
        sleeper: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Run `sleeper(seconds)`; raise ProcessingCancelledError if the token fires first.

        When the deadline falls inside the delay, `sleeper` only waits until the deadline.
        """
        self.raise_if_cancelled()
        delay = max(float(seconds), 0.0)
        remaining = self.remaining_seconds()
        deadline_first = remaining is not None and remaining <= delay
        if deadline_first:
            delay = remaining

        sleep_task = asyncio.ensure_future(sleeper(delay))
        cancel_task = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({sleep_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleep_task, cancel_task):
                if not task.done():
                    task.cancel()

        self.raise_if_cancelled()
        sleep_task.result()
        if deadline_first:
            self._deadline_hit = True
            raise ProcessingCancelledError(self.reason)
