from __future__ import annotations

import asyncio
import random
from typing import Any, Awaitable, Callable, Sequence, TypeVar

from loguru import logger

from reprocessor.app.constants import FAILURE_KIND
from reprocessor.app.core import SERVICE_NAME
from reprocessor.app.core.cancellation import CancellationToken
from reprocessor.app.core.retry import error_message, is_retryable_error, with_retry
from reprocessor.app.domain.errors import ProcessingCancelledError
from reprocessor.app.domain.models import (
    ItemOutcome,
    ProcessingError,
    ProcessorConfig,
    ProcessorMetrics,
    WorkItem,
)
from reprocessor.app.ports.record_store import RecordStore
from reprocessor.app.ports.work_function import WorkFunction

T = TypeVar("T")
RecordKey = tuple[str, str]


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


def chunk_items(items: Sequence[WorkItem], size: int) -> list[list[WorkItem]]:
    """Split `items` into contiguous chunks of at most `size` elements."""
    if size <= 0:
        raise ValueError("chunk size must be > 0")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


class BatchRetryProcessor:
    """
    Reprocesses unprocessed records until none are left or max_iterations is hit.

    Iteration 0 pulls every unprocessed record from the store; later iterations only
    retry the records that failed in the previous one. Each iteration is split into
    chunks of max_workers records; a chunk runs concurrently and must fully settle
    before the next chunk starts, so at most max_workers records are in flight.

    Item tasks never mutate processor state. They return an ItemOutcome and the
    driver folds outcomes into the counters and error list after the chunk settles.

    A record whose work function succeeded but whose mark-processed call failed is
    recorded as REPOSITORY_UPDATE_FAILURE and only the mark-processed call is retried
    on the next iteration.
    """

    def __init__(
        self,
        store: RecordStore,
        config: ProcessorConfig | None = None,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self._store = store
        self._config = config or ProcessorConfig()
        self._sleep = sleep
        self._rng = rng
        self._errors: list[ProcessingError] = []
        self._total_processed = 0
        self._total_attempts = 0

    @property
    def config(self) -> ProcessorConfig:
        return self._config

    async def process_all(
        self,
        work: WorkFunction,
        *,
        cancellation: CancellationToken | None = None,
    ) -> list[ProcessingError]:
        self._errors = []
        self._total_processed = 0
        self._total_attempts = 0

        config = self._config
        retry_set: list[WorkItem] = []
        mark_only: set[RecordKey] = set()
        iteration = 0
        _log(
            "processing_started",
            max_workers=config.max_workers,
            max_retries=config.max_retries,
            max_iterations=config.max_iterations,
        )

        while True:
            if cancellation is not None and cancellation.cancelled:
                self._log_cancelled(iteration, cancellation.reason, outstanding=len(retry_set))
                break

            if iteration == 0:
                try:
                    candidates = await self._fetch_unprocessed(cancellation)
                except ProcessingCancelledError as exc:
                    self._log_cancelled(iteration, str(exc), outstanding=0)
                    break
            else:
                candidates = retry_set

            if not candidates:
                break

            if iteration >= config.max_iterations:
                logger.bind(
                    service_name=SERVICE_NAME,
                    event="max_iterations_reached",
                    max_iterations=config.max_iterations,
                    outstanding=len(candidates),
                ).warning(
                    "Max iterations ({}) reached with {} records outstanding; stopping",
                    config.max_iterations,
                    len(candidates),
                )
                break

            _log("iteration_started", iteration=iteration, candidates=len(candidates))
            retry_set, mark_only = await self._process_batch(
                candidates,
                work,
                mark_only=mark_only,
                cancellation=cancellation,
            )
            _log("iteration_completed", iteration=iteration, failed=len(retry_set))
            iteration += 1

        metrics = self.get_metrics()
        _log("processing_completed", iterations=iteration, **metrics.to_dict())
        return self._errors

    def get_errors(self) -> list[ProcessingError]:
        return self._errors

    def get_metrics(self) -> ProcessorMetrics:
        processed = self._total_processed
        errors = len(self._errors)
        success_rate = ((processed - errors) / processed) * 100 if processed > 0 else 0.0
        return ProcessorMetrics(
            total_processed=processed,
            total_attempts=self._total_attempts,
            unprocessed_errors=errors,
            success_rate=success_rate,
        )

    def is_retryable_error(self, error: object) -> bool:
        return is_retryable_error(error)

    async def process_record(
        self,
        item: WorkItem,
        work: WorkFunction,
        *,
        mark_only: bool = False,
        cancellation: CancellationToken | None = None,
    ) -> ItemOutcome:
        """Run work then mark_processed for one record, each with its own retry budget.

        Never raises for item failures; the failure is carried in the returned outcome.
        With mark_only=True the work function is skipped (its effect already happened).
        """
        attempts = 0

        def count_attempt() -> None:
            nonlocal attempts
            attempts += 1

        if not mark_only:
            try:
                await self._retry(lambda: work(item), count_attempt, cancellation)
            except Exception as exc:
                return ItemOutcome(
                    item=item,
                    attempts=attempts,
                    work_succeeded=False,
                    error=ProcessingError.for_item(item, error_message(exc), FAILURE_KIND.BUSINESS),
                )

        try:
            await self._retry(
                lambda: self._store.mark_processed(item.partition_key, item.sort_key),
                count_attempt,
                cancellation,
            )
        except Exception as exc:
            return ItemOutcome(
                item=item,
                attempts=attempts,
                work_succeeded=True,
                error=ProcessingError.for_item(
                    item,
                    error_message(exc),
                    FAILURE_KIND.REPOSITORY_UPDATE,
                ),
            )
        return ItemOutcome(item=item, attempts=attempts, work_succeeded=True)

    async def _fetch_unprocessed(self, cancellation: CancellationToken | None) -> list[WorkItem]:
        return await self._retry(self._store.fetch_unprocessed, self._count_attempt, cancellation)

    async def _process_batch(
        self,
        records: list[WorkItem],
        work: WorkFunction,
        *,
        mark_only: set[RecordKey],
        cancellation: CancellationToken | None,
    ) -> tuple[list[WorkItem], set[RecordKey]]:
        failed: list[WorkItem] = []
        next_mark_only: set[RecordKey] = set()

        for index, chunk in enumerate(chunk_items(records, self._config.max_workers)):
            if cancellation is not None and cancellation.cancelled:
                break

            outcomes = await asyncio.gather(
                *(
                    self.process_record(
                        record,
                        work,
                        mark_only=record.key in mark_only,
                        cancellation=cancellation,
                    )
                    for record in chunk
                )
            )

            chunk_failures = 0
            for outcome in outcomes:
                self._total_attempts += outcome.attempts
                if outcome.work_succeeded and outcome.item.key not in mark_only:
                    self._total_processed += 1
                if outcome.error is None:
                    continue
                chunk_failures += 1
                self._errors.append(outcome.error)
                failed.append(outcome.item)
                if outcome.needs_mark_only:
                    next_mark_only.add(outcome.item.key)
                _log(
                    "record_failed",
                    partition_key=outcome.error.partition_key,
                    sort_key=outcome.error.sort_key,
                    kind=outcome.error.kind,
                    error=outcome.error.message,
                )
            _log("chunk_settled", chunk=index, size=len(chunk), failed=chunk_failures)

        return failed, next_mark_only

    async def _retry(
        self,
        task: Callable[[], Awaitable[T]],
        on_attempt: Callable[[], None],
        cancellation: CancellationToken | None,
    ) -> T:
        return await with_retry(
            task,
            self._config.max_retries,
            self._config.backoff_base_ms,
            self._config.backoff_multiplier,
            sleep=self._sleep,
            rng=self._rng,
            on_attempt=on_attempt,
            cancellation=cancellation,
        )

    def _count_attempt(self) -> None:
        self._total_attempts += 1

    def _log_cancelled(self, iteration: int, reason: str, *, outstanding: int) -> None:
        logger.bind(
            service_name=SERVICE_NAME,
            event="processing_cancelled",
            iteration=iteration,
            outstanding=outstanding,
        ).warning("Reprocessing cancelled: {}", reason)
