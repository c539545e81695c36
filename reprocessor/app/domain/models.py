"""Domain models."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from reprocessor.app.constants import FAILURE_KIND


@dataclass(frozen=True)
class WorkItem:
    """A stored record identified by `(partition_key, sort_key)`.

    `attributes` holds every other field of the record; the processor never
    looks inside it.
    """

    partition_key: str
    sort_key: str
    attributes: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.partition_key, str) or not self.partition_key:
            raise TypeError("work_item.partition_key must be a non-empty str")
        if not isinstance(self.sort_key, str) or not self.sort_key:
            raise TypeError("work_item.sort_key must be a non-empty str")
        if not isinstance(self.attributes, dict):
            raise TypeError("work_item.attributes must be a dict")

    @property
    def key(self) -> tuple[str, str]:
        return (self.partition_key, self.sort_key)


@dataclass(frozen=True)
class ProcessingError:
    """One failure event for a record during a `process_all` run."""

    partition_key: str
    sort_key: str
    message: str
    kind: str = FAILURE_KIND.BUSINESS

    @staticmethod
    def for_item(item: WorkItem, message: str, kind: str = FAILURE_KIND.BUSINESS) -> "ProcessingError":
        return ProcessingError(
            partition_key=item.partition_key,
            sort_key=item.sort_key,
            message=message,
            kind=kind,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "partition_key": self.partition_key,
            "sort_key": self.sort_key,
            "message": self.message,
            "kind": self.kind,
        }


@dataclass(frozen=True)
class ProcessorMetrics:
    total_processed: int
    total_attempts: int
    unprocessed_errors: int
    success_rate: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_processed": self.total_processed,
            "total_attempts": self.total_attempts,
            "unprocessed_errors": self.unprocessed_errors,
            "success_rate": self.success_rate,
        }


@dataclass(frozen=True)
class ProcessorConfig:
    """Immutable processor settings (value object)."""

    max_workers: int = 5
    max_retries: int = 3
    backoff_base_ms: int = 100
    backoff_multiplier: float = 2.0
    max_iterations: int = 10

    def __post_init__(self) -> None:
        if not isinstance(self.max_workers, int) or self.max_workers <= 0:
            raise ValueError("max_workers must be an int > 0")
        if not isinstance(self.max_retries, int) or self.max_retries < 0:
            raise ValueError("max_retries must be an int >= 0")
        if not isinstance(self.backoff_base_ms, int) or self.backoff_base_ms <= 0:
            raise ValueError("backoff_base_ms must be an int > 0")
        if not isinstance(self.backoff_multiplier, (int, float)) or self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be a number >= 1")
        if not isinstance(self.max_iterations, int) or self.max_iterations <= 0:
            raise ValueError("max_iterations must be an int > 0")


@dataclass(frozen=True)
class ItemOutcome:
    """Settled result of one item task; folded into processor state by the driver.

    `work_succeeded` is True when the work function completed, even if the
    follow-up mark-processed call failed afterwards.
    """

    item: WorkItem
    attempts: int
    work_succeeded: bool
    error: ProcessingError | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def needs_mark_only(self) -> bool:
        return self.work_succeeded and self.failed
