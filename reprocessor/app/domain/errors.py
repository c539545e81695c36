"""Domain exceptions for the reprocessor."""
from __future__ import annotations


class ProcessorError(Exception):
    """Base error for reprocessing failures."""


class ProcessingCancelledError(ProcessorError):
    """Raised when a cancellation token fires during a reprocessing pass."""


class RecordStoreError(ProcessorError):
    """Raised when the record store backend fails. Message is the backend's."""


class RecordNotFoundError(RecordStoreError):
    """Raised when a record key does not exist in the store (non-retryable)."""

    def __init__(self, partition_key: str, sort_key: str) -> None:
        self.partition_key = partition_key
        self.sort_key = sort_key
        super().__init__(f"record not found: {partition_key}/{sort_key}")


class WorkFunctionImportError(ProcessorError):
    """Raised when the configured work function cannot be imported."""
