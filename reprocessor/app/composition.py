"""Reprocessor composition root: build and lifecycle-manage concrete dependencies.

Composition may: import concrete classes, call factories, store interface types,
manage high-level lifecycle.
"""
from __future__ import annotations

from loguru import logger

from reprocessor.app.application.batch_retry_processor import BatchRetryProcessor
from reprocessor.app.config.settings import Settings
from reprocessor.app.infrastructure.persistence.factory import create_record_store
from reprocessor.app.ports.record_store import RecordStore


class ProcessorDependencies:
    """Holds wired reprocessor dependencies and their lifecycle."""

    def __init__(self, *, settings: Settings) -> None:
        self._settings = settings
        self._store: RecordStore | None = None
        self._processor: BatchRetryProcessor | None = None

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def store(self) -> RecordStore:
        if self._store is None:
            raise RuntimeError("store is not initialized")
        return self._store

    @property
    def processor(self) -> BatchRetryProcessor:
        if self._processor is None:
            raise RuntimeError("processor is not initialized")
        return self._processor

    @property
    def connected(self) -> bool:
        return self._store is not None

    async def connect(self) -> None:
        self._store = await create_record_store(self._settings)
        self._processor = BatchRetryProcessor(self._store, self._settings.processor_config())

    async def close(self) -> None:
        if self._store is not None:
            try:
                await self._store.close()
            except Exception as exc:
                logger.warning("store close failed: {}", exc)

        self._store = None
        self._processor = None


def create_processor_dependencies(settings: Settings | None = None) -> ProcessorDependencies:
    return ProcessorDependencies(settings=settings or Settings())
