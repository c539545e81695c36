"""Record store factory: selects and assembles persistence adapters."""
from __future__ import annotations

from reprocessor.app.config.settings import Settings
from reprocessor.app.constants import STORE_BACKEND
from reprocessor.app.infrastructure.persistence.inmemory.in_memory_record_store import InMemoryRecordStore
from reprocessor.app.infrastructure.persistence.mongo.connection import create_mongo_client
from reprocessor.app.infrastructure.persistence.mongo.mongo_record_store import MongoRecordStore
from reprocessor.app.ports.record_store import RecordStore


async def create_record_store(settings: Settings) -> RecordStore:
    """Select store adapter from configuration and return port type."""
    backend = settings.store_backend.strip().lower()

    if backend == STORE_BACKEND.MONGO:
        mongo_client = await create_mongo_client(settings)
        store = MongoRecordStore(
            mongo_client[settings.database_name][settings.database_collection],
            client=mongo_client,
        )
        try:
            await store.ensure_indexes()
        except Exception:
            # closes the owned client
            await store.close()
            raise
        return store

    if backend == STORE_BACKEND.INMEMORY:
        return InMemoryRecordStore()

    raise ValueError(f"Unsupported store backend: {backend}")
