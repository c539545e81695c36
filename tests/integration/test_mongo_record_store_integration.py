from __future__ import annotations

import asyncio
import inspect
import os
import uuid

import pytest

from reprocessor.app.application.batch_retry_processor import BatchRetryProcessor
from reprocessor.app.config.settings import Settings
from reprocessor.app.domain.models import ProcessorConfig, WorkItem
from reprocessor.app.infrastructure.persistence.mongo.connection import create_mongo_client
from reprocessor.app.infrastructure.persistence.mongo.mongo_record_store import MongoRecordStore


def _build_settings() -> Settings:
    return Settings(
        store_backend="mongo",
        database_host=os.getenv("DATABASE_HOST", "localhost"),
        database_port=int(os.getenv("DATABASE_PORT", "27017")),
        database_user=os.getenv("DATABASE_USER", ""),
        database_password=os.getenv("DATABASE_PASSWORD", ""),
        database_name=os.getenv("DATABASE_NAME", "reprocessor_test"),
        database_collection=os.getenv("DATABASE_COLLECTION", "records"),
        initial_backoff_seconds=float(os.getenv("INITIAL_BACKOFF_SECONDS", "1")),
        max_backoff_seconds=float(os.getenv("MAX_BACKOFF_SECONDS", "5")),
        max_connection_attempts=int(os.getenv("MAX_CONNECTION_ATTEMPTS", "3")),
    )


@pytest.mark.integration
def test_mongo_connection_ping_is_live() -> None:
    async def _run() -> None:
        client = await create_mongo_client(_build_settings())
        try:
            ping = await client.admin.command("ping")
            assert ping.get("ok") == 1
        finally:
            res = client.close()
            if inspect.isawaitable(res):
                await res

    asyncio.run(_run())


@pytest.mark.integration
def test_mongo_store_reprocessing_roundtrip() -> None:
    async def _run() -> None:
        settings = _build_settings()
        client = await create_mongo_client(settings)
        collection = client[settings.database_name][settings.database_collection]
        store = MongoRecordStore(collection, client=client)
        partition_key = f"acct-{uuid.uuid4()}"
        items = [
            WorkItem(partition_key=partition_key, sort_key=f"2026-02-17T{i:02d}:00:00Z", attributes={"amount": i})
            for i in range(4)
        ]
        seen: list[tuple[str, str]] = []

        async def work(item: WorkItem) -> None:
            if item.partition_key == partition_key:
                seen.append(item.key)

        try:
            await store.ensure_indexes()
            for item in items:
                await store.put_item(item)

            processor = BatchRetryProcessor(store, ProcessorConfig(max_workers=2, backoff_base_ms=10))
            errors = await processor.process_all(work)

            assert [e for e in errors if e.partition_key == partition_key] == []
            assert sorted(seen) == sorted(i.key for i in items)
            remaining = await store.query_by_partition(partition_key)
            assert len(remaining) == 4
            unprocessed = await store.fetch_unprocessed()
            assert all(i.partition_key != partition_key for i in unprocessed)
            fetched = await store.get_item(*items[0].key)
            assert fetched is not None and fetched.attributes == {"amount": 0}
        finally:
            await collection.delete_many({"partition_key": partition_key})
            await store.close()

    asyncio.run(_run())
