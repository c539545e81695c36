"""MongoDB implementation of RecordStore."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ASCENDING
from pymongo.errors import PyMongoError

from reprocessor.app.constants import PROCESSED_FLAG
from reprocessor.app.domain.errors import RecordNotFoundError, RecordStoreError
from reprocessor.app.domain.models import WorkItem
from reprocessor.app.infrastructure.persistence.mongo.connection import close_mongo_client

_RESERVED_FIELDS = frozenset({"_id", "partition_key", "sort_key", "processed", "created_at", "updated_at"})


def document_to_item(doc: dict[str, Any]) -> WorkItem:
    attributes = {k: v for k, v in doc.items() if k not in _RESERVED_FIELDS}
    return WorkItem(
        partition_key=str(doc["partition_key"]),
        sort_key=str(doc["sort_key"]),
        attributes=attributes,
    )


class MongoRecordStore:
    """Concrete implementation of RecordStore using MongoDB.

    Each record is one document: the item's attributes at top level plus
    `partition_key`, `sort_key`, `processed` (0/1) and timestamps.
    Driver errors are re-raised as RecordStoreError with the driver's message.
    """

    def __init__(self, collection: AsyncIOMotorCollection, *, client: Any | None = None) -> None:
        self._collection = collection
        self._client = client

    async def ensure_indexes(self) -> None:
        """Infrastructure bootstrap: create indexes. Not part of the port."""
        try:
            await self._collection.create_index(
                [("partition_key", ASCENDING), ("sort_key", ASCENDING)],
                unique=True,
                name="uq_record_key",
            )
            await self._collection.create_index("processed", name="idx_record_processed")
        except PyMongoError as exc:
            raise RecordStoreError(str(exc)) from exc

    async def put_item(self, item: WorkItem, *, processed: bool = False) -> None:
        now = datetime.now(timezone.utc)
        document = dict(item.attributes)
        document.update(
            {
                "partition_key": item.partition_key,
                "sort_key": item.sort_key,
                "processed": PROCESSED_FLAG.PROCESSED if processed else PROCESSED_FLAG.UNPROCESSED,
                "updated_at": now,
            }
        )
        try:
            await self._collection.update_one(
                {"partition_key": item.partition_key, "sort_key": item.sort_key},
                {"$set": document, "$setOnInsert": {"created_at": now}},
                upsert=True,
            )
        except PyMongoError as exc:
            raise RecordStoreError(str(exc)) from exc

    async def get_item(self, partition_key: str, sort_key: str) -> WorkItem | None:
        try:
            doc = await self._collection.find_one({"partition_key": partition_key, "sort_key": sort_key})
        except PyMongoError as exc:
            raise RecordStoreError(str(exc)) from exc
        return document_to_item(doc) if doc else None

    async def query_by_partition(self, partition_key: str) -> list[WorkItem]:
        return await self._find({"partition_key": partition_key})

    async def fetch_unprocessed(self) -> list[WorkItem]:
        return await self._find({"processed": PROCESSED_FLAG.UNPROCESSED})

    async def fetch_processed(self) -> list[WorkItem]:
        return await self._find({"processed": PROCESSED_FLAG.PROCESSED})

    async def mark_processed(self, partition_key: str, sort_key: str) -> None:
        try:
            result = await self._collection.update_one(
                {"partition_key": partition_key, "sort_key": sort_key},
                {
                    "$set": {
                        "processed": PROCESSED_FLAG.PROCESSED,
                        "updated_at": datetime.now(timezone.utc),
                    }
                },
            )
        except PyMongoError as exc:
            raise RecordStoreError(str(exc)) from exc
        if result.matched_count == 0:
            raise RecordNotFoundError(partition_key, sort_key)

    async def delete_item(self, partition_key: str, sort_key: str) -> None:
        try:
            await self._collection.delete_one({"partition_key": partition_key, "sort_key": sort_key})
        except PyMongoError as exc:
            raise RecordStoreError(str(exc)) from exc

    async def close(self) -> None:
        """Close underlying Mongo client when owned by this adapter."""
        if self._client is not None:
            await close_mongo_client(self._client)
            self._client = None

    async def _find(self, query: dict[str, Any]) -> list[WorkItem]:
        try:
            cursor = self._collection.find(query).sort([("partition_key", ASCENDING), ("sort_key", ASCENDING)])
            return [document_to_item(doc) async for doc in cursor]
        except PyMongoError as exc:
            raise RecordStoreError(str(exc)) from exc
