"""In-memory record store for local mode and tests.

Records are kept in insertion order, keyed by `(partition_key, sort_key)`.
State is lost when the process exits.
"""
from __future__ import annotations

from typing import Any

from reprocessor.app.constants import PROCESSED_FLAG
from reprocessor.app.domain.errors import RecordNotFoundError
from reprocessor.app.domain.models import WorkItem


class InMemoryRecordStore:
    def __init__(self, items: list[WorkItem] | None = None) -> None:
        self._records: dict[tuple[str, str], dict[str, Any]] = {}
        for item in items or []:
            self._put(item, processed=False)

    def _put(self, item: WorkItem, *, processed: bool) -> None:
        self._records[item.key] = {
            "item": item,
            "processed": PROCESSED_FLAG.PROCESSED if processed else PROCESSED_FLAG.UNPROCESSED,
        }

    async def ensure_indexes(self) -> None:
        return

    async def put_item(self, item: WorkItem, *, processed: bool = False) -> None:
        self._put(item, processed=processed)

    async def get_item(self, partition_key: str, sort_key: str) -> WorkItem | None:
        record = self._records.get((partition_key, sort_key))
        return record["item"] if record else None

    async def is_processed(self, partition_key: str, sort_key: str) -> bool:
        record = self._records.get((partition_key, sort_key))
        if record is None:
            raise RecordNotFoundError(partition_key, sort_key)
        return record["processed"] == PROCESSED_FLAG.PROCESSED

    async def query_by_partition(self, partition_key: str) -> list[WorkItem]:
        return [r["item"] for key, r in self._records.items() if key[0] == partition_key]

    async def fetch_unprocessed(self) -> list[WorkItem]:
        return [r["item"] for r in self._records.values() if r["processed"] == PROCESSED_FLAG.UNPROCESSED]

    async def fetch_processed(self) -> list[WorkItem]:
        return [r["item"] for r in self._records.values() if r["processed"] == PROCESSED_FLAG.PROCESSED]

    async def mark_processed(self, partition_key: str, sort_key: str) -> None:
        record = self._records.get((partition_key, sort_key))
        if record is None:
            raise RecordNotFoundError(partition_key, sort_key)
        record["processed"] = PROCESSED_FLAG.PROCESSED

    async def delete_item(self, partition_key: str, sort_key: str) -> None:
        self._records.pop((partition_key, sort_key), None)

    async def close(self) -> None:
        return
