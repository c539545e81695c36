"""Abstract interface for record persistence (port)."""
from __future__ import annotations

from typing import Protocol

from reprocessor.app.domain.models import WorkItem


class RecordStore(Protocol):
    """Port: record storage read by the processor. Implementations live in infrastructure."""

    async def fetch_unprocessed(self) -> list[WorkItem]: ...

    async def mark_processed(self, partition_key: str, sort_key: str) -> None:
        """Set the processed flag; raise RecordNotFoundError when the key is absent."""
        ...

    async def get_item(self, partition_key: str, sort_key: str) -> WorkItem | None: ...

    async def close(self) -> None:
        """Release resources (e.g. DB client). No-op allowed if nothing to close."""
        ...
