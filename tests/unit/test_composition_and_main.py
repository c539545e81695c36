from __future__ import annotations

import asyncio

import pytest

from reprocessor.app.composition import create_processor_dependencies
from reprocessor.app.config.settings import Settings
from reprocessor.app.domain.errors import WorkFunctionImportError
from reprocessor.app.infrastructure.persistence.factory import create_record_store
from reprocessor.app.infrastructure.persistence.inmemory.in_memory_record_store import InMemoryRecordStore
from reprocessor.app.main import run_processor


def test_dependencies_wire_inmemory_store_and_processor():
    settings = Settings(store_backend="inmemory", max_workers=4, max_iterations=2)
    deps = create_processor_dependencies(settings)

    async def _run():
        await deps.connect()
        wired = (deps.store, deps.processor.config)
        await deps.close()
        return wired

    store, config = asyncio.run(_run())

    assert isinstance(store, InMemoryRecordStore)
    assert config.max_workers == 4
    assert config.max_iterations == 2
    assert deps.connected is False
    with pytest.raises(RuntimeError, match="processor is not initialized"):
        _ = deps.processor


def test_close_logs_store_close_failure(log_records):
    class BrokenStore(InMemoryRecordStore):
        async def close(self) -> None:
            raise RuntimeError("close failed")

    deps = create_processor_dependencies(Settings(store_backend="inmemory"))
    deps._store = BrokenStore()

    asyncio.run(deps.close())

    assert deps.connected is False
    assert any("store close failed" in r["message"] for r in log_records)


def test_unsupported_store_backend_is_rejected():
    with pytest.raises(ValueError, match="Unsupported store backend"):
        asyncio.run(create_record_store(Settings(store_backend="cassandra")))


def test_run_processor_requires_work_function():
    with pytest.raises(WorkFunctionImportError, match="WORK_FUNCTION"):
        asyncio.run(run_processor(Settings(store_backend="inmemory", work_function="")))


def test_run_processor_on_empty_store_reports_no_failures(log_records):
    settings = Settings(store_backend="inmemory", work_function="asyncio:sleep")

    failures = asyncio.run(run_processor(settings))

    assert failures == 0
    events = [r["extra"].get("event") for r in log_records]
    assert "processor_started" in events
    assert "processor_metrics" in events
    assert "processor_stopped" in events
