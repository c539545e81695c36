"""Unit tests for Mongo client bootstrap and store factory cleanup, using fake clients."""
from __future__ import annotations

import asyncio
from typing import Any

import pytest
from pymongo.errors import OperationFailure, ServerSelectionTimeoutError

from reprocessor.app.config.settings import Settings
from reprocessor.app.domain.errors import RecordStoreError
from reprocessor.app.infrastructure.persistence import factory
from reprocessor.app.infrastructure.persistence.mongo.connection import build_mongo_uri, create_mongo_client


class _Admin:
    def __init__(self, error: Exception | None) -> None:
        self._error = error

    async def command(self, name: str) -> dict[str, Any]:
        if self._error is not None:
            raise self._error
        return {"ok": 1}


class _Collection:
    def __init__(self, index_error: Exception | None) -> None:
        self._index_error = index_error

    async def create_index(self, keys: Any, **kwargs: Any) -> str:
        if self._index_error is not None:
            raise self._index_error
        return kwargs.get("name", "")


class FakeMongoClient:
    def __init__(
        self,
        uri: str = "",
        *,
        ping_error: Exception | None = None,
        index_error: Exception | None = None,
        **kwargs: Any,
    ) -> None:
        self.uri = uri
        self.kwargs = kwargs
        self.admin = _Admin(ping_error)
        self._index_error = index_error
        self.closed = False

    def __getitem__(self, name: str) -> Any:
        return {"records": _Collection(self._index_error)}

    def close(self) -> None:
        self.closed = True


class ClientFactory:
    """Hands out one fake client per connect attempt with the queued ping errors."""

    def __init__(self, ping_errors: list[Exception | None]) -> None:
        self._ping_errors = list(ping_errors)
        self.clients: list[FakeMongoClient] = []

    def __call__(self, uri: str, **kwargs: Any) -> FakeMongoClient:
        client = FakeMongoClient(uri, ping_error=self._ping_errors.pop(0), **kwargs)
        self.clients.append(client)
        return client


def _settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "store_backend": "mongo",
        "database_collection": "records",
        "initial_backoff_seconds": 0.001,
        "max_backoff_seconds": 0.001,
        "max_connection_attempts": 2,
    }
    values.update(overrides)
    return Settings(**values)


def test_build_mongo_uri_with_and_without_credentials():
    assert build_mongo_uri(_settings(database_host="db", database_port=27018)) == "mongodb://db:27018"
    assert (
        build_mongo_uri(_settings(database_host="db", database_user="svc", database_password="pw"))
        == "mongodb://svc:pw@db:27017"
    )


def test_connect_retries_then_returns_live_client():
    clients = ClientFactory([ServerSelectionTimeoutError("server selection timed out"), None])

    client = asyncio.run(create_mongo_client(_settings(), client_factory=clients))

    assert client is clients.clients[1]
    assert clients.clients[0].closed is True
    assert client.closed is False
    assert client.kwargs == {"serverSelectionTimeoutMS": 5000}


def test_connect_exhausted_raises_record_store_error_and_closes_clients():
    clients = ClientFactory(
        [
            ServerSelectionTimeoutError("server selection timed out"),
            ServerSelectionTimeoutError("connection refused"),
        ]
    )

    with pytest.raises(RecordStoreError, match="connection refused"):
        asyncio.run(create_mongo_client(_settings(), client_factory=clients))

    assert len(clients.clients) == 2
    assert all(c.closed for c in clients.clients)


def test_factory_closes_client_when_index_creation_fails(monkeypatch):
    client = FakeMongoClient(index_error=OperationFailure("not authorized on reprocessor"))

    async def fake_connect(settings: Settings) -> FakeMongoClient:
        return client

    monkeypatch.setattr(factory, "create_mongo_client", fake_connect)

    with pytest.raises(RecordStoreError, match="not authorized"):
        asyncio.run(factory.create_record_store(_settings()))

    assert client.closed is True


def test_factory_returns_store_when_indexes_are_created(monkeypatch):
    client = FakeMongoClient()

    async def fake_connect(settings: Settings) -> FakeMongoClient:
        return client

    monkeypatch.setattr(factory, "create_mongo_client", fake_connect)

    store = asyncio.run(factory.create_record_store(_settings()))

    assert client.closed is False
    asyncio.run(store.close())
    assert client.closed is True
