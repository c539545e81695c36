"""Mongo client bootstrap for the record store.

The client is pinged with bounded exponential backoff. Every failed ping closes
the client it was made on; once attempts run out the last driver error is raised
as RecordStoreError, like every other failure of the Mongo adapter.
"""
from __future__ import annotations

import inspect
from typing import Any, Callable

from loguru import logger
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from reprocessor.app.config.settings import Settings
from reprocessor.app.core import SERVICE_NAME
from reprocessor.app.core.backoff import exponential_backoff
from reprocessor.app.domain.errors import RecordStoreError

ClientFactory = Callable[..., Any]


def build_mongo_uri(settings: Settings) -> str:
    host = f"{settings.database_host}:{settings.database_port}"
    if settings.database_user and settings.database_password:
        return f"mongodb://{settings.database_user}:{settings.database_password}@{host}"
    return f"mongodb://{host}"


async def close_mongo_client(client: Any) -> None:
    # motor's close() is sync; some wrappers return an awaitable.
    res = client.close()
    if inspect.isawaitable(res):
        await res


async def create_mongo_client(
    settings: Settings,
    *,
    client_factory: ClientFactory = AsyncIOMotorClient,
) -> AsyncIOMotorClient:
    uri = build_mongo_uri(settings)
    max_attempts = settings.max_connection_attempts
    last_error: PyMongoError | None = None
    attempt = 0

    logger.bind(
        service_name=SERVICE_NAME,
        event="store_connecting",
        backend="mongo",
        host=settings.database_host,
        port=settings.database_port,
    ).info("")
    async for delay in exponential_backoff(
        settings.initial_backoff_seconds,
        settings.max_backoff_seconds,
        settings.connect_backoff_multiplier,
        max_attempts,
    ):
        attempt += 1
        client = client_factory(uri, serverSelectionTimeoutMS=settings.database_connection_timeout_ms)
        try:
            await client.admin.command("ping")
        except PyMongoError as exc:
            last_error = exc
            logger.bind(
                service_name=SERVICE_NAME,
                event="mongo_connect_failed",
                attempt=attempt,
                max_attempts=max_attempts,
                delay=delay,
            ).warning("mongo ping failed: {}", exc)
            await close_mongo_client(client)
            continue

        logger.bind(service_name=SERVICE_NAME, event="mongo_connected", attempt=attempt).info("")
        return client

    raise RecordStoreError(str(last_error)) from last_error
