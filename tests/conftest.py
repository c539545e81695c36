from __future__ import annotations

from typing import Any

import pytest
from loguru import logger

from tests.fakes import RecordingSleep


@pytest.fixture()
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture()
def log_records() -> list[dict[str, Any]]:
    """Collect loguru records emitted during the test."""
    records: list[dict[str, Any]] = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    logger.remove(handler_id)
