"""Port: caller-supplied per-record business logic."""
from __future__ import annotations

from typing import Awaitable, Callable

from reprocessor.app.domain.models import WorkItem

WorkFunction = Callable[[WorkItem], Awaitable[None]]
