"""Shared runtime constants for the reprocessor service."""
from __future__ import annotations

SERVICE_NAME = "reprocessor"
