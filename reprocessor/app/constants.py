"""Reprocessor-level constants shared across modules."""
from __future__ import annotations


class FAILURE_KIND:
    BUSINESS = "BUSINESS_FAILURE"
    REPOSITORY_UPDATE = "REPOSITORY_UPDATE_FAILURE"


class PROCESSED_FLAG:
    UNPROCESSED = 0
    PROCESSED = 1


class STORE_BACKEND:
    MONGO = "mongo"
    INMEMORY = "inmemory"


# Lower-cased substrings marking an error as permanent.
NON_RETRYABLE_PATTERNS: tuple[str, ...] = (
    "validation",
    "malformed",
    "invalid",
    "not found",
    "unauthorized",
    "forbidden",
    "access denied",
    "resource already exists",
    "conditional check failed",
)
