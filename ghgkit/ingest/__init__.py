"""Activity import and the repositories it persists through."""

from .activity_import import (
    ActivityRecord,
    ActivityRepository,
    ImportCommitter,
    ReportingPeriod,
    Site,
    compute_idempotency_key,
)
from .memory_client import InMemoryClient
from .postgres_client import PostgresClient

__all__ = [
    "ActivityRecord",
    "ActivityRepository",
    "ImportCommitter",
    "ReportingPeriod",
    "Site",
    "compute_idempotency_key",
    "InMemoryClient",
    "PostgresClient",
]
