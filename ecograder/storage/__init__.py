"""
Storage Module.

Version-checked record storage, schema migrations and the expiring job store.
"""

from ecograder.storage.jobs import (
    InMemoryJobStore,
    JobStore,
    RedisJobStore,
    VideoJobTracker,
    create_job_store,
)
from ecograder.storage.migrations import CURRENT_SCHEMA_VERSION, run_migrations
from ecograder.storage.repository import (
    ConcurrencyError,
    DuplicateSubmissionError,
    InMemoryRepository,
    NotFoundError,
    Repository,
    retry_on_conflict,
)

__all__ = [
    "CURRENT_SCHEMA_VERSION",
    "ConcurrencyError",
    "DuplicateSubmissionError",
    "InMemoryJobStore",
    "InMemoryRepository",
    "JobStore",
    "NotFoundError",
    "RedisJobStore",
    "Repository",
    "VideoJobTracker",
    "create_job_store",
    "retry_on_conflict",
]
