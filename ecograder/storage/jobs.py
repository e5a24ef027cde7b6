"""
Short-lived job status storage with expiry.

Lesson video generation runs in the background; its progress is kept in
a job store whose entries expire after a TTL so finished and abandoned
jobs don't accumulate. Two stores are provided:

- InMemoryJobStore: process-local, evicts lazily on access.
- RedisJobStore: one key per job written with `SET ... EX ttl`.
"""

import logging
import secrets
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Iterator

import redis

from ecograder.config import Settings, get_settings
from ecograder.models import VideoJob, VideoJobStatus

logger = logging.getLogger(__name__)

DEFAULT_JOB_TTL_SECONDS = 3600
REDIS_KEY_PREFIX = "ecograder:video-job:"


class JobStore(ABC):
    """Keyed storage for job records with a time-to-live."""

    @abstractmethod
    def put(self, job: VideoJob) -> None:
        """Insert or replace a job and restart its TTL."""

    @abstractmethod
    def get(self, job_id: str) -> VideoJob | None:
        """Return a live job, or None if unknown or expired."""

    @abstractmethod
    def delete(self, job_id: str) -> None: ...

    @abstractmethod
    def jobs(self) -> Iterator[VideoJob]:
        """Iterate over live jobs."""


class InMemoryJobStore(JobStore):
    def __init__(
        self,
        ttl_seconds: float = DEFAULT_JOB_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[float, VideoJob]] = {}

    def put(self, job: VideoJob) -> None:
        with self._lock:
            self._entries[job.job_id] = (self._clock() + self._ttl, job)

    def get(self, job_id: str) -> VideoJob | None:
        with self._lock:
            entry = self._entries.get(job_id)
            if entry is None:
                return None
            expires_at, job = entry
            if expires_at <= self._clock():
                del self._entries[job_id]
                return None
            return job

    def delete(self, job_id: str) -> None:
        with self._lock:
            self._entries.pop(job_id, None)

    def jobs(self) -> Iterator[VideoJob]:
        self.purge_expired()
        with self._lock:
            live = [job for _, job in self._entries.values()]
        return iter(live)

    def purge_expired(self) -> int:
        """Drop expired entries and return how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, (expires_at, _) in self._entries.items() if expires_at <= now]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("Purged %d expired job(s)", len(expired))
        return len(expired)

    def __len__(self) -> int:
        self.purge_expired()
        return len(self._entries)


class RedisJobStore(JobStore):
    """Job store backed by Redis key expiry."""

    def __init__(
        self,
        client: redis.Redis,
        ttl_seconds: int = DEFAULT_JOB_TTL_SECONDS,
        prefix: str = REDIS_KEY_PREFIX,
    ):
        self._client = client
        self._ttl = int(ttl_seconds)
        self._prefix = prefix

    def _key(self, job_id: str) -> str:
        return f"{self._prefix}{job_id}"

    def put(self, job: VideoJob) -> None:
        self._client.set(self._key(job.job_id), job.model_dump_json(), ex=self._ttl)

    def get(self, job_id: str) -> VideoJob | None:
        raw = self._client.get(self._key(job_id))
        if not raw:
            return None
        return VideoJob.model_validate_json(raw)

    def delete(self, job_id: str) -> None:
        self._client.delete(self._key(job_id))

    def jobs(self) -> Iterator[VideoJob]:
        for key in self._client.scan_iter(match=f"{self._prefix}*"):
            raw = self._client.get(key)
            # the key may expire between SCAN and GET
            if raw:
                yield VideoJob.model_validate_json(raw)


def create_job_store(settings: Settings | None = None) -> JobStore:
    """Build the job store selected by configuration."""
    settings = settings or get_settings()
    if settings.redis_url:
        logger.info("Using Redis job store")
        return RedisJobStore(redis.Redis.from_url(settings.redis_url), settings.job_ttl_seconds)
    return InMemoryJobStore(settings.job_ttl_seconds)


class VideoJobTracker:
    """Lifecycle of lesson video generation jobs on top of a JobStore."""

    def __init__(self, store: JobStore, now: Callable[[], datetime] = datetime.utcnow):
        self._store = store
        self._now = now

    @staticmethod
    def new_job_id() -> str:
        return f"video_{int(time.time() * 1000)}_{secrets.token_hex(4)}"

    def start(self, prompt: str) -> VideoJob:
        job = VideoJob(job_id=self.new_job_id(), prompt=prompt, created_at=self._now())
        self._store.put(job)
        logger.info("Started video job %s", job.job_id)
        return job

    def get(self, job_id: str) -> VideoJob | None:
        return self._store.get(job_id)

    def _require(self, job_id: str) -> VideoJob:
        job = self._store.get(job_id)
        if job is None:
            raise KeyError(f"Unknown or expired video job: {job_id}")
        return job

    def update_progress(self, job_id: str, progress: int) -> VideoJob:
        job = self._require(job_id).model_copy(
            update={"progress": min(100, max(0, int(progress)))}
        )
        self._store.put(job)
        return job

    def complete(self, job_id: str, video_url: str, thumbnail_url: str | None = None) -> VideoJob:
        job = self._require(job_id).model_copy(
            update={
                "status": VideoJobStatus.COMPLETED,
                "progress": 100,
                "video_url": video_url,
                "thumbnail_url": thumbnail_url,
                "completed_at": self._now(),
            }
        )
        self._store.put(job)
        logger.info("Video job %s completed", job_id)
        return job

    def fail(self, job_id: str, error: str) -> VideoJob:
        job = self._require(job_id).model_copy(
            update={"status": VideoJobStatus.FAILED, "error": error, "failed_at": self._now()}
        )
        self._store.put(job)
        logger.warning("Video job %s failed: %s", job_id, error)
        return job

    def completed_jobs(self) -> list[VideoJob]:
        """Completed jobs, newest first."""
        done = [j for j in self._store.jobs() if j.status == VideoJobStatus.COMPLETED]
        return sorted(done, key=lambda j: j.completed_at or j.created_at, reverse=True)
