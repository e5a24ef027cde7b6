"""
Unit tests for record storage, migrations and the job store.
"""

from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest

from ecograder.config import Settings
from ecograder.models import Assignment, Student, Submission, VideoJob, VideoJobStatus
from ecograder.storage import (
    CURRENT_SCHEMA_VERSION,
    ConcurrencyError,
    DuplicateSubmissionError,
    InMemoryJobStore,
    InMemoryRepository,
    NotFoundError,
    RedisJobStore,
    VideoJobTracker,
    create_job_store,
    retry_on_conflict,
)
from ecograder.storage.migrations import DEFAULT_MIGRATIONS, migrate_document


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestRepository:
    """Tests for InMemoryRepository."""

    def test_add_and_get(self, repository: InMemoryRepository) -> None:
        """Test records round-trip with a starting version."""
        student = repository.get_student("student-1")

        assert student.name == "Asha"
        assert student.version == 1
        assert student.schema_version == CURRENT_SCHEMA_VERSION

    def test_missing_record(self, repository: InMemoryRepository) -> None:
        """Test lookups of unknown ids raise NotFoundError."""
        with pytest.raises(NotFoundError, match="Assignment not found: nope"):
            repository.get_assignment("nope")

    def test_save_bumps_version(self, repository: InMemoryRepository) -> None:
        """Test each save increments the version."""
        student = repository.get_student("student-1")
        saved = repository.save_student(student.model_copy(update={"coins": 3}))

        assert saved.version == 2
        assert repository.get_student("student-1").coins == 3

    def test_stale_save_rejected(self, repository: InMemoryRepository) -> None:
        """Test a write based on an old read raises instead of overwriting."""
        first = repository.get_student("student-1")
        second = repository.get_student("student-1")
        repository.save_student(first.model_copy(update={"points": 10}))

        with pytest.raises(ConcurrencyError):
            repository.save_student(second.model_copy(update={"points": 99}))

        assert repository.get_student("student-1").points == 10

    def test_returned_records_are_copies(self, repository: InMemoryRepository) -> None:
        """Test mutating a returned model doesn't touch storage."""
        student = repository.get_student("student-1")
        student.completed_activities.add("video:v1")

        assert repository.get_student("student-1").completed_activities == set()

    def test_one_submission_per_student(self, repository: InMemoryRepository) -> None:
        """Test a second submission for the same assignment is rejected."""
        repository.add_submission(Submission(assignment_id="assignment-1", student_id="student-1"))

        with pytest.raises(DuplicateSubmissionError, match="already submitted"):
            repository.add_submission(
                Submission(assignment_id="assignment-1", student_id="student-1")
            )

    def test_list_submissions_filters_newest_first(self, repository: InMemoryRepository) -> None:
        """Test filtering by assignment and student, newest first."""
        repository.add_assignment(Assignment(id="assignment-2", title="Oceans"))
        repository.add_submission(
            Submission(
                id="s-old",
                assignment_id="assignment-1",
                student_id="student-1",
                submitted_at=datetime(2026, 1, 1),
            )
        )
        repository.add_submission(
            Submission(
                id="s-new",
                assignment_id="assignment-2",
                student_id="student-1",
                submitted_at=datetime(2026, 2, 1),
            )
        )
        repository.add_submission(
            Submission(id="s-other", assignment_id="assignment-1", student_id="student-2")
        )

        assert [s.id for s in repository.list_submissions(student_id="student-1")] == [
            "s-new",
            "s-old",
        ]
        assert {s.id for s in repository.list_submissions("assignment-1")} == {"s-old", "s-other"}
        assert repository.find_submission("assignment-2", "student-1").id == "s-new"
        assert repository.find_submission("assignment-2", "student-2") is None

    def test_retry_on_conflict(self) -> None:
        """Test conflicts are retried and other errors are not."""
        attempts = iter([ConcurrencyError("Student", "s", 1, 2), "done"])

        def operation() -> str:
            result = next(attempts)
            if isinstance(result, Exception):
                raise result
            return result

        assert retry_on_conflict(operation) == "done"

        def always_conflicts() -> None:
            raise ConcurrencyError("Student", "s", 1, 2)

        with pytest.raises(ConcurrencyError):
            retry_on_conflict(always_conflicts, attempts=2)


class TestMigrations:
    """Tests for student record migrations."""

    def test_legacy_record_migrated_at_open(self) -> None:
        """Test flat legacy fields and a numeric badge count are repaired once."""
        legacy = {
            "id": "old-1",
            "name": "Ravi",
            "level": 3,
            "current_xp": 40,
            "next_level_xp": 100,
            "badges": 2,
            "game_points": None,
            "points": 120,
        }

        repo = InMemoryRepository(seed_students=[legacy])
        student = repo.get_student("old-1")

        assert student.progression.level == 3
        assert student.progression.current_xp == 40
        assert student.progression.next_level_xp == 225
        assert student.progression.badges == ()
        assert student.game_points == 0
        assert student.points == 120
        assert student.schema_version == CURRENT_SCHEMA_VERSION
        # the caller's document is left alone
        assert legacy["badges"] == 2

    def test_record_without_progression_gets_defaults(self) -> None:
        """Test a bare record starts at level 1."""
        repo = InMemoryRepository(seed_students=[{"id": "bare", "name": "Mei"}])
        student = repo.get_student("bare")

        assert student.progression.level == 1
        assert student.progression.current_xp == 0
        assert student.progression.next_level_xp == 100

    def test_badge_list_kept(self) -> None:
        """Test valid badge lists survive migration."""
        doc = {
            "id": "ok",
            "progression": {
                "level": 2,
                "current_xp": 5,
                "badges": [{"badge_id": "beginner", "name": "Beginner Explorer", "level": 2}],
            },
            "game_points": 12,
        }
        repo = InMemoryRepository(seed_students=[doc])
        student = repo.get_student("ok")

        assert student.progression.has_badge("beginner")
        assert student.game_points == 12

    def test_migrations_apply_once(self) -> None:
        """Test an up-to-date document is not touched again."""
        doc = {"id": "x", "badges": 3}

        assert migrate_document(doc, DEFAULT_MIGRATIONS) is True
        assert migrate_document(doc, DEFAULT_MIGRATIONS) is False
        assert doc["schema_version"] == CURRENT_SCHEMA_VERSION

    def test_current_records_skip_migrations(self) -> None:
        """Test records at the current schema are left as stored."""
        doc = Student(id="cur", schema_version=CURRENT_SCHEMA_VERSION).model_dump()
        doc["progression"]["next_level_xp"] = 999

        repo = InMemoryRepository(seed_students=[doc])

        assert repo.get_student("cur").progression.next_level_xp == 999


class TestInMemoryJobStore:
    """Tests for InMemoryJobStore."""

    def test_put_and_get(self) -> None:
        """Test a stored job is returned while live."""
        store = InMemoryJobStore(ttl_seconds=60, clock=FakeClock())
        store.put(VideoJob(job_id="j1", prompt="Rainforests"))

        job = store.get("j1")
        assert job is not None
        assert job.prompt == "Rainforests"

    def test_expired_jobs_evicted(self) -> None:
        """Test jobs disappear once their TTL passes."""
        clock = FakeClock()
        store = InMemoryJobStore(ttl_seconds=60, clock=clock)
        store.put(VideoJob(job_id="j1", prompt="Rainforests"))

        clock.now += 60
        assert store.get("j1") is None
        assert len(store) == 0

    def test_put_refreshes_ttl(self) -> None:
        """Test updating a job restarts its expiry."""
        clock = FakeClock()
        store = InMemoryJobStore(ttl_seconds=60, clock=clock)
        store.put(VideoJob(job_id="j1", prompt="Rainforests"))
        clock.now += 50
        store.put(VideoJob(job_id="j1", prompt="Rainforests", progress=40))
        clock.now += 50

        assert store.get("j1") is not None

    def test_purge_expired(self) -> None:
        """Test purging drops only expired entries."""
        clock = FakeClock()
        store = InMemoryJobStore(ttl_seconds=60, clock=clock)
        store.put(VideoJob(job_id="old", prompt="a"))
        clock.now += 30
        store.put(VideoJob(job_id="new", prompt="b"))
        clock.now += 40

        assert store.purge_expired() == 1
        assert [j.job_id for j in store.jobs()] == ["new"]

    def test_invalid_ttl(self) -> None:
        """Test TTL must be positive."""
        with pytest.raises(ValueError):
            InMemoryJobStore(ttl_seconds=0)


class TestRedisJobStore:
    """Tests for RedisJobStore with a mocked client."""

    def test_put_sets_expiry(self) -> None:
        """Test jobs are written as JSON with SET EX."""
        client = MagicMock()
        store = RedisJobStore(client, ttl_seconds=120)
        job = VideoJob(job_id="j1", prompt="Glaciers")

        store.put(job)

        client.set.assert_called_once_with(
            "ecograder:video-job:j1", job.model_dump_json(), ex=120
        )

    def test_get(self) -> None:
        """Test stored JSON is decoded, and missing keys return None."""
        client = MagicMock()
        job = VideoJob(job_id="j1", prompt="Glaciers", progress=30)
        client.get.return_value = job.model_dump_json().encode()
        store = RedisJobStore(client)

        assert store.get("j1") == job

        client.get.return_value = None
        assert store.get("j1") is None

    def test_jobs_skips_keys_expired_mid_scan(self) -> None:
        """Test a key expiring between SCAN and GET is skipped."""
        client = MagicMock()
        job = VideoJob(job_id="j1", prompt="Glaciers")
        client.scan_iter.return_value = [b"ecograder:video-job:j1", b"ecograder:video-job:gone"]
        client.get.side_effect = [job.model_dump_json(), None]
        store = RedisJobStore(client)

        assert list(store.jobs()) == [job]
        client.scan_iter.assert_called_once_with(match="ecograder:video-job:*")

    def test_delete(self) -> None:
        client = MagicMock()
        RedisJobStore(client).delete("j1")
        client.delete.assert_called_once_with("ecograder:video-job:j1")


class TestCreateJobStore:
    """Tests for job store selection."""

    def test_in_memory_by_default(self, test_settings: Settings) -> None:
        assert isinstance(create_job_store(test_settings), InMemoryJobStore)

    def test_redis_when_configured(self, test_settings: Settings) -> None:
        """Test a Redis URL selects the Redis store."""
        settings = test_settings.model_copy(update={"redis_url": "redis://localhost:6379/0"})

        with patch("ecograder.storage.jobs.redis.Redis.from_url") as from_url:
            store = create_job_store(settings)

        assert isinstance(store, RedisJobStore)
        from_url.assert_called_once_with("redis://localhost:6379/0")


class TestVideoJobTracker:
    """Tests for VideoJobTracker."""

    @pytest.fixture
    def tracker(self) -> VideoJobTracker:
        return VideoJobTracker(
            InMemoryJobStore(clock=FakeClock()), now=lambda: datetime(2026, 4, 1, 10, 0)
        )

    def test_start(self, tracker: VideoJobTracker) -> None:
        """Test a new job is processing at 0% with a video_ id."""
        job = tracker.start("How solar panels work")

        assert job.job_id.startswith("video_")
        assert job.status == VideoJobStatus.PROCESSING
        assert job.progress == 0
        assert tracker.get(job.job_id) == job

    def test_progress_clamped(self, tracker: VideoJobTracker) -> None:
        """Test progress stays within 0-100."""
        job = tracker.start("Wind energy")

        assert tracker.update_progress(job.job_id, 150).progress == 100
        assert tracker.update_progress(job.job_id, -5).progress == 0
        assert tracker.update_progress(job.job_id, 42).progress == 42

    def test_complete_and_list(self, tracker: VideoJobTracker) -> None:
        """Test completed jobs are listed; failed ones are not."""
        done = tracker.start("Wind energy")
        broken = tracker.start("Tidal energy")

        completed = tracker.complete(done.job_id, "https://cdn.example/wind.mp4")
        failed = tracker.fail(broken.job_id, "quota exceeded")

        assert completed.status == VideoJobStatus.COMPLETED
        assert completed.progress == 100
        assert completed.completed_at == datetime(2026, 4, 1, 10, 0)
        assert failed.status == VideoJobStatus.FAILED
        assert failed.error == "quota exceeded"
        assert [j.job_id for j in tracker.completed_jobs()] == [done.job_id]

    def test_unknown_job(self, tracker: VideoJobTracker) -> None:
        """Test updating an unknown job raises."""
        with pytest.raises(KeyError):
            tracker.update_progress("video_missing", 10)
