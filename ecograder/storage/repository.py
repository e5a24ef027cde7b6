"""
Record storage for assignments, submissions and students.

Records are kept as plain documents and validated into models on read.
Every save is a compare-and-set on the record's `version`: a stale write
raises `ConcurrencyError` instead of silently overwriting a concurrent
update. `retry_on_conflict` wraps a read-modify-write for callers.
"""

import copy
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, TypeVar

from pydantic import BaseModel

from ecograder.models import Assignment, Student, Submission
from ecograder.storage.migrations import (
    CURRENT_SCHEMA_VERSION,
    DEFAULT_MIGRATIONS,
    Migration,
    run_migrations,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
ModelT = TypeVar("ModelT", bound=BaseModel)

DEFAULT_CONFLICT_RETRIES = 3


class NotFoundError(LookupError):
    """Raised when a record does not exist."""

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} not found: {record_id}")


class ConcurrencyError(Exception):
    """Raised when a save is based on a stale version of the record."""

    def __init__(self, kind: str, record_id: str, expected: int, actual: int):
        self.kind = kind
        self.record_id = record_id
        super().__init__(
            f"{kind} {record_id} was modified concurrently "
            f"(expected version {expected}, found {actual})"
        )


class DuplicateSubmissionError(Exception):
    """Raised when a student submits the same assignment twice."""

    def __init__(self, assignment_id: str, student_id: str):
        self.assignment_id = assignment_id
        self.student_id = student_id
        super().__init__("You have already submitted this assignment")


def retry_on_conflict(operation: Callable[[], T], attempts: int = DEFAULT_CONFLICT_RETRIES) -> T:
    """
    Run a read-modify-write operation, retrying on version conflicts.

    The operation must re-read the records it modifies on every call.
    """
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except ConcurrencyError as e:
            if attempt == attempts:
                raise
            logger.info("Retrying after conflict (attempt %d/%d): %s", attempt, attempts, e)
    raise AssertionError("unreachable")


class Repository(ABC):
    """Storage interface the services depend on."""

    # --- assignments ---------------------------------------------------------

    @abstractmethod
    def add_assignment(self, assignment: Assignment) -> Assignment: ...

    @abstractmethod
    def get_assignment(self, assignment_id: str) -> Assignment: ...

    @abstractmethod
    def save_assignment(self, assignment: Assignment) -> Assignment: ...

    # --- submissions ---------------------------------------------------------

    @abstractmethod
    def add_submission(self, submission: Submission) -> Submission:
        """Insert a submission, enforcing one per (assignment, student)."""

    @abstractmethod
    def get_submission(self, submission_id: str) -> Submission: ...

    @abstractmethod
    def find_submission(self, assignment_id: str, student_id: str) -> Submission | None: ...

    @abstractmethod
    def list_submissions(
        self, assignment_id: str | None = None, student_id: str | None = None
    ) -> list[Submission]: ...

    @abstractmethod
    def save_submission(self, submission: Submission) -> Submission: ...

    # --- students ------------------------------------------------------------

    @abstractmethod
    def add_student(self, student: Student) -> Student: ...

    @abstractmethod
    def get_student(self, student_id: str) -> Student: ...

    @abstractmethod
    def save_student(self, student: Student) -> Student: ...


class _Collection:
    """A keyed set of documents with version-checked writes."""

    def __init__(self, kind: str, model: type[BaseModel]):
        self.kind = kind
        self.model = model
        self.documents: dict[str, dict[str, Any]] = {}

    def insert(self, record: ModelT) -> ModelT:
        doc = record.model_dump(mode="python")
        if doc["id"] in self.documents:
            raise ValueError(f"{self.kind} already exists: {doc['id']}")
        doc["version"] = 1
        self.documents[doc["id"]] = doc
        return record.model_validate(doc)

    def get(self, record_id: str) -> Any:
        doc = self.documents.get(record_id)
        if doc is None:
            raise NotFoundError(self.kind, record_id)
        return self.model.model_validate(doc)

    def replace(self, record: ModelT) -> ModelT:
        record_id = getattr(record, "id")
        current = self.documents.get(record_id)
        if current is None:
            raise NotFoundError(self.kind, record_id)
        version = getattr(record, "version")
        if current["version"] != version:
            raise ConcurrencyError(self.kind, record_id, version, current["version"])
        doc = record.model_dump(mode="python")
        doc["version"] = version + 1
        self.documents[record_id] = doc
        return record.model_validate(doc)

    def all(self) -> Iterable[Any]:
        return (self.model.model_validate(doc) for doc in self.documents.values())


class InMemoryRepository(Repository):
    """
    Thread-safe in-memory repository.

    Raw student documents passed as `seed_students` (e.g. loaded from an
    older export) are brought up to the current schema by the migrations
    once, at construction.
    """

    def __init__(
        self,
        seed_students: Iterable[dict[str, Any]] = (),
        migrations: tuple[Migration, ...] = DEFAULT_MIGRATIONS,
    ):
        self._lock = threading.RLock()
        self._assignments = _Collection("Assignment", Assignment)
        self._submissions = _Collection("Submission", Submission)
        self._students = _Collection("Student", Student)

        for raw in seed_students:
            doc = copy.deepcopy(dict(raw))
            doc.setdefault("version", 1)
            self._students.documents[str(doc["id"])] = doc

        applied = run_migrations(self._students.documents.values(), migrations)
        if applied:
            logger.info("Migrated %d student record(s)", applied)

    # --- assignments ---------------------------------------------------------

    def add_assignment(self, assignment: Assignment) -> Assignment:
        with self._lock:
            return self._assignments.insert(assignment)

    def get_assignment(self, assignment_id: str) -> Assignment:
        with self._lock:
            return self._assignments.get(assignment_id)

    def save_assignment(self, assignment: Assignment) -> Assignment:
        with self._lock:
            return self._assignments.replace(assignment)

    # --- submissions ---------------------------------------------------------

    def add_submission(self, submission: Submission) -> Submission:
        with self._lock:
            if self.find_submission(submission.assignment_id, submission.student_id):
                raise DuplicateSubmissionError(submission.assignment_id, submission.student_id)
            return self._submissions.insert(submission)

    def get_submission(self, submission_id: str) -> Submission:
        with self._lock:
            return self._submissions.get(submission_id)

    def find_submission(self, assignment_id: str, student_id: str) -> Submission | None:
        with self._lock:
            for doc in self._submissions.documents.values():
                if doc["assignment_id"] == assignment_id and doc["student_id"] == student_id:
                    return Submission.model_validate(doc)
        return None

    def list_submissions(
        self, assignment_id: str | None = None, student_id: str | None = None
    ) -> list[Submission]:
        with self._lock:
            found = [
                s
                for s in self._submissions.all()
                if (assignment_id is None or s.assignment_id == assignment_id)
                and (student_id is None or s.student_id == student_id)
            ]
        return sorted(found, key=lambda s: s.submitted_at, reverse=True)

    def save_submission(self, submission: Submission) -> Submission:
        with self._lock:
            return self._submissions.replace(submission)

    # --- students ------------------------------------------------------------

    def add_student(self, student: Student) -> Student:
        # new records are written in the current schema
        if student.schema_version < CURRENT_SCHEMA_VERSION:
            student = student.model_copy(update={"schema_version": CURRENT_SCHEMA_VERSION})
        with self._lock:
            return self._students.insert(student)

    def get_student(self, student_id: str) -> Student:
        with self._lock:
            return self._students.get(student_id)

    def save_student(self, student: Student) -> Student:
        with self._lock:
            return self._students.replace(student)
