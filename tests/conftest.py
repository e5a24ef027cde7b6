"""
Pytest configuration and fixtures.

Provides common test fixtures for all test modules.
"""

import json
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Generator
from unittest.mock import MagicMock

import pytest

from ecograder.config import Settings
from ecograder.grading import GradingEngine
from ecograder.models import Assignment, Student
from ecograder.storage import InMemoryRepository


# ==============================================================================
# Directory Fixtures
# ==============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# ==============================================================================
# Settings Fixtures
# ==============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings with mocked values."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        gemini_api_key="test-api-key-for-testing",
        gemini_base_url="https://test.api.local/",
        gemini_model="test-model",
        llm_temperature=0.0,
        llm_max_retries=3,
        llm_retry_base_delay=2.0,
        oracle_requests_per_second=1000.0,
    )


# ==============================================================================
# Assignment & Answer Fixtures
# ==============================================================================


@pytest.fixture
def sample_assignment() -> Assignment:
    """An assignment with an expected answer and key points."""
    return Assignment(
        id="assignment-1",
        title="What causes climate change?",
        description="Explain the main causes of climate change in your own words.",
        subject="Environmental Science",
        class_name="Grade 7th - Section A",
        expected_answer=(
            "Climate change is mainly caused by greenhouse gases such as carbon dioxide "
            "released by burning fossil fuels and cutting down forests."
        ),
        key_points=["Greenhouse gases", "Burning fossil fuels", "Deforestation"],
        max_points=100,
    )


@pytest.fixture
def sample_student_answer() -> str:
    """A correct student answer."""
    return (
        "Climate change happens because greenhouse gases like carbon dioxide trap heat. "
        "People burn fossil fuels such as coal and oil in cars and power plants, and "
        "they cut down forests that would otherwise absorb carbon dioxide."
    )


# ==============================================================================
# Oracle Reply Fixtures
# ==============================================================================


@pytest.fixture
def make_replies() -> Callable[..., list[str]]:
    """
    Build the four oracle replies (verification, relevance, quality,
    originality) in the order the engine requests them.
    """

    def _make(
        accuracy: float | None = 95,
        is_correct: bool = True,
        relevance: float | None = 95,
        is_relevant: bool = True,
        quality: float | None = 90,
        originality: float | None = 80,
        is_original: bool = True,
        wrong_facts: list[str] | None = None,
        covered: list[str] | None = None,
        missing: list[str] | None = None,
        improvements: list[str] | None = None,
        topic_match: str = "Climate change causes",
    ) -> list[str]:
        verification: dict[str, Any] = {
            "contentAccuracy": accuracy,
            "isCorrect": is_correct,
            "wrongFacts": wrong_facts or [],
            "keyPointsCovered": covered if covered is not None else ["Greenhouse gases"],
            "keyPointsMissing": missing or [],
            "understanding": 90,
            "feedback": "Carbon dioxide traps heat in the atmosphere.",
        }
        return [
            json.dumps(verification),
            json.dumps(
                {
                    "score": relevance,
                    "isRelevant": is_relevant,
                    "topicMatch": topic_match,
                    "feedback": "On topic.",
                }
            ),
            json.dumps(
                {
                    "score": quality,
                    "grammar": 90,
                    "clarity": 90,
                    "effort": 90,
                    "strengths": ["Clear explanation"],
                    "improvements": improvements or [],
                }
            ),
            json.dumps(
                {
                    "originalityScore": originality,
                    "isLikelyOriginal": is_original,
                    "concerns": [],
                    "feedback": "Written in the student's own words.",
                }
            ),
        ]

    return _make


# ==============================================================================
# Mock Fixtures
# ==============================================================================


@pytest.fixture
def mock_llm_client(make_replies: Callable[..., list[str]]) -> MagicMock:
    """Mock oracle client returning an excellent set of replies."""
    client = MagicMock()
    client.generate.side_effect = make_replies()
    client.health_check.return_value = True
    return client


@pytest.fixture
def engine(test_settings: Settings, mock_llm_client: MagicMock) -> GradingEngine:
    """Grading engine wired to the mock oracle."""
    return GradingEngine(test_settings, llm_client=mock_llm_client)


# ==============================================================================
# Storage Fixtures
# ==============================================================================


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 3, 10, 9, 30)


@pytest.fixture
def repository(sample_assignment: Assignment) -> InMemoryRepository:
    """Repository seeded with one assignment and one student."""
    repo = InMemoryRepository()
    repo.add_assignment(sample_assignment)
    repo.add_student(Student(id="student-1", name="Asha"))
    return repo


# ==============================================================================
# File Fixtures
# ==============================================================================


@pytest.fixture
def sample_md_file(temp_dir: Path, sample_student_answer: str) -> Path:
    """Create a sample markdown answer file."""
    file_path = temp_dir / "answer.md"
    file_path.write_text(sample_student_answer, encoding="utf-8")
    return file_path


@pytest.fixture
def assignment_file(temp_dir: Path, sample_assignment: Assignment) -> Path:
    """Assignment serialized as JSON for the CLI."""
    file_path = temp_dir / "assignment.json"
    file_path.write_text(sample_assignment.model_dump_json(), encoding="utf-8")
    return file_path


@pytest.fixture
def empty_file(temp_dir: Path) -> Path:
    """Create an empty file."""
    file_path = temp_dir / "empty.txt"
    file_path.write_text("", encoding="utf-8")
    return file_path
