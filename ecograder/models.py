"""
Pydantic models for the EcoGrader system.

These models define the schemas for:
- Assignments and student submissions
- Oracle sub-reports and the persisted AI grading record
- Student progression (XP, level, badges) and rewards

Sub-reports are frozen; stored records are mutable and carry a version
counter used for optimistic concurrency at the repository boundary.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    computed_field,
    field_validator,
)


def _new_id() -> str:
    return uuid4().hex


# ==============================================================================
# Enumerations
# ==============================================================================


class SubmissionStatus(str, Enum):
    """Lifecycle state of a submission."""

    PENDING = "pending"
    SUBMITTED = "submitted"
    LATE = "late"
    AI_GRADED = "ai-graded"
    GRADED = "graded"


class FlagSeverity(str, Enum):
    """Severity attached to a grading flag."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class FlagType(str, Enum):
    """Kinds of grading flags raised for teacher review."""

    INCORRECT_ANSWER = "incorrect_answer"
    FACTUAL_ERRORS = "factual_errors"
    OFF_TOPIC = "off_topic"
    ORIGINALITY_CONCERN = "originality_concern"
    GRADING_ERROR = "grading_error"


class Rarity(str, Enum):
    """Badge rarity tier."""

    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class ActivityKind(str, Enum):
    """Activities that earn points and XP."""

    VIDEO = "video"
    QUIZ = "quiz"
    GAME = "game"
    ASSIGNMENT = "assignment"


# ==============================================================================
# Assignment & Submission Models
# ==============================================================================


class Assignment(BaseModel):
    """
    An assignment published to a class.

    `expected_answer` and `key_points` steer the answer-verification query;
    `class_name` doubles as the class level shown to the oracle.
    """

    id: str = Field(default_factory=_new_id)
    title: str = Field(..., min_length=1, description="Assignment title / question")
    description: str = Field(default="")
    subject: str = Field(default="General")
    class_name: str = Field(default="", description="Class label, e.g. 'Grade 5th - Section A'")
    expected_answer: str = Field(default="")
    key_points: list[str] = Field(default_factory=list)
    max_points: int = Field(default=100, gt=0)
    due_date: datetime | None = None
    enable_ai_grading: bool = True
    submissions: int = Field(default=0, ge=0)
    avg_score: float | None = None
    version: int = 0

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v


class AttachmentFile(BaseModel):
    """Descriptor for an uploaded file attached to a submission."""

    model_config = ConfigDict(frozen=True)

    file_name: str
    file_url: str = ""
    file_type: str = ""
    file_size: int = Field(default=0, ge=0)


class GradingFlag(BaseModel):
    """A severity-tagged issue raised during grading."""

    model_config = ConfigDict(frozen=True)

    type: FlagType
    severity: FlagSeverity
    message: str


class GradingScores(BaseModel):
    """Post-penalty sub-scores and the weighted composite."""

    model_config = ConfigDict(frozen=True)

    content_accuracy: float = Field(..., ge=0, le=100)
    uniqueness: float = Field(..., ge=0, le=100)
    relevance: float = Field(..., ge=0, le=100)
    quality: float = Field(..., ge=0, le=100)
    overall: int = Field(..., ge=0, le=100)


class GradingAnalysis(BaseModel):
    """Qualitative findings carried from the sub-reports."""

    model_config = ConfigDict(frozen=True)

    is_correct: bool = False
    wrong_facts: list[str] = Field(default_factory=list)
    key_points_covered: list[str] = Field(default_factory=list)
    key_points_missing: list[str] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)
    improvements: list[str] = Field(default_factory=list)
    topic_match: str = ""


class AIGrading(BaseModel):
    """The AI grading record stored on a submission."""

    model_config = ConfigDict(frozen=True)

    is_graded: bool = False
    graded_at: datetime | None = None
    scores: GradingScores | None = None
    analysis: GradingAnalysis | None = None
    flags: list[GradingFlag] = Field(default_factory=list)
    feedback: str = ""
    confidence: int = Field(default=0, ge=0, le=100)


class Submission(BaseModel):
    """
    A student's submission for an assignment.

    Exactly one submission exists per (assignment_id, student_id).
    """

    id: str = Field(default_factory=_new_id)
    assignment_id: str
    student_id: str
    student_name: str = ""
    content: str = ""
    files: list[AttachmentFile] = Field(default_factory=list)
    status: SubmissionStatus = SubmissionStatus.SUBMITTED
    grade: str = ""
    score: int | None = None
    feedback: str = ""
    submitted_at: datetime = Field(default_factory=datetime.utcnow)
    graded_at: datetime | None = None
    graded_by: str = ""
    points_awarded: int = 0
    ai_grading: AIGrading | None = None
    version: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_graded(self) -> bool:
        """Whether a grade (AI or manual) has been recorded."""
        return self.status in (SubmissionStatus.AI_GRADED, SubmissionStatus.GRADED)


# ==============================================================================
# Oracle Sub-report Models
# ==============================================================================


class _SubReport(BaseModel):
    """Base for oracle sub-reports: lenient on input, frozen once built."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    @field_validator("*", mode="before")
    @classmethod
    def _none_to_default(cls, v: Any, info: ValidationInfo) -> Any:
        # Oracles sometimes emit explicit nulls; let the field default apply.
        if v is None and info.field_name is not None:
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)
        return v


class AnswerVerification(_SubReport):
    """Correctness judgment against the expected answer and key points."""

    content_accuracy: float | None = Field(default=None, alias="contentAccuracy")
    is_correct: bool = Field(default=False, alias="isCorrect")
    wrong_facts: list[str] = Field(default_factory=list, alias="wrongFacts")
    key_points_covered: list[str] = Field(default_factory=list, alias="keyPointsCovered")
    key_points_missing: list[str] = Field(default_factory=list, alias="keyPointsMissing")
    understanding: float = 0
    feedback: str = ""


class TopicRelevance(_SubReport):
    """Whether the answer addresses the assigned topic."""

    score: float | None = None
    is_relevant: bool = Field(default=False, alias="isRelevant")
    topic_match: str = Field(default="", alias="topicMatch")
    feedback: str = ""


class QualityAnalysis(_SubReport):
    """Writing quality judgment."""

    score: float | None = None
    grammar: float = 0
    clarity: float = 0
    effort: float = 0
    strengths: list[str] = Field(default_factory=list)
    improvements: list[str] = Field(default_factory=list)


class OriginalityCheck(_SubReport):
    """Whether the answer looks like original student work."""

    originality_score: float | None = Field(default=None, alias="originalityScore")
    is_likely_original: bool = Field(default=True, alias="isLikelyOriginal")
    concerns: list[str] = Field(default_factory=list)
    feedback: str = ""


class GradingReport(BaseModel):
    """The four sub-reports for one submission. Never persisted on its own."""

    model_config = ConfigDict(frozen=True)

    verification: AnswerVerification
    relevance: TopicRelevance
    quality: QualityAnalysis
    originality: OriginalityCheck


class GradingOutcome(BaseModel):
    """Result of running the grading pipeline on a submission."""

    model_config = ConfigDict(frozen=True)

    success: bool
    grade: str = ""
    score: int = 0
    max_points: int = 0
    feedback: str = ""
    ai_grading: AIGrading = Field(default_factory=AIGrading)
    error: str | None = None


# ==============================================================================
# Progression Models
# ==============================================================================


class BadgeDefinition(BaseModel):
    """A badge in the static level catalog."""

    model_config = ConfigDict(frozen=True)

    badge_id: str
    name: str
    description: str
    icon: str = "🏅"
    rarity: Rarity = Rarity.COMMON


class EarnedBadge(BaseModel):
    """A badge held by a student."""

    model_config = ConfigDict(frozen=True)

    badge_id: str
    name: str
    description: str = ""
    icon: str = "🏅"
    rarity: Rarity = Rarity.COMMON
    level: int = Field(..., ge=1)
    earned_at: datetime = Field(default_factory=datetime.utcnow)


class ProgressionState(BaseModel):
    """XP, level and badges embedded in a student record."""

    model_config = ConfigDict(frozen=True)

    current_xp: int = Field(default=0, ge=0)
    level: int = Field(default=1, ge=1)
    next_level_xp: int = Field(default=100, gt=0)
    badges: tuple[EarnedBadge, ...] = ()

    def has_badge(self, badge_id: str) -> bool:
        """Check whether a badge is already held."""
        return any(b.badge_id == badge_id for b in self.badges)


class ProgressionResult(BaseModel):
    """Outcome of applying an XP gain."""

    model_config = ConfigDict(frozen=True)

    state: ProgressionState
    levels_gained: int = Field(default=0, ge=0)
    newly_earned_badges: tuple[EarnedBadge, ...] = ()

    @computed_field  # type: ignore[prop-decorator]
    @property
    def leveled_up(self) -> bool:
        """Whether at least one level was gained."""
        return self.levels_gained > 0


class Redemption(BaseModel):
    """A store item bought with coins."""

    model_config = ConfigDict(frozen=True)

    item_id: str
    item_name: str
    category: str = ""
    coins_spent: int = Field(..., gt=0)
    redeemed_at: datetime = Field(default_factory=datetime.utcnow)


class Student(BaseModel):
    """A student record with progression and reward counters."""

    id: str = Field(default_factory=_new_id)
    name: str = ""
    progression: ProgressionState = Field(default_factory=ProgressionState)
    points: int = Field(default=0, ge=0, description="Eco points")
    game_points: int = Field(default=0, ge=0)
    today_points: int = Field(default=0, ge=0)
    last_points_date: datetime | None = None
    coins: int = Field(default=0, ge=0)
    redemptions: list[Redemption] = Field(default_factory=list)
    completed_activities: set[str] = Field(default_factory=set)
    schema_version: int = 0
    version: int = 0


# ==============================================================================
# Attachment Extraction Models
# ==============================================================================


class ExtractedDocument(BaseModel):
    """Text extracted from a submitted file."""

    model_config = ConfigDict(frozen=True)

    content: str
    source_path: str
    file_extension: str
    extraction_timestamp: datetime = Field(default_factory=datetime.utcnow)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def character_count(self) -> int:
        """Number of characters in extracted content."""
        return len(self.content)


# ==============================================================================
# Authoring Models
# ==============================================================================


class ExpectedAnswerDraft(BaseModel):
    """Oracle-drafted model answer offered to a teacher."""

    model_config = ConfigDict(frozen=True)

    success: bool
    expected_answer: str = ""
    key_points: list[str] = Field(default_factory=list)
    must_include_facts: list[str] = Field(default_factory=list)
    common_mistakes: list[str] = Field(default_factory=list)
    error: str | None = None


class QuizQuestion(BaseModel):
    """A four-option multiple choice question."""

    model_config = ConfigDict(frozen=True)

    question: str = ""
    options: tuple[str, str, str, str] = ("", "", "", "")
    correct_answer: int = Field(default=0, ge=0, le=3)
    explanation: str = ""

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_blank(self) -> bool:
        """Whether this is a placeholder left for the teacher to fill in."""
        return not self.question


class Quiz(BaseModel):
    """A generated quiz."""

    model_config = ConfigDict(frozen=True)

    questions: tuple[QuizQuestion, ...]
    passing_score: int = Field(default=70, ge=0, le=100)
    time_limit: int = Field(default=600, gt=0, description="Seconds")


# ==============================================================================
# Service Result Models
# ==============================================================================


class ActivityAward(BaseModel):
    """Points, coins and progression credited for one activity."""

    model_config = ConfigDict(frozen=True)

    activity_key: str
    kind: ActivityKind
    already_awarded: bool = False
    points_awarded: int = 0
    coins_awarded: int = 0
    progression: ProgressionResult | None = None


class SubmissionReceipt(BaseModel):
    """What a student gets back after submitting."""

    model_config = ConfigDict(frozen=True)

    submission: Submission
    outcome: GradingOutcome | None = None
    points_awarded: int = 0


# ==============================================================================
# Video Job Models
# ==============================================================================


class VideoJobStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class VideoJob(BaseModel):
    """Tracking record for a lesson video being generated."""

    job_id: str
    prompt: str
    status: VideoJobStatus = VideoJobStatus.PROCESSING
    progress: int = Field(default=0, ge=0, le=100)
    video_url: str | None = None
    thumbnail_url: str | None = None
    error: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: datetime | None = None
    failed_at: datetime | None = None
