"""
Deterministic scoring rules layered over the oracle's sub-reports.

Penalties cap what the oracle reports so that a clearly wrong or
off-topic answer cannot be graded up by generous sub-scores. The
weights and thresholds are fixed product rules.
"""

import math
from typing import NamedTuple

from ecograder.models import FlagSeverity, FlagType, GradingFlag, GradingReport

# Composite weights
ACCURACY_WEIGHT = 0.50
RELEVANCE_WEIGHT = 0.25
QUALITY_WEIGHT = 0.15
ORIGINALITY_WEIGHT = 0.10

# Score used when the originality check reports none
NEUTRAL_ORIGINALITY = 50.0

# Penalty rules
INCORRECT_THRESHOLD = 30
INCORRECT_CAP = 25
OFF_TOPIC_RELEVANCE_CAP = 30
OFF_TOPIC_ACCURACY_CAP = 40
WRONG_FACT_PENALTY = 10
MAX_WRONG_FACT_PENALTY = 30

# Lowest composite score for each letter, highest first
GRADE_BREAKPOINTS: tuple[tuple[int, str], ...] = (
    (90, "A+"),
    (85, "A"),
    (80, "A-"),
    (75, "B+"),
    (70, "B"),
    (65, "B-"),
    (60, "C+"),
    (55, "C"),
    (50, "C-"),
    (45, "D+"),
    (40, "D"),
)
FAILING_GRADE = "F"

# Confidence earned per primary sub-report that returned a score
CONFIDENCE_WEIGHTS = (35, 35, 30)


class PenalizedScores(NamedTuple):
    """Sub-scores after the deterministic penalties."""

    accuracy: float
    relevance: float
    quality: float
    originality: float


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def clamp_score(value: float | None, default: float = 0.0) -> float:
    """Coerce a reported score into [0, 100]; missing scores take the default."""
    if value is None or math.isnan(value):
        return default
    return min(100.0, max(0.0, float(value)))


def apply_penalties(report: GradingReport) -> PenalizedScores:
    """
    Apply the penalty rules to raw sub-report scores.

    Order matters: the incorrect-answer cap, then the off-topic caps,
    then the per-wrong-fact deduction.
    """
    verification = report.verification
    relevance_report = report.relevance

    accuracy = clamp_score(verification.content_accuracy)
    relevance = clamp_score(relevance_report.score)
    quality = clamp_score(report.quality.score)
    originality = clamp_score(report.originality.originality_score, NEUTRAL_ORIGINALITY)

    if not verification.is_correct and accuracy < INCORRECT_THRESHOLD:
        accuracy = min(accuracy, INCORRECT_CAP)

    if not relevance_report.is_relevant:
        relevance = min(relevance, OFF_TOPIC_RELEVANCE_CAP)
        accuracy = min(accuracy, OFF_TOPIC_ACCURACY_CAP)

    if verification.wrong_facts:
        penalty = min(MAX_WRONG_FACT_PENALTY, WRONG_FACT_PENALTY * len(verification.wrong_facts))
        accuracy = max(0.0, accuracy - penalty)

    return PenalizedScores(accuracy, relevance, quality, originality)


def composite_score(accuracy: float, relevance: float, quality: float, originality: float) -> int:
    """Weighted composite of the four sub-scores, rounded to an integer in [0, 100]."""
    weighted = (
        accuracy * ACCURACY_WEIGHT
        + relevance * RELEVANCE_WEIGHT
        + quality * QUALITY_WEIGHT
        + originality * ORIGINALITY_WEIGHT
    )
    return min(100, max(0, round_half_up(weighted)))


def letter_grade(score: float) -> str:
    """Map a composite score to its letter grade."""
    for threshold, grade in GRADE_BREAKPOINTS:
        if score >= threshold:
            return grade
    return FAILING_GRADE


def scale_to_points(overall: int, max_points: int) -> int:
    """Convert a 0-100 composite into assignment points."""
    return round_half_up(overall / 100 * max_points)


def build_flags(report: GradingReport, scores: PenalizedScores) -> list[GradingFlag]:
    """Raise review flags from the sub-reports and penalized scores."""
    flags: list[GradingFlag] = []
    verification = report.verification

    if not verification.is_correct:
        flags.append(
            GradingFlag(
                type=FlagType.INCORRECT_ANSWER,
                severity=(
                    FlagSeverity.CRITICAL
                    if scores.accuracy < INCORRECT_THRESHOLD
                    else FlagSeverity.HIGH
                ),
                message="Answer contains significant errors or is incorrect",
            )
        )

    if verification.wrong_facts:
        flags.append(
            GradingFlag(
                type=FlagType.FACTUAL_ERRORS,
                severity=FlagSeverity.HIGH,
                message=f"Found {len(verification.wrong_facts)} factual error(s)",
            )
        )

    if not report.relevance.is_relevant:
        flags.append(
            GradingFlag(
                type=FlagType.OFF_TOPIC,
                severity=FlagSeverity.CRITICAL if scores.relevance < 20 else FlagSeverity.HIGH,
                message="Answer is off-topic or doesn't address the question",
            )
        )

    if not report.originality.is_likely_original:
        flags.append(
            GradingFlag(
                type=FlagType.ORIGINALITY_CONCERN,
                severity=FlagSeverity.MEDIUM,
                message="Content may not be original student work",
            )
        )

    return flags


def calculate_confidence(report: GradingReport) -> int:
    """Confidence from which primary sub-reports returned a score."""
    reported = (
        report.verification.content_accuracy,
        report.relevance.score,
        report.quality.score,
    )
    confidence = sum(w for w, value in zip(CONFIDENCE_WEIGHTS, reported) if value is not None)
    return min(100, confidence)
