"""
Grading engine - the core orchestrator.

Runs the four oracle queries for a submission, applies the deterministic
penalty rules, and assembles grade, points, flags, feedback and confidence.
"""

import logging
from datetime import datetime

from ecograder.config import Settings, get_settings
from ecograder.grading import rubric
from ecograder.grading.feedback import build_feedback
from ecograder.grading.llm_client import LLMClient, LLMError
from ecograder.grading.prompt_builder import PromptBuilder
from ecograder.grading.scorer import ResponseParser
from ecograder.models import (
    AIGrading,
    Assignment,
    FlagSeverity,
    FlagType,
    GradingAnalysis,
    GradingFlag,
    GradingOutcome,
    GradingReport,
    GradingScores,
)

logger = logging.getLogger(__name__)


class InsufficientContentError(ValueError):
    """Raised when a submission or assignment cannot be graded at all."""


class GradingEngine:
    """
    Grades free-text submissions with the oracle plus fixed guardrails.

    The four queries are independent and issued one after another; request
    spacing is enforced by the LLM client's rate limiter.
    """

    def __init__(self, settings: Settings | None = None, llm_client: LLMClient | None = None):
        """
        Initialize the grading engine.

        Args:
            settings: Configuration settings. Uses global settings if not provided.
            llm_client: Oracle client. Built from settings if not provided.
        """
        self._settings = settings or get_settings()
        self._llm_client = llm_client or LLMClient(self._settings)
        self._response_parser = ResponseParser()

    def is_gradable(self, content: str | None) -> bool:
        """Whether there is enough text to send to the oracle."""
        return bool(content) and len(content.strip()) > self._settings.min_content_length

    def validate_input(self, content: str | None, assignment: Assignment) -> None:
        """
        Reject input that cannot be graded before any oracle call.

        Raises:
            InsufficientContentError: If there is not enough content or the
                assignment lacks what grading needs.
        """
        if not self.is_gradable(content):
            raise InsufficientContentError("Not enough content to grade")
        if not assignment.title.strip():
            raise InsufficientContentError("Assignment has no title to grade against")
        if assignment.max_points <= 0:
            raise InsufficientContentError("Assignment has no points to award")

    def grade(self, content: str, assignment: Assignment) -> GradingOutcome:
        """
        Grade a submission.

        Args:
            content: The student's answer text.
            assignment: The assignment being answered.

        Returns:
            A successful outcome, or a failed one carrying a grading_error
            flag when an oracle call fails.

        Raises:
            InsufficientContentError: If the input is rejected up front.
        """
        self.validate_input(content, assignment)
        logger.info("Grading submission for assignment '%s'", assignment.title)

        try:
            report = self.collect_report(content, assignment)
        except LLMError as e:
            logger.error("Grading failed for assignment '%s': %s", assignment.title, e)
            return self._failed_outcome(e)

        return self.score_report(report, assignment)

    def collect_report(self, content: str, assignment: Assignment) -> GradingReport:
        """
        Run the four oracle queries.

        Raises:
            LLMError: If any query fails.
        """
        system_prompt = PromptBuilder.get_system_prompt()
        generate = self._llm_client.generate
        parser = self._response_parser

        verification = parser.parse_verification(
            generate(
                system_prompt=system_prompt,
                user_prompt=PromptBuilder.build_verification_prompt(content, assignment),
            ),
            assignment.key_points,
        )
        relevance = parser.parse_relevance(
            generate(
                system_prompt=system_prompt,
                user_prompt=PromptBuilder.build_relevance_prompt(content, assignment),
            )
        )
        quality = parser.parse_quality(
            generate(
                system_prompt=system_prompt,
                user_prompt=PromptBuilder.build_quality_prompt(content, assignment),
            )
        )
        originality = parser.parse_originality(
            generate(
                system_prompt=system_prompt,
                user_prompt=PromptBuilder.build_originality_prompt(content),
            )
        )

        return GradingReport(
            verification=verification,
            relevance=relevance,
            quality=quality,
            originality=originality,
        )

    def score_report(self, report: GradingReport, assignment: Assignment) -> GradingOutcome:
        """
        Turn sub-reports into a graded outcome.

        Args:
            report: The four sub-reports.
            assignment: The assignment (for max points).

        Returns:
            A successful GradingOutcome.
        """
        scores = rubric.apply_penalties(report)
        overall = rubric.composite_score(*scores)
        grade = rubric.letter_grade(overall)
        points = rubric.scale_to_points(overall, assignment.max_points)
        flags = rubric.build_flags(report, scores)
        feedback = build_feedback(grade, points, assignment.max_points, scores, report)

        logger.info(
            "Graded '%s': overall=%d grade=%s points=%d/%d flags=%d",
            assignment.title,
            overall,
            grade,
            points,
            assignment.max_points,
            len(flags),
        )

        ai_grading = AIGrading(
            is_graded=True,
            graded_at=datetime.utcnow(),
            scores=GradingScores(
                content_accuracy=scores.accuracy,
                uniqueness=scores.originality,
                relevance=scores.relevance,
                quality=scores.quality,
                overall=overall,
            ),
            analysis=GradingAnalysis(
                is_correct=report.verification.is_correct,
                wrong_facts=report.verification.wrong_facts,
                key_points_covered=report.verification.key_points_covered,
                key_points_missing=report.verification.key_points_missing,
                strengths=report.quality.strengths,
                improvements=report.quality.improvements,
                topic_match=report.relevance.topic_match,
            ),
            flags=flags,
            feedback=feedback,
            confidence=rubric.calculate_confidence(report),
        )

        return GradingOutcome(
            success=True,
            grade=grade,
            score=points,
            max_points=assignment.max_points,
            feedback=feedback,
            ai_grading=ai_grading,
        )

    def _failed_outcome(self, error: Exception) -> GradingOutcome:
        return GradingOutcome(
            success=False,
            error=str(error),
            ai_grading=AIGrading(
                is_graded=False,
                flags=[
                    GradingFlag(
                        type=FlagType.GRADING_ERROR,
                        severity=FlagSeverity.HIGH,
                        message=f"AI grading failed: {error}",
                    )
                ],
            ),
        )

    def health_check(self) -> bool:
        """
        Check if the grading engine is operational.

        Returns:
            True if the oracle is reachable.
        """
        return self._llm_client.health_check()
