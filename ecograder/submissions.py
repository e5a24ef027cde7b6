"""
Submission workflow: accept, auto-grade, manually grade and regrade.

A submission is persisted before grading starts, so an oracle outage
never loses student work; a failed grading leaves it pending review.
"""

import logging
from datetime import datetime
from typing import Callable

from ecograder.grading.engine import GradingEngine
from ecograder.grading.rubric import round_half_up
from ecograder.models import (
    AttachmentFile,
    GradingOutcome,
    Submission,
    SubmissionReceipt,
    SubmissionStatus,
)
from ecograder.progression.rewards import RewardService
from ecograder.storage.repository import NotFoundError, Repository, retry_on_conflict

logger = logging.getLogger(__name__)

AI_GRADER_NAME = "AI Auto-Grader"

GRADED_STATUSES = frozenset({SubmissionStatus.AI_GRADED, SubmissionStatus.GRADED})


class SubmissionService:
    """Coordinates storage, the grading engine and rewards for submissions."""

    def __init__(
        self,
        repository: Repository,
        engine: GradingEngine,
        rewards: RewardService | None = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self._repository = repository
        self._engine = engine
        self._rewards = rewards or RewardService(repository, clock)
        self._clock = clock

    def submit(
        self,
        assignment_id: str,
        student_id: str,
        content: str,
        student_name: str = "",
        files: list[AttachmentFile] | None = None,
        now: datetime | None = None,
    ) -> SubmissionReceipt:
        """
        Accept a student's answer and grade it when possible.

        Raises:
            NotFoundError: If the assignment does not exist.
            DuplicateSubmissionError: If the student already submitted.
        """
        when = now or self._clock()
        assignment = self._repository.get_assignment(assignment_id)

        late = assignment.due_date is not None and when > assignment.due_date
        submission = self._repository.add_submission(
            Submission(
                assignment_id=assignment_id,
                student_id=student_id,
                student_name=student_name,
                content=content,
                files=files or [],
                status=SubmissionStatus.LATE if late else SubmissionStatus.SUBMITTED,
                submitted_at=when,
            )
        )
        self._update_assignment_stats(assignment_id, new_submissions=1)
        logger.info(
            "Submission %s received for '%s'%s", submission.id, assignment.title, " (late)" if late else ""
        )

        if not assignment.enable_ai_grading:
            return SubmissionReceipt(submission=submission)
        if not self._engine.is_gradable(content):
            logger.info("Submission %s too short for AI grading, left for the teacher", submission.id)
            return SubmissionReceipt(submission=submission)

        return self._run_grading(submission)

    def regrade(self, submission_id: str) -> SubmissionReceipt:
        """
        Re-run AI grading on a stored submission.

        Points are only credited the first time a submission is graded. If
        grading fails, a graded submission keeps its current grade.
        """
        submission = self._repository.get_submission(submission_id)
        if not self._engine.is_gradable(submission.content):
            logger.info("Submission %s has too little content to regrade", submission_id)
            return SubmissionReceipt(submission=submission)
        return self._run_grading(submission)

    def grade_manually(
        self,
        submission_id: str,
        grade: str,
        score: int,
        feedback: str = "",
        graded_by: str = "",
    ) -> Submission:
        """Record a teacher's grade, overriding any AI grade."""

        def attempt() -> Submission:
            submission = self._repository.get_submission(submission_id)
            return self._repository.save_submission(
                submission.model_copy(
                    update={
                        "status": SubmissionStatus.GRADED,
                        "grade": grade,
                        "score": score,
                        "feedback": feedback,
                        "graded_by": graded_by,
                        "graded_at": self._clock(),
                    }
                )
            )

        saved = retry_on_conflict(attempt)
        self._update_assignment_stats(saved.assignment_id)
        logger.info("Submission %s graded manually: %s (%d)", submission_id, grade, score)
        return saved

    def _run_grading(self, submission: Submission) -> SubmissionReceipt:
        assignment = self._repository.get_assignment(submission.assignment_id)
        outcome = self._engine.grade(submission.content, assignment)
        saved = self._save_outcome(submission.id, outcome)

        if not outcome.success:
            logger.warning("AI grading failed for submission %s: %s", submission.id, outcome.error)
            return SubmissionReceipt(submission=saved, outcome=outcome)

        self._update_assignment_stats(saved.assignment_id)

        points = 0
        try:
            award = self._rewards.award_assignment(
                saved.student_id, saved.id, outcome.grade, outcome.score
            )
        except NotFoundError:
            logger.warning("Student %s not found, no points awarded", saved.student_id)
        else:
            points = award.points_awarded
            if not award.already_awarded:
                saved = self._record_points(saved.id, points)

        return SubmissionReceipt(submission=saved, outcome=outcome, points_awarded=points)

    def _save_outcome(self, submission_id: str, outcome: GradingOutcome) -> Submission:
        def attempt() -> Submission:
            submission = self._repository.get_submission(submission_id)
            if not outcome.success and submission.status in GRADED_STATUSES:
                # a failed regrade keeps the standing grade and its analysis
                return submission
            update: dict = {"ai_grading": outcome.ai_grading}
            if outcome.success:
                update.update(
                    status=SubmissionStatus.AI_GRADED,
                    grade=outcome.grade,
                    score=outcome.score,
                    feedback=outcome.feedback,
                    graded_by=AI_GRADER_NAME,
                    graded_at=outcome.ai_grading.graded_at or self._clock(),
                )
            return self._repository.save_submission(submission.model_copy(update=update))

        return retry_on_conflict(attempt)

    def _record_points(self, submission_id: str, points: int) -> Submission:
        def attempt() -> Submission:
            submission = self._repository.get_submission(submission_id)
            return self._repository.save_submission(
                submission.model_copy(update={"points_awarded": points})
            )

        return retry_on_conflict(attempt)

    def _update_assignment_stats(self, assignment_id: str, new_submissions: int = 0) -> None:
        """Bump the submission count and recompute the average score."""
        def attempt() -> None:
            scores = [
                s.score
                for s in self._repository.list_submissions(assignment_id)
                if s.score is not None
            ]
            assignment = self._repository.get_assignment(assignment_id)
            average = (
                round_half_up(sum(scores) / len(scores) * 10) / 10 if scores else assignment.avg_score
            )
            self._repository.save_assignment(
                assignment.model_copy(
                    update={
                        "submissions": assignment.submissions + new_submissions,
                        "avg_score": average,
                    }
                )
            )

        retry_on_conflict(attempt)
