"""
Crediting points, XP and coins to students.

Every rewarded event has an activity key (e.g. ``quiz:<id>``); a key is
credited at most once per student. Points earned convert to XP 1:1.
"""

import logging
from datetime import datetime
from typing import Callable

from ecograder.models import ActivityAward, ActivityKind, Redemption, Student
from ecograder.progression.calculator import apply_xp_gain
from ecograder.storage.repository import Repository, retry_on_conflict

logger = logging.getLogger(__name__)

GRADE_POINTS: dict[str, int] = {
    "A+": 100,
    "A": 90,
    "A-": 85,
    "B+": 80,
    "B": 75,
    "B-": 70,
    "C+": 65,
    "C": 60,
    "C-": 55,
    "D+": 50,
    "D": 45,
    "D-": 40,
    "F": 10,
}

QUIZ_BASE_POINTS = 20
# (minimum score, bonus), highest first
QUIZ_BONUSES = ((90, 30), (80, 20), (70, 10))


class InsufficientCoinsError(Exception):
    """Raised when a redemption costs more coins than the student holds."""

    def __init__(self, balance: int, required: int):
        self.balance = balance
        self.required = required
        super().__init__(f"Insufficient coins: have {balance}, need {required}")


def points_for_grade(grade: str, score: float = 0) -> int:
    """Eco points for an assignment grade; unknown grades get half the score."""
    if grade in GRADE_POINTS:
        return GRADE_POINTS[grade]
    return int(score / 2 + 0.5)


def quiz_points(score: float) -> int:
    """Eco points for a quiz percentage."""
    for minimum, bonus in QUIZ_BONUSES:
        if score >= minimum:
            return QUIZ_BASE_POINTS + bonus
    return QUIZ_BASE_POINTS


class RewardService:
    """Applies activity rewards to student records."""

    def __init__(
        self,
        repository: Repository,
        clock: Callable[[], datetime] = datetime.utcnow,
        max_attempts: int = 3,
    ):
        self._repository = repository
        self._clock = clock
        self._max_attempts = max_attempts

    def award_activity(
        self,
        student_id: str,
        activity_key: str,
        kind: ActivityKind,
        points: int,
        coins: int = 0,
        now: datetime | None = None,
    ) -> ActivityAward:
        """
        Credit one activity to a student.

        Game points go to `game_points`, every other kind to eco `points`.
        Repeating an activity key is a no-op reported as `already_awarded`.

        Raises:
            NotFoundError: If the student does not exist.
            ValueError: If points or coins are negative.
            ConcurrencyError: If the record keeps changing underneath us.
        """
        if points < 0 or coins < 0:
            raise ValueError("points and coins must be non-negative")
        when = now or self._clock()

        def attempt() -> ActivityAward:
            student = self._repository.get_student(student_id)
            if activity_key in student.completed_activities:
                logger.info("Activity %s already rewarded for %s", activity_key, student_id)
                return ActivityAward(activity_key=activity_key, kind=kind, already_awarded=True)

            result = apply_xp_gain(student.progression, points, when)
            updated = self._credit(student, kind, points, coins, when).model_copy(
                update={
                    "progression": result.state,
                    "completed_activities": student.completed_activities | {activity_key},
                }
            )
            self._repository.save_student(updated)

            if result.leveled_up:
                logger.info(
                    "Student %s reached level %d (+%d badge(s))",
                    student_id,
                    result.state.level,
                    len(result.newly_earned_badges),
                )
            return ActivityAward(
                activity_key=activity_key,
                kind=kind,
                points_awarded=points,
                coins_awarded=coins,
                progression=result,
            )

        return retry_on_conflict(attempt, self._max_attempts)

    @staticmethod
    def _credit(
        student: Student, kind: ActivityKind, points: int, coins: int, when: datetime
    ) -> Student:
        today_points = student.today_points
        if student.last_points_date is None or student.last_points_date.date() != when.date():
            today_points = 0

        update = {
            "today_points": today_points + points,
            "last_points_date": when,
            "coins": student.coins + coins,
        }
        if kind == ActivityKind.GAME:
            update["game_points"] = student.game_points + points
        else:
            update["points"] = student.points + points
        return student.model_copy(update=update)

    def award_assignment(
        self, student_id: str, submission_id: str, grade: str, score: float
    ) -> ActivityAward:
        return self.award_activity(
            student_id,
            f"assignment:{submission_id}",
            ActivityKind.ASSIGNMENT,
            points_for_grade(grade, score),
        )

    def award_quiz(self, student_id: str, quiz_id: str, score: float) -> ActivityAward:
        return self.award_activity(
            student_id, f"quiz:{quiz_id}", ActivityKind.QUIZ, quiz_points(score)
        )

    def award_video(self, student_id: str, video_id: str, points: int) -> ActivityAward:
        return self.award_activity(student_id, f"video:{video_id}", ActivityKind.VIDEO, points)

    def award_game(
        self, student_id: str, game_id: str, session_id: str, points: int, coins: int = 0
    ) -> ActivityAward:
        """Games are replayable, so each play session is its own event."""
        return self.award_activity(
            student_id, f"game:{game_id}:{session_id}", ActivityKind.GAME, points, coins
        )

    def redeem(
        self,
        student_id: str,
        item_id: str,
        item_name: str,
        coins_spent: int,
        category: str = "",
    ) -> Redemption:
        """
        Spend coins on a store item.

        Raises:
            InsufficientCoinsError: If the balance is below the price.
        """
        if coins_spent <= 0:
            raise ValueError("coins_spent must be positive")

        def attempt() -> Redemption:
            student = self._repository.get_student(student_id)
            if student.coins < coins_spent:
                raise InsufficientCoinsError(student.coins, coins_spent)
            redemption = Redemption(
                item_id=item_id,
                item_name=item_name,
                category=category,
                coins_spent=coins_spent,
                redeemed_at=self._clock(),
            )
            self._repository.save_student(
                student.model_copy(
                    update={
                        "coins": student.coins - coins_spent,
                        "redemptions": [*student.redemptions, redemption],
                    }
                )
            )
            logger.info("Student %s redeemed %s for %d coins", student_id, item_id, coins_spent)
            return redemption

        return retry_on_conflict(attempt, self._max_attempts)
