"""
Student-facing feedback assembly.

Feedback is short markdown written for the student: a verdict, what was
wrong, what was right, what to add, a couple of tips, and an encouragement
line picked by how much of the assignment's points were earned.
"""

from ecograder.grading.rubric import PenalizedScores
from ecograder.models import GradingReport

MAX_WRONG_FACTS_SHOWN = 3
MAX_KEY_POINTS_SHOWN = 3
MAX_TIPS_SHOWN = 2

# Accuracy below this always gets the needs-improvement verdict
WEAK_ACCURACY = 50

# (fraction of max points, message) checked in order; the last line is the fallback
ENCOURAGEMENT_BANDS: tuple[tuple[float, str], ...] = (
    (0.4, "💪 Don't give up! Read your textbook again and try to understand the topic better. You can do it!"),
    (0.6, "📚 Keep studying! You're getting there. Focus on the points mentioned above."),
    (0.8, "👏 Good effort! A little more detail would make your answer even better."),
)
TOP_ENCOURAGEMENT = "⭐ Great work! Keep it up!"


def _bullets(items: list[str], limit: int) -> str:
    return "".join(f"• {item}\n" for item in items[:limit])


def encouragement(score: int, max_points: int) -> str:
    """Pick the closing line for a point score."""
    for fraction, message in ENCOURAGEMENT_BANDS:
        if score < max_points * fraction:
            return message
    return TOP_ENCOURAGEMENT


def build_feedback(
    grade: str,
    score: int,
    max_points: int,
    scores: PenalizedScores,
    report: GradingReport,
) -> str:
    """
    Assemble the feedback text for a graded submission.

    Args:
        grade: Letter grade.
        score: Points earned.
        max_points: Assignment maximum points.
        scores: Penalized sub-scores.
        report: Raw sub-reports.

    Returns:
        Markdown feedback.
    """
    verification = report.verification
    relevance = report.relevance
    parts: list[str] = []

    if not verification.is_correct or scores.accuracy < WEAK_ACCURACY:
        parts.append("⚠ **Your answer needs improvement.**\n\n")

        if not relevance.is_relevant:
            parts.append(
                f'❌ **Problem:** Your answer was about "{relevance.topic_match}" '
                "but the question asked about something different.\n\n"
            )

        if verification.wrong_facts:
            parts.append("❌ **Mistakes in your answer:**\n")
            parts.append(_bullets(verification.wrong_facts, MAX_WRONG_FACTS_SHOWN))
            parts.append("\n")

        if verification.feedback:
            parts.append(f"📝 **What you should know:** {verification.feedback}\n\n")
    elif grade.startswith("A"):
        parts.append("🌟 **Excellent work!** You understood the topic very well.\n\n")
    elif grade.startswith("B"):
        parts.append("👍 **Good job!** You got most of it right.\n\n")
    else:
        parts.append("📚 **Okay work.** You understood the basics.\n\n")

    if verification.key_points_covered:
        parts.append("✅ **What you did well:**\n")
        parts.append(_bullets(verification.key_points_covered, MAX_KEY_POINTS_SHOWN))
        parts.append("\n")

    if verification.key_points_missing:
        parts.append("📖 **What you should add next time:**\n")
        parts.append(_bullets(verification.key_points_missing, MAX_KEY_POINTS_SHOWN))
        parts.append("\n")

    if report.quality.improvements:
        parts.append("💡 **Tips to improve:**\n")
        parts.append(_bullets(report.quality.improvements, MAX_TIPS_SHOWN))
        parts.append("\n")

    parts.append(encouragement(score, max_points) + "\n")
    return "".join(parts)
