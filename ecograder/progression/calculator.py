"""
Level progression on a geometric XP curve.

Each level needs 50% more XP than the one before, rounded down:
threshold(level) = floor(100 * 1.5 ** (level - 1)). Overflow XP carries
into the next level, and a single gain may cross several levels.
"""

from datetime import datetime
from typing import Iterable

from ecograder.models import EarnedBadge, ProgressionResult, ProgressionState
from ecograder.progression.badges import badge_for_level

BASE_LEVEL_XP = 100


def xp_threshold(level: int) -> int:
    """
    XP required to advance from `level` to the next one.

    Computed in integers (100 * 3^n // 2^n) so large levels don't drift.
    """
    if level < 1:
        raise ValueError(f"level must be >= 1, got {level}")
    n = level - 1
    return BASE_LEVEL_XP * 3**n // 2**n


def award_level_badges(
    state: ProgressionState,
    levels: Iterable[int],
    earned_at: datetime | None = None,
) -> tuple[ProgressionState, tuple[EarnedBadge, ...]]:
    """
    Award catalog badges for the given levels.

    Badges already held are skipped, so replaying a level is harmless.

    Returns:
        The state with badges appended, and the newly earned badges.
    """
    when = earned_at or datetime.utcnow()
    held = {b.badge_id for b in state.badges}
    earned: list[EarnedBadge] = []

    for level in levels:
        badge = badge_for_level(level)
        if badge is None or badge.badge_id in held:
            continue
        held.add(badge.badge_id)
        earned.append(
            EarnedBadge(
                badge_id=badge.badge_id,
                name=badge.name,
                description=badge.description,
                icon=badge.icon,
                rarity=badge.rarity,
                level=level,
                earned_at=when,
            )
        )

    if not earned:
        return state, ()
    return state.model_copy(update={"badges": state.badges + tuple(earned)}), tuple(earned)


def apply_xp_gain(
    state: ProgressionState,
    gain: int,
    now: datetime | None = None,
) -> ProgressionResult:
    """
    Apply an XP gain and advance levels.

    Pure: `state` is not modified. Guarding against awarding the same
    event twice is the caller's job.

    Args:
        state: Current progression.
        gain: XP earned (>= 0).
        now: Timestamp for any badges earned.

    Returns:
        The new state, levels gained and newly earned badges.

    Raises:
        ValueError: If `gain` is negative.
    """
    if gain < 0:
        raise ValueError(f"XP gain must be non-negative, got {gain}")

    xp = state.current_xp + gain
    level = state.level
    threshold = xp_threshold(level)
    passed: list[int] = []

    while xp >= threshold:
        xp -= threshold
        level += 1
        passed.append(level)
        threshold = xp_threshold(level)

    advanced = ProgressionState(
        current_xp=xp,
        level=level,
        next_level_xp=threshold,
        badges=state.badges,
    )
    advanced, earned = award_level_badges(advanced, passed, now)

    return ProgressionResult(
        state=advanced,
        levels_gained=len(passed),
        newly_earned_badges=earned,
    )
