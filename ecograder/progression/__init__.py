"""
Progression Module.

XP levels, the level badge catalog, and activity rewards
(see `ecograder.progression.rewards`).
"""

from ecograder.progression.badges import BADGE_CATALOG, badge_for_level
from ecograder.progression.calculator import apply_xp_gain, award_level_badges, xp_threshold

__all__ = [
    "BADGE_CATALOG",
    "apply_xp_gain",
    "award_level_badges",
    "badge_for_level",
    "xp_threshold",
]
