"""Static level → badge catalog."""

from types import MappingProxyType
from typing import Mapping

from ecograder.models import BadgeDefinition, Rarity

BADGE_CATALOG: Mapping[int, BadgeDefinition] = MappingProxyType(
    {
        2: BadgeDefinition(
            badge_id="beginner",
            name="Beginner Explorer",
            description="Started your eco journey!",
            icon="🌱",
            rarity=Rarity.COMMON,
        ),
        3: BadgeDefinition(
            badge_id="eco-learner",
            name="Eco Learner",
            description="Learning about the environment",
            icon="📚",
            rarity=Rarity.COMMON,
        ),
        5: BadgeDefinition(
            badge_id="tree-planter",
            name="Tree Planter",
            description="Planted 100 virtual trees!",
            icon="🌳",
            rarity=Rarity.COMMON,
        ),
        7: BadgeDefinition(
            badge_id="climate-warrior",
            name="Climate Warrior",
            description="Fighting climate change!",
            icon="⚔️",
            rarity=Rarity.RARE,
        ),
        10: BadgeDefinition(
            badge_id="green-champion",
            name="Green Champion",
            description="A true environmental champion!",
            icon="🏆",
            rarity=Rarity.RARE,
        ),
        15: BadgeDefinition(
            badge_id="eco-master",
            name="Eco Master",
            description="Master of environmental knowledge",
            icon="🎓",
            rarity=Rarity.EPIC,
        ),
        20: BadgeDefinition(
            badge_id="nature-hero",
            name="Nature Hero",
            description="A hero for planet Earth!",
            icon="🦸",
            rarity=Rarity.EPIC,
        ),
        25: BadgeDefinition(
            badge_id="earth-savior",
            name="Earth Savior",
            description="Legendary protector of Earth!",
            icon="🌍",
            rarity=Rarity.LEGENDARY,
        ),
        30: BadgeDefinition(
            badge_id="planet-guardian",
            name="Planet Guardian",
            description="Ultimate guardian of our planet!",
            icon="💫",
            rarity=Rarity.LEGENDARY,
        ),
    }
)


def badge_for_level(level: int) -> BadgeDefinition | None:
    """Return the badge unlocked on reaching a level, if any."""
    return BADGE_CATALOG.get(level)
