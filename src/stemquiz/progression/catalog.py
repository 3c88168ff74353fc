"""Static badge catalog, loaded at import time and never mutated."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

Rarity = Literal["common", "uncommon", "rare", "epic", "legendary"]

RARITIES: tuple[Rarity, ...] = ("common", "uncommon", "rare", "epic", "legendary")


@dataclass(frozen=True)
class BadgeDefinition:
    id: str
    title: str
    description: str
    rarity: Rarity
    xp: int
    category: str


_DEFINITIONS: tuple[BadgeDefinition, ...] = (
    # Streak milestones (xp matches progression.streaks.MILESTONE_REWARDS)
    BadgeDefinition("streak_starter", "Streak Starter", "Maintained a 3-day learning streak", "common", 50, "streak"),
    BadgeDefinition("week_warrior", "Week Warrior", "7 days of consistent learning", "uncommon", 100, "streak"),
    BadgeDefinition("fortnight_fighter", "Fortnight Fighter", "14 days streak - unstoppable!", "rare", 200, "streak"),
    BadgeDefinition("monthly_master", "Monthly Master", "30 days of dedication", "epic", 500, "streak"),
    BadgeDefinition("dedication_king", "Dedication King", "60 days without missing a beat", "epic", 1000, "streak"),
    BadgeDefinition("century_champion", "Century Champion", "100 days streak - legendary!", "legendary", 2000, "streak"),
    BadgeDefinition("year_legend", "Year Legend", "A full year of daily learning", "legendary", 5000, "streak"),
    # Performance
    BadgeDefinition("first_quiz", "First Steps", "Completed your first quiz", "common", 25, "performance"),
    BadgeDefinition("perfect_score", "Perfectionist", "Got 100% on a quiz", "uncommon", 75, "performance"),
    BadgeDefinition("speed_demon", "Speed Demon", "Completed a quiz in under 2 minutes", "rare", 100, "performance"),
    BadgeDefinition("marathon_runner", "Marathon Runner", "Completed 50 quizzes", "epic", 300, "performance"),
    # Subject mastery
    BadgeDefinition("math_master", "Math Master", "Answered 100 Math questions correctly", "rare", 150, "subject"),
    BadgeDefinition("physics_pro", "Physics Pro", "Answered 100 Physics questions correctly", "rare", 150, "subject"),
    BadgeDefinition(
        "chemistry_champion", "Chemistry Champion", "Answered 100 Chemistry questions correctly", "rare", 150, "subject",
    ),
    BadgeDefinition("biology_boss", "Biology Boss", "Answered 100 Biology questions correctly", "rare", 150, "subject"),
    # Battle
    BadgeDefinition("battle_victor", "Battle Victor", "Won your first quiz battle", "uncommon", 50, "battle"),
    # Special
    BadgeDefinition("early_bird", "Early Bird", "Completed a quiz before 7 AM", "uncommon", 30, "special"),
    BadgeDefinition("night_owl", "Night Owl", "Completed a quiz after 11 PM", "uncommon", 30, "special"),
)

BADGE_CATALOG: dict[str, BadgeDefinition] = {badge.id: badge for badge in _DEFINITIONS}

SUBJECT_MASTERY_BADGES: dict[str, str] = {
    "Math": "math_master",
    "Physics": "physics_pro",
    "Chemistry": "chemistry_champion",
    "Biology": "biology_boss",
}

SUBJECT_MASTERY_TARGET = 100
MARATHON_TARGET = 50


def get_badge(badge_id: str) -> BadgeDefinition | None:
    return BADGE_CATALOG.get(badge_id)
