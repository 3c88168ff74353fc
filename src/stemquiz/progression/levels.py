"""Level computation.

Levels are a flat 100 XP each; the web client derives the same numbers
from ``XP_PER_LEVEL`` so the two must change together.
"""

from __future__ import annotations

XP_PER_LEVEL = 100

# (minimum level, title), highest first
LEVEL_TITLES: tuple[tuple[int, str], ...] = (
    (50, "Master Scholar"),
    (40, "Expert"),
    (30, "Advanced"),
    (20, "Proficient"),
    (10, "Intermediate"),
    (5, "Apprentice"),
    (1, "Beginner"),
)


def level_for_xp(total_xp: int) -> int:
    """Level for a total XP amount. Starts at 1 and never decreases as XP grows."""
    return max(total_xp, 0) // XP_PER_LEVEL + 1


def level_title(level: int) -> str:
    for minimum, title in LEVEL_TITLES:
        if level >= minimum:
            return title
    return LEVEL_TITLES[-1][1]


def compute_level(total_xp: int) -> dict:
    """Compute level info from total XP."""
    level = level_for_xp(total_xp)
    xp_into_level = max(total_xp, 0) - (level - 1) * XP_PER_LEVEL
    return {
        "level": level,
        "title": level_title(level),
        "xp_into_level": xp_into_level,
        "xp_for_level": XP_PER_LEVEL,
        "next_level": level + 1,
        "next_title": level_title(level + 1),
    }
