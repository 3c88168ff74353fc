"""Streak tracking: daily continuity, freeze protection, multiplier and milestones.

Days are UTC calendar dates, not rolling 24h windows. ``update_streak`` is
the only code path that mutates a ``UserStreak``; it does no I/O so the
caller decides which transaction the change belongs to.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

from stemquiz.db.models import StreakMilestone, UserStreak

# (minimum streak, multiplier), highest first
MULTIPLIER_STEPS: tuple[tuple[int, float], ...] = (
    (30, 2.0),
    (14, 1.5),
    (7, 1.25),
    (3, 1.1),
)

# days -> (reward xp, badge id)
MILESTONE_REWARDS: dict[int, tuple[int, str]] = {
    3: (50, "streak_starter"),
    7: (100, "week_warrior"),
    14: (200, "fortnight_fighter"),
    30: (500, "monthly_master"),
    60: (1000, "dedication_king"),
    100: (2000, "century_champion"),
    365: (5000, "year_legend"),
}


@dataclass(frozen=True)
class MilestoneReached:
    days: int
    reached_at: datetime
    reward_xp: int
    badge_id: str


@dataclass(frozen=True)
class StreakUpdate:
    """Outcome of one ``update_streak`` call.

    ``maintained`` is False only when the streak started over (first activity
    or a reset). ``new_milestones`` holds the milestones created by this call.
    """

    streak: int
    multiplier: float
    maintained: bool
    new_milestones: tuple[MilestoneReached, ...] = ()
    freeze_used: bool = False


def multiplier_for(streak: int) -> float:
    """XP multiplier for a streak length. Non-decreasing step function."""
    for minimum, multiplier in MULTIPLIER_STEPS:
        if streak >= minimum:
            return multiplier
    return 1.0


def activity_day(moment: datetime) -> date:
    """Calendar day (UTC) of a timestamp. Naive timestamps are taken as UTC."""
    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(timezone.utc).date()


def new_streak_state(user_id: int, freezes: int = 1) -> UserStreak:
    """Blank streak state for a user with no recorded activity."""
    return UserStreak(
        user_id=user_id,
        current_streak=0,
        longest_streak=0,
        last_activity_date=None,
        freezes_available=freezes,
        freeze_used_today=False,
        current_multiplier=1.0,
        milestones=[],
    )


def update_streak(state: UserStreak, now: datetime) -> StreakUpdate:
    """Record activity at ``now`` and return the resulting streak and multiplier.

    Repeat calls on the same day change nothing. Activity on the day after
    the last one extends the streak. A longer gap consumes a freeze when one
    is available (the streak is kept, not extended), otherwise the streak
    restarts at 1. The very first activity always starts at 1.
    """
    today = activity_day(now)
    last = state.last_activity_date
    maintained = True
    freeze_used = False

    if last is not None and last >= today:
        return StreakUpdate(
            streak=state.current_streak,
            multiplier=state.current_multiplier,
            maintained=True,
        )

    if last is None:
        state.current_streak = 1
        maintained = False
    elif last == today - timedelta(days=1):
        state.current_streak += 1
    elif state.freezes_available > 0 and not state.freeze_used_today:
        state.freezes_available -= 1
        state.freeze_used_today = True
        freeze_used = True
    else:
        state.current_streak = 1
        maintained = False

    state.longest_streak = max(state.longest_streak, state.current_streak)
    state.current_multiplier = multiplier_for(state.current_streak)

    reached = {m.days for m in state.milestones}
    new_milestones: list[MilestoneReached] = []
    for days in sorted(MILESTONE_REWARDS):
        if days > state.current_streak or days in reached:
            continue
        reward_xp, badge_id = MILESTONE_REWARDS[days]
        state.milestones.append(
            StreakMilestone(
                user_id=state.user_id,
                days=days,
                reached_at=now,
                reward_xp=reward_xp,
                reward_badge=badge_id,
            )
        )
        new_milestones.append(MilestoneReached(days, now, reward_xp, badge_id))

    state.last_activity_date = today
    state.freeze_used_today = False
    state.updated_at = now

    return StreakUpdate(
        streak=state.current_streak,
        multiplier=state.current_multiplier,
        maintained=maintained,
        new_milestones=tuple(new_milestones),
        freeze_used=freeze_used,
    )
