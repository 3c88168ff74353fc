"""Badge engine: evaluates progression events against the badge catalog."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stemquiz.db.models import Achievement, StreakMilestone
from stemquiz.db.upsert import insert_for
from stemquiz.events import BADGE_EARNED_CHANNEL, LEVEL_UP_CHANNEL, publish_event
from stemquiz.progression.catalog import (
    BADGE_CATALOG,
    MARATHON_TARGET,
    RARITIES,
    SUBJECT_MASTERY_BADGES,
    SUBJECT_MASTERY_TARGET,
    BadgeDefinition,
    get_badge,
)
from stemquiz.progression.ledger import get_progress, grant_xp, lock_progress, round_half_up
from stemquiz.progression.levels import level_title
from stemquiz.progression.streaks import MILESTONE_REWARDS

logger = logging.getLogger(__name__)

SPEED_DEMON_SECONDS = 120
SPEED_DEMON_MIN_SCORE = 70
EARLY_BIRD_BEFORE_HOUR = 7
NIGHT_OWL_FROM_HOUR = 23


@dataclass(frozen=True)
class BadgeContext:
    """The event that triggered an evaluation."""

    quiz_completed: bool = False
    score: int | None = None
    time_taken: float | None = None
    subject: str | None = None
    is_battle: bool = False
    won: bool = False
    quiz_id: str | None = None
    occurred_at: datetime | None = None


@dataclass(frozen=True)
class ProgressSnapshot:
    total_quizzes_completed: int = 0
    subject_correct: dict[str, int] = field(default_factory=dict)
    milestone_days: tuple[int, ...] = ()


@dataclass(frozen=True)
class AwardedBadge:
    badge: BadgeDefinition
    earned_at: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.badge.id,
            "title": self.badge.title,
            "description": self.badge.description,
            "rarity": self.badge.rarity,
            "xp": self.badge.xp,
            "earned_at": self.earned_at,
        }


def qualifying_badges(snapshot: ProgressSnapshot, context: BadgeContext) -> list[str]:
    """Badge ids whose rule holds for this snapshot and event, in evaluation order.

    Already-earned badges are not filtered here; awarding is idempotent.
    """
    candidates: list[str] = []

    if snapshot.total_quizzes_completed == 1:
        candidates.append("first_quiz")
    if context.score == 100:
        candidates.append("perfect_score")
    if (
        context.time_taken is not None
        and context.score is not None
        and context.time_taken < SPEED_DEMON_SECONDS
        and context.score >= SPEED_DEMON_MIN_SCORE
    ):
        candidates.append("speed_demon")
    if snapshot.total_quizzes_completed >= MARATHON_TARGET:
        candidates.append("marathon_runner")

    for subject, badge_id in SUBJECT_MASTERY_BADGES.items():
        if snapshot.subject_correct.get(subject, 0) >= SUBJECT_MASTERY_TARGET:
            candidates.append(badge_id)

    if context.is_battle and context.won:
        candidates.append("battle_victor")

    if context.occurred_at is not None:
        moment = context.occurred_at
        if moment.tzinfo is not None:
            moment = moment.astimezone(timezone.utc)
        hour = moment.hour
        if hour < EARLY_BIRD_BEFORE_HOUR:
            candidates.append("early_bird")
        if hour >= NIGHT_OWL_FROM_HOUR:
            candidates.append("night_owl")

    for days in sorted(snapshot.milestone_days):
        reward = MILESTONE_REWARDS.get(days)
        if reward is not None:
            candidates.append(reward[1])

    return candidates


class BadgeEngine:
    """Evaluates and awards badges. Each award is its own committed transaction."""

    def __init__(self, db: AsyncSession, redis: object | None = None) -> None:
        self.db = db
        self.redis = redis

    async def snapshot(self, user_id: int) -> ProgressSnapshot:
        """Read the user's current ledger and streak milestones."""
        progress = await get_progress(self.db, user_id)
        milestones = await self.db.execute(
            select(StreakMilestone.days).where(StreakMilestone.user_id == user_id)
        )
        milestone_days = tuple(milestones.scalars().all())
        if progress is None:
            return ProgressSnapshot(milestone_days=milestone_days)

        return ProgressSnapshot(
            total_quizzes_completed=progress.total_quizzes_completed,
            subject_correct={s.subject: s.questions_correct for s in progress.subjects},
            milestone_days=milestone_days,
        )

    async def earned_badge_ids(self, user_id: int) -> set[str]:
        result = await self.db.execute(
            select(Achievement.achievement_type).where(Achievement.user_id == user_id)
        )
        return set(result.scalars().all())

    async def evaluate(self, user_id: int, context: BadgeContext) -> list[AwardedBadge]:
        """Evaluate every rule and award the badges that newly qualify.

        Returns the badges awarded by this call (may be empty).
        """
        snapshot = await self.snapshot(user_id)
        earned = await self.earned_badge_ids(user_id)

        awarded: list[AwardedBadge] = []
        for badge_id in qualifying_badges(snapshot, context):
            if badge_id in earned:
                continue
            badge = await self.award_badge(user_id, badge_id, quiz_id=context.quiz_id, now=context.occurred_at)
            if badge is not None:
                awarded.append(badge)
                earned.add(badge_id)
        return awarded

    async def award_badge(
        self,
        user_id: int,
        badge_id: str,
        *,
        quiz_id: str | None = None,
        now: datetime | None = None,
    ) -> AwardedBadge | None:
        """Award a badge once per user and credit its XP.

        Returns None if the badge is unknown or was already earned.
        """
        badge = get_badge(badge_id)
        if badge is None:
            logger.warning("Badge not found: %s", badge_id)
            return None

        now = now or datetime.now(timezone.utc)
        progress = await lock_progress(self.db, user_id)

        result = await self.db.execute(
            insert_for(self.db, Achievement)
            .values(
                user_id=user_id,
                achievement_type=badge.id,
                earned_at=now,
                xp_reward=badge.xp,
                quiz_id=quiz_id,
            )
            .on_conflict_do_nothing(index_elements=["user_id", "achievement_type"])
            .returning(Achievement.id)
        )
        if result.scalar_one_or_none() is None:
            # Already earned; commit just releases the row lock
            await self.db.commit()
            return None

        previous_level = progress.level
        await grant_xp(
            self.db,
            progress,
            badge.xp,
            source="badge",
            source_id=badge.id,
            description=f'Earned badge: "{badge.title}"',
            idempotency_key=f"badge:{badge.id}:{user_id}",
            now=now,
        )
        new_level = progress.level
        await self.db.commit()
        logger.info("Awarded badge %s to user %s", badge.id, user_id)

        await publish_event(self.redis, BADGE_EARNED_CHANNEL, {
            "user_id": user_id,
            "badge_id": badge.id,
            "title": badge.title,
            "rarity": badge.rarity,
            "xp_reward": badge.xp,
        })
        if new_level > previous_level:
            await publish_event(self.redis, LEVEL_UP_CHANNEL, {
                "user_id": user_id,
                "old_level": previous_level,
                "new_level": new_level,
                "title": level_title(new_level),
            })
        return AwardedBadge(badge=badge, earned_at=now)


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------


def _badge_dict(badge: BadgeDefinition) -> dict:
    return {
        "id": badge.id,
        "title": badge.title,
        "description": badge.description,
        "rarity": badge.rarity,
        "xp": badge.xp,
        "category": badge.category,
    }


async def list_user_badges(db: AsyncSession, user_id: int) -> dict:
    """Catalog merged with the user's achievements: earned, locked and stats."""
    result = await db.execute(
        select(Achievement)
        .where(Achievement.user_id == user_id)
        .order_by(Achievement.earned_at.desc())
    )
    earned_at = {a.achievement_type: a.earned_at for a in result.scalars()}

    earned: list[dict] = []
    locked: list[dict] = []
    for badge in BADGE_CATALOG.values():
        item = _badge_dict(badge)
        if badge.id in earned_at:
            item.update(earned=True, earned_at=earned_at[badge.id])
            earned.append(item)
        else:
            item.update(earned=False, earned_at=None)
            locked.append(item)
    earned.sort(key=lambda b: b["earned_at"], reverse=True)

    total = len(BADGE_CATALOG)
    return {
        "earned": earned,
        "locked": locked,
        "stats": {
            "total": total,
            "earned": len(earned),
            "percentage": round_half_up(len(earned) / total * 100) if total else 0,
            "by_rarity": {r: sum(1 for b in earned if b["rarity"] == r) for r in RARITIES},
        },
        "recently_earned": earned[:5],
    }


async def badge_progress(db: AsyncSession, user_id: int) -> list[dict]:
    """Progress toward counter-based badges (marathon and subject mastery)."""
    progress = await get_progress(db, user_id)
    completed = progress.total_quizzes_completed if progress else 0
    by_subject = {s.subject: s.questions_correct for s in progress.subjects} if progress else {}

    rows = [(BADGE_CATALOG["marathon_runner"], completed, MARATHON_TARGET)]
    for subject, badge_id in SUBJECT_MASTERY_BADGES.items():
        rows.append((BADGE_CATALOG[badge_id], by_subject.get(subject, 0), SUBJECT_MASTERY_TARGET))

    return [
        {
            "badge": _badge_dict(badge),
            "current": current,
            "target": target,
            "percentage": min(100, round_half_up(current / target * 100)),
        }
        for badge, current, target in rows
    ]
