"""Attempt history, daily activity and the recent-activity feed.

Only finalized attempts are listed here; claims still in review are served
by the pending-attempts endpoint.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stemquiz.db.models import Achievement, DailyActivity, Quiz, QuizAttempt
from stemquiz.progression.catalog import get_badge
from stemquiz.progression.streaks import activity_day

RECENT_ATTEMPTS = 20
ACTIVITY_DAYS = 30
FEED_SIZE = 20


def _finalized(user_id: int):
    return (QuizAttempt.user_id == user_id, QuizAttempt.claimed.is_(False))


async def completed_quiz_ids(db: AsyncSession, user_id: int) -> list[str]:
    """Ids of every quiz the user has finished, oldest first."""
    result = await db.execute(
        select(QuizAttempt.quiz_id)
        .where(*_finalized(user_id))
        .order_by(QuizAttempt.completed_at, QuizAttempt.id)
    )
    return list(result.scalars().all())


async def count_completed(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        select(func.count()).select_from(QuizAttempt).where(*_finalized(user_id))
    )
    return result.scalar_one()


async def recent_attempts(db: AsyncSession, user_id: int, limit: int = RECENT_ATTEMPTS) -> list[dict]:
    """Latest finalized attempts, newest first, with the quiz title when the quiz still exists."""
    result = await db.execute(
        select(QuizAttempt, Quiz.title)
        .outerjoin(Quiz, Quiz.id == QuizAttempt.quiz_id)
        .where(*_finalized(user_id))
        .order_by(QuizAttempt.completed_at.desc(), QuizAttempt.id.desc())
        .limit(limit)
    )
    return [
        {
            "quiz_id": attempt.quiz_id,
            "quiz_title": title,
            "subject": attempt.subject,
            "score": attempt.score,
            "questions_correct": attempt.questions_correct,
            "questions_total": attempt.questions_total,
            "time_taken": attempt.time_taken,
            "xp_earned": attempt.xp_earned,
            "completed_at": attempt.completed_at,
        }
        for attempt, title in result.all()
    ]


async def daily_activity(
    db: AsyncSession,
    user_id: int,
    days: int = ACTIVITY_DAYS,
    now: datetime | None = None,
) -> list[dict]:
    """Per-day totals for the last ``days`` UTC days (today included), oldest first.

    Days without activity are omitted.
    """
    today = activity_day(now or datetime.now(timezone.utc))
    since = today - timedelta(days=days - 1)
    result = await db.execute(
        select(DailyActivity)
        .where(DailyActivity.user_id == user_id, DailyActivity.activity_date >= since)
        .order_by(DailyActivity.activity_date)
    )
    return [
        {
            "activity_date": row.activity_date,
            "quizzes_completed": row.quizzes_completed,
            "questions": row.questions_answered,
            "questions_correct": row.questions_correct,
            "xp": row.xp_gained,
            "time_spent": row.time_spent,
        }
        for row in result.scalars()
    ]


async def activity_feed(db: AsyncSession, user_id: int, limit: int = FEED_SIZE) -> list[dict]:
    """Finished quizzes and earned badges merged into one list, newest first."""
    items: list[dict] = []

    for attempt in await recent_attempts(db, user_id, limit):
        items.append({
            "type": "quiz",
            "title": f"Completed {attempt['subject']} Quiz",
            "subtitle": f"{attempt['score']}%, {attempt['questions_correct']}/{attempt['questions_total']} correct",
            "time": attempt["completed_at"],
            "xp": attempt["xp_earned"],
            "quiz_id": attempt["quiz_id"],
            "quiz_title": attempt["quiz_title"],
        })

    result = await db.execute(
        select(Achievement)
        .where(Achievement.user_id == user_id)
        .order_by(Achievement.earned_at.desc(), Achievement.id.desc())
        .limit(limit)
    )
    for achievement in result.scalars():
        badge = get_badge(achievement.achievement_type)
        items.append({
            "type": "achievement",
            "title": badge.title if badge else achievement.achievement_type,
            "subtitle": badge.description if badge else None,
            "time": achievement.earned_at,
            "xp": achievement.xp_reward,
            "badge_id": achievement.achievement_type,
        })

    items.sort(key=lambda item: item["time"], reverse=True)
    return items[:limit]
