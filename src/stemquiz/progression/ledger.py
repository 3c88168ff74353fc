"""Progress ledger: XP, levels, subject stats and quiz attempt finalization.

Every function here works inside the caller's transaction and never commits;
``apply_quiz_result`` stages the whole quiz transition (streak, XP, totals,
subject stats, daily activity, attempt record) so one commit makes it visible
at once.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stemquiz.db.models import DailyActivity, QuizAttempt, SubjectProgress, UserProgress, UserStreak, XPLedger
from stemquiz.db.upsert import insert_for
from stemquiz.exceptions import AttemptNotFound, DuplicateSubmission
from stemquiz.progression.levels import level_for_xp
from stemquiz.progression.streaks import MilestoneReached, activity_day, update_streak

logger = logging.getLogger(__name__)

CORRECT_ANSWER_XP = 10
PERFECT_QUIZ_BONUS = 50
FIRST_QUIZ_BONUS = 100


@dataclass(frozen=True)
class QuizResult:
    quiz_id: str
    subject: str
    questions_correct: int
    questions_total: int
    time_taken: float
    results: list[dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class ProgressUpdate:
    xp_earned: int
    new_level: int
    previous_level: int
    current_streak: int
    total_xp: int
    score: int
    multiplier: float
    first_quiz: bool
    new_milestones: tuple[MilestoneReached, ...] = ()


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def score_percentage(questions_correct: int, questions_total: int) -> int:
    """Whole-number percentage, halves rounded up."""
    if questions_total <= 0:
        return 0
    return round_half_up(100 * questions_correct / questions_total)


def base_xp(score: int, questions_total: int) -> int:
    """XP before the streak multiplier: 10 per correct answer plus a perfect-quiz bonus."""
    correct_equivalent = round_half_up(score * questions_total / 100)
    xp = correct_equivalent * CORRECT_ANSWER_XP
    if score >= 100:
        xp += PERFECT_QUIZ_BONUS
    return xp


def compute_quiz_xp(score: int, questions_total: int, multiplier: float, *, first_quiz: bool = False) -> int:
    """XP for one finalized quiz. Monotonic in score and in multiplier."""
    xp = round_half_up(base_xp(score, questions_total) * multiplier)
    if first_quiz:
        xp += FIRST_QUIZ_BONUS
    return xp


# ---------------------------------------------------------------------------
# Row access
# ---------------------------------------------------------------------------


async def get_progress(db: AsyncSession, user_id: int) -> UserProgress | None:
    result = await db.execute(
        select(UserProgress)
        .where(UserProgress.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def lock_progress(db: AsyncSession, user_id: int) -> UserProgress:
    """Get (creating if needed) and row-lock the user's ledger.

    Creation is an insert-if-absent so two first activities racing for the
    same user both end up on the same row.
    """
    await db.execute(
        insert_for(db, UserProgress)
        .values(
            user_id=user_id,
            total_xp=0,
            level=1,
            total_questions_attempted=0,
            total_questions_correct=0,
            total_quizzes_completed=0,
            total_time_spent=0.0,
            updated_at=datetime.now(timezone.utc),
        )
        .on_conflict_do_nothing(index_elements=["user_id"])
    )
    result = await db.execute(
        select(UserProgress)
        .where(UserProgress.user_id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def lock_streak(db: AsyncSession, user_id: int, initial_freezes: int = 1) -> UserStreak:
    """Get (creating if needed) and row-lock the user's streak state."""
    await db.execute(
        insert_for(db, UserStreak)
        .values(
            user_id=user_id,
            current_streak=0,
            longest_streak=0,
            last_activity_date=None,
            freezes_available=initial_freezes,
            freeze_used_today=False,
            current_multiplier=1.0,
            updated_at=datetime.now(timezone.utc),
        )
        .on_conflict_do_nothing(index_elements=["user_id"])
    )
    result = await db.execute(
        select(UserStreak)
        .where(UserStreak.user_id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def daily_activity_for(db: AsyncSession, user_id: int, day: date) -> DailyActivity:
    """The user's activity row for ``day``, added to the session if missing.

    Callers hold the progress row lock, so two writers never create the same day.
    """
    result = await db.execute(
        select(DailyActivity).where(DailyActivity.user_id == user_id, DailyActivity.activity_date == day)
    )
    activity = result.scalar_one_or_none()
    if activity is None:
        activity = DailyActivity(
            user_id=user_id,
            activity_date=day,
            quizzes_completed=0,
            questions_answered=0,
            questions_correct=0,
            xp_gained=0,
            time_spent=0.0,
        )
        db.add(activity)
    return activity


async def grant_xp(
    db: AsyncSession,
    progress: UserProgress,
    amount: int,
    source: str,
    source_id: str,
    description: str,
    idempotency_key: str,
    now: datetime | None = None,
) -> bool:
    """Credit XP to a locked ledger row. Returns False if the key was already used.

    1. Insert into xp_ledger
    2. Update user_progress.total_xp
    3. Recompute level from total_xp
    4. Add the amount to the day's activity
    """
    existing = await db.execute(
        select(XPLedger.id).where(XPLedger.idempotency_key == idempotency_key)
    )
    if existing.scalar_one_or_none() is not None:
        logger.info("XP grant %s already applied", idempotency_key)
        return False

    now = now or datetime.now(timezone.utc)
    db.add(XPLedger(
        user_id=progress.user_id,
        amount=amount,
        source=source,
        source_id=source_id,
        description=description,
        idempotency_key=idempotency_key,
        created_at=now,
    ))
    progress.total_xp += amount
    progress.level = level_for_xp(progress.total_xp)
    progress.updated_at = now

    activity = await daily_activity_for(db, progress.user_id, activity_day(now))
    activity.xp_gained += amount
    return True


def _update_subject(progress: UserProgress, result: QuizResult, score: int) -> SubjectProgress:
    entry = next((s for s in progress.subjects if s.subject == result.subject), None)
    if entry is None:
        entry = SubjectProgress(
            user_id=progress.user_id,
            subject=result.subject,
            questions_attempted=0,
            questions_correct=0,
            quizzes_completed=0,
            time_spent=0.0,
            best_score=0,
            average_score=0.0,
        )
        progress.subjects.append(entry)

    samples = entry.quizzes_completed
    entry.average_score = round((entry.average_score * samples + score) / (samples + 1), 2)
    entry.best_score = max(entry.best_score, score)
    entry.quizzes_completed = samples + 1
    entry.questions_attempted += result.questions_total
    entry.questions_correct += result.questions_correct
    entry.time_spent += result.time_taken
    return entry


async def apply_quiz_result(
    db: AsyncSession,
    user_id: int,
    result: QuizResult,
    *,
    now: datetime | None = None,
    initial_freezes: int = 1,
) -> ProgressUpdate:
    """Finalize a claimed attempt and fold its result into the user's ledger.

    The attempt must already be claimed by this user. Nothing is committed.
    """
    now = now or datetime.now(timezone.utc)

    progress = await lock_progress(db, user_id)

    attempt_row = await db.execute(
        select(QuizAttempt)
        .where(QuizAttempt.user_id == user_id, QuizAttempt.quiz_id == result.quiz_id)
        .with_for_update()
    )
    attempt = attempt_row.scalar_one_or_none()
    if attempt is None:
        raise AttemptNotFound(result.quiz_id)
    if not attempt.claimed:
        raise DuplicateSubmission(result.quiz_id)

    streak = await lock_streak(db, user_id, initial_freezes)
    streak_update = update_streak(streak, now)

    score = score_percentage(result.questions_correct, result.questions_total)
    # Count read after our own claim but before this finalize
    first_quiz = progress.total_quizzes_completed == 0
    xp_earned = compute_quiz_xp(score, result.questions_total, streak_update.multiplier, first_quiz=first_quiz)
    previous_level = progress.level

    progress.total_questions_attempted += result.questions_total
    progress.total_questions_correct += result.questions_correct
    progress.total_quizzes_completed += 1
    progress.total_time_spent += result.time_taken
    _update_subject(progress, result, score)

    activity = await daily_activity_for(db, user_id, activity_day(now))
    activity.quizzes_completed += 1
    activity.questions_answered += result.questions_total
    activity.questions_correct += result.questions_correct
    activity.time_spent += result.time_taken

    attempt.subject = result.subject
    attempt.score = score
    attempt.time_taken = result.time_taken
    attempt.questions_correct = result.questions_correct
    attempt.questions_total = result.questions_total
    attempt.results = list(result.results)
    attempt.xp_earned = xp_earned
    attempt.claimed = False
    attempt.completed_at = now

    await grant_xp(
        db,
        progress,
        xp_earned,
        source="quiz",
        source_id=result.quiz_id,
        description=f"Completed quiz with {score}%",
        idempotency_key=f"quiz:{user_id}:{result.quiz_id}",
        now=now,
    )
    await db.flush()

    return ProgressUpdate(
        xp_earned=xp_earned,
        new_level=progress.level,
        previous_level=previous_level,
        current_streak=streak_update.streak,
        total_xp=progress.total_xp,
        score=score,
        multiplier=streak_update.multiplier,
        first_quiz=first_quiz,
        new_milestones=streak_update.new_milestones,
    )
