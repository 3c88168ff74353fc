"""Progression API endpoints: badges, progress, streak, XP history and activity."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stemquiz.auth.dependencies import get_current_user
from stemquiz.config import get_settings
from stemquiz.database import get_session
from stemquiz.db.models import User, UserStreak, XPLedger
from stemquiz.exceptions import UserProgressNotFound
from stemquiz.progression.activity import ACTIVITY_DAYS, FEED_SIZE, activity_feed, daily_activity
from stemquiz.progression.badge_engine import badge_progress, list_user_badges
from stemquiz.progression.catalog import BADGE_CATALOG
from stemquiz.progression.ledger import get_progress, score_percentage
from stemquiz.progression.levels import compute_level
from stemquiz.progression.schemas import (
    ActivityFeedResponse,
    ActivityItem,
    BadgeCatalogResponse,
    BadgeItem,
    BadgeProgressItem,
    BadgeProgressResponse,
    BadgeStats,
    DailyActivityItem,
    DailyActivityResponse,
    LevelInfo,
    ProgressResponse,
    StreakMilestoneItem,
    StreakResponse,
    SubjectProgressItem,
    UserBadgesResponse,
    XPHistoryEntry,
    XPHistoryResponse,
)
from stemquiz.progression.streaks import MILESTONE_REWARDS

router = APIRouter(prefix="/api/v1", tags=["Progression"])


# --- Public endpoints ---


@router.get("/badges", response_model=BadgeCatalogResponse)
async def list_badges() -> BadgeCatalogResponse:
    """Get every badge in the catalog."""
    badges = [
        BadgeItem(
            id=b.id,
            title=b.title,
            description=b.description,
            rarity=b.rarity,
            xp=b.xp,
            category=b.category,
        )
        for b in BADGE_CATALOG.values()
    ]
    return BadgeCatalogResponse(badges=badges, total=len(badges))


# --- Authenticated endpoints ---


@router.get("/users/me/badges", response_model=UserBadgesResponse)
async def get_my_badges(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> UserBadgesResponse:
    """Get the catalog split into earned and locked badges for the current user."""
    listing = await list_user_badges(db, user.id)
    return UserBadgesResponse(
        earned=[BadgeItem(**b) for b in listing["earned"]],
        locked=[BadgeItem(**b) for b in listing["locked"]],
        stats=BadgeStats(**listing["stats"]),
        recently_earned=[BadgeItem(**b) for b in listing["recently_earned"]],
    )


@router.get("/users/me/badges/progress", response_model=BadgeProgressResponse)
async def get_my_badge_progress(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> BadgeProgressResponse:
    """Get progress toward counter-based badges."""
    rows = await badge_progress(db, user.id)
    return BadgeProgressResponse(
        progress=[
            BadgeProgressItem(
                badge=BadgeItem(**row["badge"]),
                current=row["current"],
                target=row["target"],
                percentage=row["percentage"],
            )
            for row in rows
        ],
    )


@router.get("/users/me/progress", response_model=ProgressResponse)
async def get_my_progress(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ProgressResponse:
    """Get XP, level, totals and the per-subject breakdown."""
    progress = await get_progress(db, user.id)
    if progress is None:
        raise UserProgressNotFound(user.id)

    return ProgressResponse(
        total_xp=progress.total_xp,
        level=LevelInfo(**compute_level(progress.total_xp)),
        total_questions_attempted=progress.total_questions_attempted,
        total_questions_correct=progress.total_questions_correct,
        total_quizzes_completed=progress.total_quizzes_completed,
        total_time_spent=progress.total_time_spent,
        accuracy=score_percentage(progress.total_questions_correct, progress.total_questions_attempted),
        subjects=[
            SubjectProgressItem(
                subject=s.subject,
                questions_attempted=s.questions_attempted,
                questions_correct=s.questions_correct,
                quizzes_completed=s.quizzes_completed,
                time_spent=s.time_spent,
                best_score=s.best_score,
                average_score=s.average_score,
                accuracy=score_percentage(s.questions_correct, s.questions_attempted),
            )
            for s in progress.subjects
        ],
    )


@router.get("/users/me/streak", response_model=StreakResponse)
async def get_my_streak(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> StreakResponse:
    """Get current streak state. Users with no activity get a blank streak."""
    streak = await db.get(UserStreak, user.id)
    if streak is None:
        return StreakResponse(
            current_streak=0,
            longest_streak=0,
            freezes_available=get_settings().initial_streak_freezes,
            current_multiplier=1.0,
            next_milestone=min(MILESTONE_REWARDS),
        )

    upcoming = [days for days in sorted(MILESTONE_REWARDS) if days > streak.current_streak]
    return StreakResponse(
        current_streak=streak.current_streak,
        longest_streak=streak.longest_streak,
        last_activity_date=streak.last_activity_date,
        freezes_available=streak.freezes_available,
        current_multiplier=streak.current_multiplier,
        milestones=[
            StreakMilestoneItem(
                days=m.days,
                reached_at=m.reached_at,
                reward_xp=m.reward_xp,
                reward_badge=m.reward_badge,
            )
            for m in streak.milestones
        ],
        next_milestone=upcoming[0] if upcoming else None,
    )


@router.get("/users/me/xp/history", response_model=XPHistoryResponse)
async def get_xp_history(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> XPHistoryResponse:
    """Get XP ledger history (paginated)."""
    total_result = await db.execute(
        select(func.count()).select_from(XPLedger).where(XPLedger.user_id == user.id)
    )
    total = total_result.scalar_one()

    offset = (page - 1) * per_page
    result = await db.execute(
        select(XPLedger)
        .where(XPLedger.user_id == user.id)
        .order_by(XPLedger.created_at.desc(), XPLedger.id.desc())
        .offset(offset)
        .limit(per_page)
    )
    entries = result.scalars().all()

    return XPHistoryResponse(
        entries=[
            XPHistoryEntry(
                amount=e.amount,
                source=e.source,
                source_id=e.source_id,
                description=e.description,
                created_at=e.created_at,
            )
            for e in entries
        ],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/users/me/activity/daily", response_model=DailyActivityResponse)
async def get_daily_activity(
    days: int = Query(ACTIVITY_DAYS, ge=1, le=365),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> DailyActivityResponse:
    """Questions, XP and time per UTC day for the activity graph."""
    rows = await daily_activity(db, user.id, days)
    return DailyActivityResponse(days=[DailyActivityItem(**row) for row in rows])


@router.get("/users/me/activities", response_model=ActivityFeedResponse)
async def get_activity_feed(
    limit: int = Query(FEED_SIZE, ge=1, le=50),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ActivityFeedResponse:
    """Recent finished quizzes and earned badges, newest first."""
    items = await activity_feed(db, user.id, limit)
    return ActivityFeedResponse(activities=[ActivityItem(**item) for item in items])
