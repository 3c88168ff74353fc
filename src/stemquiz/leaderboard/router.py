"""Leaderboard endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from stemquiz.auth.dependencies import get_current_user, get_current_user_optional
from stemquiz.config import get_settings
from stemquiz.database import get_session
from stemquiz.db.models import User
from stemquiz.leaderboard.schemas import LeaderboardEntryResponse, LeaderboardResponse, UserRankResponse
from stemquiz.leaderboard.service import get_leaderboard, get_user_rank

router = APIRouter(prefix="/api/v1", tags=["Leaderboard"])


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def leaderboard(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1),
    user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_session),
) -> LeaderboardResponse:
    """All-time XP leaderboard. Public; the caller's row is flagged when a token is sent."""
    per_page = min(limit, get_settings().leaderboard_max_limit)
    data = await get_leaderboard(db, page, per_page, current_user_id=user.id if user else None)
    return LeaderboardResponse(
        entries=[LeaderboardEntryResponse(**e) for e in data["entries"]],
        total=data["total"],
        page=data["page"],
        per_page=data["per_page"],
    )


@router.get("/users/me/rank", response_model=UserRankResponse)
async def my_rank(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> UserRankResponse:
    """Current user's leaderboard position."""
    return UserRankResponse(**await get_user_rank(db, user.id))
