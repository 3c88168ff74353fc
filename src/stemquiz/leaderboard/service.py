"""XP leaderboard over the progress ledger.

Ranked by total XP, then total correct answers, then user id. The board
and the per-user rank share that ordering.
"""

from __future__ import annotations

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from stemquiz.db.models import User, UserProgress
from stemquiz.progression.ledger import score_percentage
from stemquiz.progression.levels import level_title

BOARD_ORDER = (
    UserProgress.total_xp.desc(),
    UserProgress.total_questions_correct.desc(),
    UserProgress.user_id,
)


async def get_leaderboard(
    db: AsyncSession,
    page: int = 1,
    per_page: int = 50,
    current_user_id: int | None = None,
) -> dict:
    """Get one page of the leaderboard, enriched with display names."""
    total_result = await db.execute(select(func.count()).select_from(UserProgress))
    total = total_result.scalar_one()

    start = (page - 1) * per_page
    result = await db.execute(
        select(UserProgress, User)
        .join(User, UserProgress.user_id == User.id)
        .order_by(*BOARD_ORDER)
        .offset(start)
        .limit(per_page)
    )

    entries = []
    for rank_offset, row in enumerate(result):
        progress, user = row.UserProgress, row.User
        entries.append({
            "rank": start + rank_offset + 1,
            "user_id": str(user.id),
            "display_name": user.display_name or user.username,
            "total_xp": progress.total_xp,
            "level": progress.level,
            "level_title": level_title(progress.level),
            "quizzes_completed": progress.total_quizzes_completed,
            "questions_correct": progress.total_questions_correct,
            "accuracy": score_percentage(progress.total_questions_correct, progress.total_questions_attempted),
            "is_current_user": current_user_id is not None and user.id == current_user_id,
        })

    return {"entries": entries, "total": total, "page": page, "per_page": per_page}


async def get_user_rank(db: AsyncSession, user_id: int) -> dict:
    """Position of the user on the leaderboard: one plus everyone ordered ahead."""
    total_result = await db.execute(select(func.count()).select_from(UserProgress))
    total = total_result.scalar_one()

    mine = await db.execute(
        select(UserProgress.total_xp, UserProgress.total_questions_correct)
        .where(UserProgress.user_id == user_id)
    )
    row = mine.one_or_none()
    if row is None:
        return {"rank": 0, "total_xp": 0, "total": total, "percentile": 0}
    total_xp, correct = row

    ahead = await db.execute(
        select(func.count())
        .select_from(UserProgress)
        .where(
            or_(
                UserProgress.total_xp > total_xp,
                and_(
                    UserProgress.total_xp == total_xp,
                    UserProgress.total_questions_correct > correct,
                ),
                and_(
                    UserProgress.total_xp == total_xp,
                    UserProgress.total_questions_correct == correct,
                    UserProgress.user_id < user_id,
                ),
            )
        )
    )
    rank = ahead.scalar_one() + 1
    return {
        "rank": rank,
        "total_xp": total_xp,
        "total": total,
        "percentile": round(100 - (rank / total * 100), 2) if total > 0 else 0,
    }
