"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI

from stemquiz.config import get_settings
from stemquiz.database import close_db, get_session_factory, init_db
from stemquiz.health.router import router as health_router
from stemquiz.leaderboard.router import router as leaderboard_router
from stemquiz.middleware import setup_middleware
from stemquiz.progression.router import router as progression_router
from stemquiz.quizzes.router import router as quizzes_router
from stemquiz.quizzes.scoring import list_unfinalized_claims
from stemquiz.redis_client import close_redis, init_redis

logger = logging.getLogger(__name__)


async def report_unfinalized_claims(stale_after: timedelta) -> int:
    """Log quiz attempts stuck between claim and finalize. Returns how many there are."""
    async with get_session_factory()() as db:
        stuck = await list_unfinalized_claims(db, stale_after)
        for attempt in stuck:
            logger.error(
                "Quiz attempt %s (user %s, quiz %s) claimed at %s was never finalized",
                attempt.id,
                attempt.user_id,
                attempt.quiz_id,
                attempt.claimed_at,
            )
    return len(stuck)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    try:
        await report_unfinalized_claims(timedelta(minutes=settings.stale_claim_minutes))
    except Exception:
        logger.warning("Unfinalized claim check failed (tables may not exist yet)", exc_info=True)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="STEM Quiz API",
        description="Quiz scoring, streaks, XP and badges for the STEM quiz platform",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(quizzes_router)
    app.include_router(progression_router)
    app.include_router(leaderboard_router)

    return app


app = create_app()
