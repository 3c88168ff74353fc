"""Daily activity totals and attempt history index.

daily_activity holds one row per user per UTC day, written inside the same
transaction as the quiz or badge XP it sums.

Revision ID: 002_activity_history
Revises: 001_core_tables
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "002_activity_history"
down_revision: str | None = "001_core_tables"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE IF NOT EXISTS daily_activity (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES user_progress(user_id) ON DELETE CASCADE,
            activity_date DATE NOT NULL,
            quizzes_completed INTEGER NOT NULL DEFAULT 0,
            questions_answered INTEGER NOT NULL DEFAULT 0,
            questions_correct INTEGER NOT NULL DEFAULT 0,
            xp_gained INTEGER NOT NULL DEFAULT 0,
            time_spent DOUBLE PRECISION NOT NULL DEFAULT 0,
            CONSTRAINT uq_daily_activity_user_date UNIQUE (user_id, activity_date)
        )
    """)

    # Finalized attempt history, newest first
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_quiz_attempts_user_completed
        ON quiz_attempts(user_id, completed_at DESC)
        WHERE claimed = false
    """)


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS idx_quiz_attempts_user_completed")
    op.execute("DROP TABLE IF EXISTS daily_activity CASCADE")
