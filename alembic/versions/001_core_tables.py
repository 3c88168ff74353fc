"""Core tables: users, question bank, progress ledger, streaks, achievements.

UNIQUE constraints on quiz_attempts(user_id, quiz_id), achievements(user_id,
achievement_type), streak_milestones(user_id, days) and xp_ledger
(idempotency_key) back the exactly-once writes in the scoring flow.

Revision ID: 001_core_tables
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_core_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id BIGSERIAL PRIMARY KEY,
            username VARCHAR(64) UNIQUE NOT NULL,
            display_name VARCHAR(64),
            is_banned BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Question bank ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS quizzes (
            id VARCHAR(64) PRIMARY KEY,
            title VARCHAR(200) NOT NULL,
            subject VARCHAR(32) NOT NULL,
            is_published BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS questions (
            id VARCHAR(64) PRIMARY KEY,
            title VARCHAR(200) NOT NULL,
            question_text TEXT NOT NULL,
            subject VARCHAR(32) NOT NULL,
            correct_answer TEXT,
            explanation TEXT
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS quiz_questions (
            quiz_id VARCHAR(64) NOT NULL REFERENCES quizzes(id) ON DELETE CASCADE,
            question_id VARCHAR(64) NOT NULL REFERENCES questions(id),
            position INTEGER NOT NULL DEFAULT 0,
            PRIMARY KEY (quiz_id, question_id)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS question_choices (
            id BIGSERIAL PRIMARY KEY,
            question_id VARCHAR(64) NOT NULL REFERENCES questions(id) ON DELETE CASCADE,
            choice_key VARCHAR(64) NOT NULL,
            text TEXT NOT NULL,
            is_correct BOOLEAN NOT NULL DEFAULT false,
            position INTEGER NOT NULL DEFAULT 0,
            CONSTRAINT uq_question_choices_question_key UNIQUE (question_id, choice_key)
        )
    """)

    # --- Progress ledger ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_progress (
            user_id BIGINT PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            total_xp BIGINT NOT NULL DEFAULT 0,
            level INTEGER NOT NULL DEFAULT 1,
            total_questions_attempted INTEGER NOT NULL DEFAULT 0,
            total_questions_correct INTEGER NOT NULL DEFAULT 0,
            total_quizzes_completed INTEGER NOT NULL DEFAULT 0,
            total_time_spent DOUBLE PRECISION NOT NULL DEFAULT 0,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_user_progress_ranking
        ON user_progress(total_xp DESC, total_questions_correct DESC)
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS subject_progress (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES user_progress(user_id) ON DELETE CASCADE,
            subject VARCHAR(32) NOT NULL,
            questions_attempted INTEGER NOT NULL DEFAULT 0,
            questions_correct INTEGER NOT NULL DEFAULT 0,
            quizzes_completed INTEGER NOT NULL DEFAULT 0,
            time_spent DOUBLE PRECISION NOT NULL DEFAULT 0,
            best_score INTEGER NOT NULL DEFAULT 0,
            average_score DOUBLE PRECISION NOT NULL DEFAULT 0,
            CONSTRAINT uq_subject_progress_user_subject UNIQUE (user_id, subject)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS quiz_attempts (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            quiz_id VARCHAR(64) NOT NULL,
            subject VARCHAR(32) NOT NULL DEFAULT 'pending',
            score INTEGER NOT NULL DEFAULT 0,
            time_taken DOUBLE PRECISION NOT NULL DEFAULT 0,
            questions_correct INTEGER NOT NULL DEFAULT 0,
            questions_total INTEGER NOT NULL DEFAULT 0,
            xp_earned INTEGER NOT NULL DEFAULT 0,
            results JSONB NOT NULL DEFAULT '[]',
            claimed BOOLEAN NOT NULL DEFAULT true,
            claimed_at TIMESTAMPTZ NOT NULL,
            completed_at TIMESTAMPTZ,
            CONSTRAINT uq_quiz_attempts_user_quiz UNIQUE (user_id, quiz_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_quiz_attempts_unfinalized
        ON quiz_attempts(claimed_at)
        WHERE claimed = true
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS xp_ledger (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            amount INTEGER NOT NULL,
            source VARCHAR(32) NOT NULL,
            source_id VARCHAR(128),
            description VARCHAR(256),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            idempotency_key VARCHAR(256) UNIQUE NOT NULL
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_xp_ledger_user_time
        ON xp_ledger(user_id, created_at DESC)
    """)

    # --- Streaks ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_streaks (
            user_id BIGINT PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            current_streak INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            last_activity_date DATE,
            freezes_available INTEGER NOT NULL DEFAULT 1,
            freeze_used_today BOOLEAN NOT NULL DEFAULT false,
            current_multiplier DOUBLE PRECISION NOT NULL DEFAULT 1.0,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS streak_milestones (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES user_streaks(user_id) ON DELETE CASCADE,
            days INTEGER NOT NULL,
            reached_at TIMESTAMPTZ NOT NULL,
            reward_xp INTEGER NOT NULL,
            reward_badge VARCHAR(48) NOT NULL,
            CONSTRAINT uq_streak_milestones_user_days UNIQUE (user_id, days)
        )
    """)

    # --- Achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievements (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            achievement_type VARCHAR(48) NOT NULL,
            earned_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            xp_reward INTEGER NOT NULL,
            quiz_id VARCHAR(64),
            CONSTRAINT uq_achievements_user_type UNIQUE (user_id, achievement_type)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_achievements_user_earned
        ON achievements(user_id, earned_at DESC)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS streak_milestones CASCADE")
    op.execute("DROP TABLE IF EXISTS user_streaks CASCADE")
    op.execute("DROP TABLE IF EXISTS xp_ledger CASCADE")
    op.execute("DROP TABLE IF EXISTS quiz_attempts CASCADE")
    op.execute("DROP TABLE IF EXISTS subject_progress CASCADE")
    op.execute("DROP TABLE IF EXISTS user_progress CASCADE")
    op.execute("DROP TABLE IF EXISTS question_choices CASCADE")
    op.execute("DROP TABLE IF EXISTS quiz_questions CASCADE")
    op.execute("DROP TABLE IF EXISTS questions CASCADE")
    op.execute("DROP TABLE IF EXISTS quizzes CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
