"""Initial schema.

Creates users, tasks, achievements and unlocked_achievements. Every foreign
key to users cascades on delete.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-17
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id BIGSERIAL PRIMARY KEY,
            username VARCHAR(50) UNIQUE NOT NULL,
            email VARCHAR(320) UNIQUE NOT NULL,
            password_hash VARCHAR(256) NOT NULL,
            level INTEGER NOT NULL DEFAULT 1,
            experience INTEGER NOT NULL DEFAULT 0,
            streak_days INTEGER NOT NULL DEFAULT 0,
            last_login TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Tasks ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS tasks (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            title VARCHAR(200) NOT NULL,
            description TEXT,
            priority VARCHAR(16) NOT NULL DEFAULT 'medium',
            difficulty VARCHAR(16) NOT NULL DEFAULT 'medium',
            experience_points INTEGER NOT NULL DEFAULT 10,
            completed BOOLEAN NOT NULL DEFAULT false,
            completed_at TIMESTAMPTZ,
            due_date TIMESTAMPTZ,
            category VARCHAR(50) NOT NULL DEFAULT 'general',
            tags JSONB NOT NULL DEFAULT '[]',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_tasks_user_completed
        ON tasks(user_id, completed)
    """)

    # --- Achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievements (
            id SERIAL PRIMARY KEY,
            name VARCHAR(64) UNIQUE NOT NULL,
            description TEXT NOT NULL,
            icon VARCHAR(16) NOT NULL,
            type VARCHAR(32) NOT NULL,
            required_value INTEGER NOT NULL
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_achievements_type
        ON achievements(type, required_value)
    """)

    # --- Unlocked Achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS unlocked_achievements (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            achievement_id INTEGER NOT NULL REFERENCES achievements(id) ON DELETE CASCADE,
            unlocked_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_unlocked_achievements_user_achievement UNIQUE(user_id, achievement_id)
        )
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS unlocked_achievements")
    op.execute("DROP TABLE IF EXISTS achievements")
    op.execute("DROP TABLE IF EXISTS tasks")
    op.execute("DROP TABLE IF EXISTS users")
