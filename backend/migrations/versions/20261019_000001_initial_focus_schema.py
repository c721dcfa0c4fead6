"""Initial schema: users, focus sessions, AI usage log.

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19
"""

import sqlalchemy as sa
from alembic import op

revision = "20261019_000001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("telegram_id", sa.BigInteger(), nullable=True),
        sa.Column("username", sa.String(255), nullable=True),
        sa.Column("first_name", sa.String(255), nullable=True),
        sa.Column("last_name", sa.String(255), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("xp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("flow_xp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "total_tasks_completed", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("focus_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "longest_focus_streak", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column(
            "total_focus_sessions", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("last_focus_session_at", sa.DateTime(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")
        ),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_telegram_id", "users", ["telegram_id"], unique=True)
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "focus_sessions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column(
            "session_type", sa.String(20), nullable=False, server_default="pomodoro"
        ),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column(
            "planned_duration_minutes",
            sa.Integer(),
            nullable=False,
            server_default="25",
        ),
        sa.Column("actual_duration_minutes", sa.Integer(), nullable=True),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("ended_at", sa.DateTime(), nullable=True),
        sa.Column("paused_at", sa.DateTime(), nullable=True),
        sa.Column(
            "total_pause_seconds", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column(
            "distraction_count", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("focus_score", sa.Integer(), nullable=True),
        sa.Column("flow_xp_earned", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("streak_bonus", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tasks_worked_on", sa.JSON(), nullable=False),
        sa.Column("tasks_completed", sa.JSON(), nullable=False),
        sa.Column("user_notes", sa.String(500), nullable=True),
        sa.Column("ai_analysis", sa.JSON(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_focus_sessions_user_id", "focus_sessions", ["user_id"])
    op.create_index("ix_focus_sessions_started_at", "focus_sessions", ["started_at"])
    op.create_index("ix_focus_sessions_created_at", "focus_sessions", ["created_at"])
    op.create_index(
        "ix_focus_sessions_user_status", "focus_sessions", ["user_id", "status"]
    )
    op.create_index(
        "uq_focus_sessions_one_active_per_user",
        "focus_sessions",
        ["user_id"],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
    )

    op.create_table(
        "ai_usage_log",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("service_name", sa.String(100), nullable=False),
        sa.Column("model", sa.String(100), nullable=False),
        sa.Column("prompt_tokens", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "completion_tokens", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("total_tokens", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "estimated_cost_usd", sa.Float(), nullable=False, server_default="0.0"
        ),
        sa.Column("latency_ms", sa.Integer(), nullable=True),
        sa.Column("endpoint", sa.String(100), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_ai_usage_log_user_id", "ai_usage_log", ["user_id"])
    op.create_index("ix_ai_usage_log_service_name", "ai_usage_log", ["service_name"])
    op.create_index("ix_ai_usage_log_endpoint", "ai_usage_log", ["endpoint"])
    op.create_index("ix_ai_usage_log_created_at", "ai_usage_log", ["created_at"])


def downgrade():
    op.drop_table("ai_usage_log")
    op.drop_index("uq_focus_sessions_one_active_per_user", table_name="focus_sessions")
    op.drop_index("ix_focus_sessions_user_status", table_name="focus_sessions")
    op.drop_index("ix_focus_sessions_created_at", table_name="focus_sessions")
    op.drop_index("ix_focus_sessions_started_at", table_name="focus_sessions")
    op.drop_index("ix_focus_sessions_user_id", table_name="focus_sessions")
    op.drop_table("focus_sessions")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_index("ix_users_telegram_id", table_name="users")
    op.drop_table("users")
