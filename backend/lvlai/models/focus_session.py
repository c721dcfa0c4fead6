"""Focus session model."""

from enum import Enum

from sqlalchemy import text

from lvlai import db
from lvlai.utils.clock import utcnow

MAX_NOTES_LENGTH = 500
MIN_PLANNED_MINUTES = 1
MAX_PLANNED_MINUTES = 120
MAX_STATS_PERIOD_DAYS = 3650


class FocusSessionStatus(str, Enum):
    """Focus session status enum."""

    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class FocusSessionType(str, Enum):
    """Kind of timed interval."""

    POMODORO = "pomodoro"
    SHORT_BREAK = "short_break"
    LONG_BREAK = "long_break"


class FocusSession(db.Model):
    """One timed focus attempt and the rewards it produced."""

    __tablename__ = "focus_sessions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    session_type = db.Column(
        db.String(20), default=FocusSessionType.POMODORO.value, nullable=False
    )
    status = db.Column(
        db.String(20), default=FocusSessionStatus.ACTIVE.value, nullable=False
    )

    planned_duration_minutes = db.Column(db.Integer, default=25, nullable=False)
    actual_duration_minutes = db.Column(db.Integer, nullable=True)

    # Timestamps
    started_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)
    ended_at = db.Column(db.DateTime, nullable=True)
    paused_at = db.Column(db.DateTime, nullable=True)

    # Accumulated pause time in seconds
    total_pause_seconds = db.Column(db.Integer, default=0, nullable=False)

    # Scoring
    distraction_count = db.Column(db.Integer, default=0, nullable=False)
    focus_score = db.Column(db.Integer, nullable=True)
    flow_xp_earned = db.Column(db.Integer, default=0, nullable=False)
    streak_bonus = db.Column(db.Integer, default=0, nullable=False)

    # Opaque task identifiers
    tasks_worked_on = db.Column(db.JSON, default=list, nullable=False)
    tasks_completed = db.Column(db.JSON, default=list, nullable=False)

    user_notes = db.Column(db.String(MAX_NOTES_LENGTH), nullable=True)

    # {summary, strengths, improvements, recommendations,
    #  productivity_score, generated_at}
    ai_analysis = db.Column(db.JSON, nullable=True)

    version_id = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.Index("ix_focus_sessions_user_status", "user_id", "status"),
        # At most one active session per user
        db.Index(
            "uq_focus_sessions_one_active_per_user",
            "user_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        """Convert focus session to dictionary."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "session_type": self.session_type,
            "status": self.status,
            "planned_duration_minutes": self.planned_duration_minutes,
            "actual_duration_minutes": self.actual_duration_minutes,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "paused_at": self.paused_at.isoformat() if self.paused_at else None,
            "total_pause_seconds": self.total_pause_seconds,
            "distraction_count": self.distraction_count,
            "focus_score": self.focus_score,
            "flow_xp_earned": self.flow_xp_earned,
            "streak_bonus": self.streak_bonus,
            "tasks_worked_on": list(self.tasks_worked_on or []),
            "tasks_completed": list(self.tasks_completed or []),
            "user_notes": self.user_notes,
            "ai_analysis": self.ai_analysis,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<FocusSession {self.id}: {self.status}>"
