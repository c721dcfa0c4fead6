"""User model."""

import math

from werkzeug.security import check_password_hash, generate_password_hash

from lvlai import db
from lvlai.utils.clock import utcnow


class User(db.Model):
    """User account plus cumulative gamification state."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    telegram_id = db.Column(db.BigInteger, unique=True, nullable=True, index=True)
    username = db.Column(db.String(255), nullable=True)
    first_name = db.Column(db.String(255), nullable=True)
    last_name = db.Column(db.String(255), nullable=True)

    # Email/password authentication
    email = db.Column(db.String(255), unique=True, nullable=True, index=True)
    password_hash = db.Column(db.String(255), nullable=True)

    def set_password(self, password: str) -> None:
        """Set password hash."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        """Check password against hash."""
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    # Gamification
    xp = db.Column(db.Integer, default=0, nullable=False)
    flow_xp = db.Column(db.Integer, default=0, nullable=False)
    total_tasks_completed = db.Column(db.Integer, default=0, nullable=False)
    focus_streak = db.Column(db.Integer, default=0, nullable=False)
    longest_focus_streak = db.Column(db.Integer, default=0, nullable=False)
    total_focus_sessions = db.Column(db.Integer, default=0, nullable=False)
    last_focus_session_at = db.Column(db.DateTime, nullable=True)

    # Optimistic concurrency token, bumped on every UPDATE
    version_id = db.Column(db.Integer, nullable=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    focus_sessions = db.relationship(
        "FocusSession", backref="user", lazy="dynamic", cascade="all, delete-orphan"
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def level(self) -> int:
        """Calculate user level based on XP."""
        if self.xp < 100:
            return 1
        return int(math.floor(math.sqrt(self.xp / 100))) + 1

    @property
    def xp_for_next_level(self) -> int:
        """XP required for next level."""
        return (self.level**2) * 100

    def to_dict(self) -> dict:
        """Convert user to dictionary."""
        return {
            "id": self.id,
            "telegram_id": self.telegram_id,
            "email": self.email,
            "username": self.username,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "xp": self.xp,
            "level": self.level,
            "xp_for_next_level": self.xp_for_next_level,
            "flow_xp": self.flow_xp,
            "total_tasks_completed": self.total_tasks_completed,
            "focus_streak": self.focus_streak,
            "longest_focus_streak": self.longest_focus_streak,
            "total_focus_sessions": self.total_focus_sessions,
            "last_focus_session_at": (
                self.last_focus_session_at.isoformat()
                if self.last_focus_session_at
                else None
            ),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<User {self.id}>"
