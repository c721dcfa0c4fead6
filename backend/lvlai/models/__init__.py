"""Database models."""

from lvlai.models.ai_usage_log import AIUsageLog
from lvlai.models.focus_session import (
    FocusSession,
    FocusSessionStatus,
    FocusSessionType,
)
from lvlai.models.user import User

__all__ = [
    "User",
    "FocusSession",
    "FocusSessionStatus",
    "FocusSessionType",
    "AIUsageLog",
]
