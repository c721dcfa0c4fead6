"""Flow XP calculation service.

Pure arithmetic: no database, no clock. Callers pass timestamps in.
"""

import math
from datetime import datetime


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


class FlowXPCalculator:
    """Service for calculating focus scores, flow XP and streak bonuses."""

    # Focus score
    DISTRACTION_PENALTY = 5
    MAX_DISTRACTION_PENALTY = 30
    MAX_FOCUS_SCORE = 100

    # Flow XP
    XP_PER_MINUTE = 2
    FOCUS_BONUS_RATIO = 0.5

    # Streaks
    STREAK_WINDOW_HOURS = 48
    STREAK_BONUS_PER_DAY = 5
    MAX_STREAK_BONUS = 50

    @classmethod
    def actual_duration(
        cls, started_at: datetime, ended_at: datetime, paused_seconds: int = 0
    ) -> int:
        """Whole minutes between start and end, never negative."""
        seconds = (ended_at - started_at).total_seconds() - paused_seconds
        return max(0, round_half_up(seconds / 60))

    @classmethod
    def completion_ratio(cls, actual_minutes: int, planned_minutes: int) -> float:
        """Share of the planned duration actually spent, capped at 1."""
        if planned_minutes <= 0:
            return 1.0
        return min(actual_minutes / planned_minutes, 1.0)

    @classmethod
    def distraction_penalty(cls, distraction_count: int) -> int:
        return min(
            max(distraction_count, 0) * cls.DISTRACTION_PENALTY,
            cls.MAX_DISTRACTION_PENALTY,
        )

    @classmethod
    def focus_score(
        cls, actual_minutes: int, planned_minutes: int, distraction_count: int
    ) -> int:
        """
        Session quality in [0, 100].
        Completion percentage minus a capped distraction penalty.
        """
        raw_score = cls.completion_ratio(actual_minutes, planned_minutes) * 100
        score = max(raw_score - cls.distraction_penalty(distraction_count), 0)
        return min(round_half_up(score), cls.MAX_FOCUS_SCORE)

    @classmethod
    def base_xp(cls, actual_minutes: int) -> int:
        return round_half_up(actual_minutes * cls.XP_PER_MINUTE)

    @classmethod
    def focus_bonus(cls, focus_score: int, base_xp: int) -> int:
        """Up to half of the base XP, scaled by focus score."""
        return round_half_up((focus_score / 100) * base_xp * cls.FOCUS_BONUS_RATIO)

    @classmethod
    def score_session(
        cls,
        started_at: datetime,
        ended_at: datetime,
        planned_minutes: int,
        distraction_count: int,
        paused_seconds: int = 0,
    ) -> dict:
        """
        Compute every derived field of a completed session.

        paused_seconds is subtracted from the elapsed time; pass 0 to
        measure plain wall-clock time from the original start.
        """
        actual = cls.actual_duration(started_at, ended_at, paused_seconds)

        score = cls.focus_score(actual, planned_minutes, distraction_count)
        base = cls.base_xp(actual)
        bonus = cls.focus_bonus(score, base)

        return {
            "actual_duration_minutes": actual,
            "completion_ratio": cls.completion_ratio(actual, planned_minutes),
            "distraction_penalty": cls.distraction_penalty(distraction_count),
            "focus_score": score,
            "base_xp": base,
            "focus_bonus": bonus,
            "flow_xp_earned": base + bonus,
        }

    @classmethod
    def evaluate_streak(
        cls,
        now: datetime,
        last_session_at: datetime | None,
        current_streak: int,
    ) -> dict:
        """
        Continue or restart the focus streak.

        A completion within 48 hours of the previous one continues the
        streak and earns 5 XP per streak day, capped at 50. Anything else
        (including no previous session) restarts at 1 with no bonus.
        """
        if last_session_at is not None:
            hours_since_last = (now - last_session_at).total_seconds() / 3600
            if hours_since_last <= cls.STREAK_WINDOW_HOURS:
                new_streak = current_streak + 1
                return {
                    "continued": True,
                    "new_streak": new_streak,
                    "streak_bonus": min(
                        new_streak * cls.STREAK_BONUS_PER_DAY, cls.MAX_STREAK_BONUS
                    ),
                }

        return {"continued": False, "new_streak": 1, "streak_bonus": 0}

    @classmethod
    def apply_to_user(
        cls, user, flow_xp_earned: int, streak: dict, now: datetime
    ) -> int:
        """Fold one completed session into the user's aggregate. Returns total XP."""
        total = flow_xp_earned + streak["streak_bonus"]
        user.flow_xp = (user.flow_xp or 0) + total
        user.xp = (user.xp or 0) + total
        user.focus_streak = streak["new_streak"]
        user.total_focus_sessions = (user.total_focus_sessions or 0) + 1
        user.last_focus_session_at = now
        user.longest_focus_streak = max(
            user.longest_focus_streak or 0, streak["new_streak"]
        )
        return total
