"""Focus session lifecycle and rewards service."""

import math
from datetime import timedelta
from typing import Callable

import structlog
from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from lvlai import db
from lvlai.models.focus_session import (
    MAX_STATS_PERIOD_DAYS,
    FocusSession,
    FocusSessionStatus,
    FocusSessionType,
)
from lvlai.models.user import User
from lvlai.services.flow_xp_calculator import FlowXPCalculator, round_half_up
from lvlai.services.session_analyzer import (
    OpenAISessionAnalyzer,
    SessionAnalyzer,
    build_analysis_prompt,
    parse_analysis,
)
from lvlai.services.session_state import (
    ActiveSessionConflictError,
    ConcurrentUpdateError,
    SessionEvent,
    SessionNotFoundError,
    transition,
)
from lvlai.utils.clock import utcnow

logger = structlog.get_logger()

ACTIVE_SESSION_EXISTS = (
    "You already have an active focus session. "
    "Please end it before starting a new one."
)

SORT_FIELDS = {
    "started_at": FocusSession.started_at,
    "created_at": FocusSession.created_at,
    "focus_score": FocusSession.focus_score,
    "flow_xp_earned": FocusSession.flow_xp_earned,
}


class FocusSessionService:
    """Runs focus session transitions against the database.

    Every mutating operation is a single commit. Both focus sessions and
    users carry a version column, so a write that lost a race with another
    request fails with ConcurrentUpdateError instead of overwriting it.
    """

    def __init__(
        self,
        clock: Callable | None = None,
        analyzer: SessionAnalyzer | None = None,
        pause_counts_as_distraction: bool = True,
        exclude_paused_time: bool = False,
    ):
        self.clock = clock or utcnow
        self._analyzer = analyzer
        self.pause_counts_as_distraction = pause_counts_as_distraction
        self.exclude_paused_time = exclude_paused_time

    @property
    def analyzer(self) -> SessionAnalyzer:
        if self._analyzer is None:
            self._analyzer = OpenAISessionAnalyzer()
        return self._analyzer

    # Lookups

    def _get_owned(self, session_id: int, user_id: int) -> FocusSession:
        session = FocusSession.query.filter_by(id=session_id, user_id=user_id).first()
        if not session:
            raise SessionNotFoundError("Focus session not found")
        return session

    def _session_in_status(
        self, user_id: int, status: FocusSessionStatus
    ) -> FocusSession | None:
        return FocusSession.query.filter_by(user_id=user_id, status=status.value).first()

    def _commit(self):
        try:
            db.session.commit()
        except StaleDataError as e:
            db.session.rollback()
            logger.warning("focus_session_concurrent_update", error=str(e))
            raise ConcurrentUpdateError(
                "This session was modified by another request. Please retry."
            ) from e
        except IntegrityError as e:
            db.session.rollback()
            logger.warning("focus_session_active_conflict", error=str(e.orig))
            raise ActiveSessionConflictError(ACTIVE_SESSION_EXISTS) from e

    # Lifecycle

    def start(
        self,
        user_id: int,
        planned_duration_minutes: int,
        session_type: str = FocusSessionType.POMODORO.value,
        tasks_worked_on: list | None = None,
    ) -> FocusSession:
        """Create a new active session for the user."""
        if self._session_in_status(user_id, FocusSessionStatus.ACTIVE):
            raise ActiveSessionConflictError(ACTIVE_SESSION_EXISTS)

        now = self.clock()
        session = FocusSession(
            user_id=user_id,
            session_type=session_type,
            status=FocusSessionStatus.ACTIVE.value,
            planned_duration_minutes=planned_duration_minutes,
            started_at=now,
            created_at=now,
            tasks_worked_on=list(tasks_worked_on or []),
            tasks_completed=[],
            distraction_count=0,
            flow_xp_earned=0,
            streak_bonus=0,
            total_pause_seconds=0,
        )
        db.session.add(session)
        self._commit()

        logger.info(
            "focus_session_started",
            session_id=session.id,
            user_id=user_id,
            session_type=session_type,
            planned_duration_minutes=planned_duration_minutes,
        )
        return session

    def pause(self, session_id: int, user_id: int) -> FocusSession:
        """Pause an active session. By default a pause also counts as a distraction."""
        session = self._get_owned(session_id, user_id)
        session.status = transition(session.status, SessionEvent.PAUSE).value
        session.paused_at = self.clock()
        if self.pause_counts_as_distraction:
            session.distraction_count += 1
        self._commit()

        logger.info(
            "focus_session_paused",
            session_id=session.id,
            distraction_count=session.distraction_count,
        )
        return session

    def resume(self, session_id: int, user_id: int) -> FocusSession:
        """Resume a paused session. started_at is left untouched."""
        session = self._get_owned(session_id, user_id)
        new_status = transition(session.status, SessionEvent.RESUME)

        other = self._session_in_status(user_id, FocusSessionStatus.ACTIVE)
        if other and other.id != session.id:
            raise ActiveSessionConflictError(ACTIVE_SESSION_EXISTS)

        now = self.clock()
        if session.paused_at:
            paused_for = max(0, int((now - session.paused_at).total_seconds()))
            session.total_pause_seconds += paused_for
        session.paused_at = None
        session.status = new_status.value
        self._commit()

        logger.info("focus_session_resumed", session_id=session.id)
        return session

    def record_distraction(self, session_id: int, user_id: int) -> FocusSession:
        session = self._get_owned(session_id, user_id)
        session.status = transition(
            session.status, SessionEvent.RECORD_DISTRACTION
        ).value
        session.distraction_count += 1
        self._commit()

        logger.info(
            "focus_session_distraction",
            session_id=session.id,
            distraction_count=session.distraction_count,
        )
        return session

    def end(
        self,
        session_id: int,
        user_id: int,
        tasks_completed: list | None = None,
        user_notes: str | None = None,
    ) -> tuple[FocusSession, dict]:
        """
        Complete an active session and award flow XP.

        Returns the session and a rewards summary:
        flow_xp_earned, streak_bonus, total_xp_earned, focus_score, current_streak.
        """
        session = self._get_owned(session_id, user_id)
        new_status = transition(session.status, SessionEvent.END)

        user = db.session.get(User, user_id)
        if not user:
            raise SessionNotFoundError("User not found")

        now = self.clock()
        paused_seconds = session.total_pause_seconds if self.exclude_paused_time else 0
        score = FlowXPCalculator.score_session(
            started_at=session.started_at,
            ended_at=now,
            planned_minutes=session.planned_duration_minutes,
            distraction_count=session.distraction_count,
            paused_seconds=paused_seconds,
        )
        streak = FlowXPCalculator.evaluate_streak(
            now, user.last_focus_session_at, user.focus_streak
        )

        session.status = new_status.value
        session.ended_at = now
        session.tasks_completed = list(tasks_completed or [])
        if user_notes:
            session.user_notes = user_notes
        session.actual_duration_minutes = score["actual_duration_minutes"]
        session.focus_score = score["focus_score"]
        session.flow_xp_earned = score["flow_xp_earned"]
        session.streak_bonus = streak["streak_bonus"]

        total_xp = FlowXPCalculator.apply_to_user(
            user, score["flow_xp_earned"], streak, now
        )
        self._commit()

        rewards = {
            "flow_xp_earned": score["flow_xp_earned"],
            "streak_bonus": streak["streak_bonus"],
            "total_xp_earned": total_xp,
            "focus_score": score["focus_score"],
            "current_streak": streak["new_streak"],
        }
        logger.info(
            "focus_session_completed", session_id=session.id, user_id=user_id, **rewards
        )
        return session, rewards

    def cancel(self, session_id: int, user_id: int) -> FocusSession:
        """Abandon an active or paused session. No rewards are granted."""
        session = self._get_owned(session_id, user_id)
        new_status = transition(session.status, SessionEvent.CANCEL)

        now = self.clock()
        if session.paused_at:
            paused_for = max(0, int((now - session.paused_at).total_seconds()))
            session.total_pause_seconds += paused_for
            session.paused_at = None

        paused_seconds = session.total_pause_seconds if self.exclude_paused_time else 0
        session.status = new_status.value
        session.ended_at = now
        session.actual_duration_minutes = FlowXPCalculator.actual_duration(
            session.started_at, now, paused_seconds
        )
        self._commit()

        logger.info("focus_session_cancelled", session_id=session.id)
        return session

    # AI coaching

    def request_analysis(self, session_id: int, user_id: int) -> dict:
        """
        Return the coaching analysis for a completed session.

        A stored analysis is returned as-is, without calling the model again.
        """
        session = self._get_owned(session_id, user_id)
        transition(session.status, SessionEvent.ANALYZE)

        if session.ai_analysis:
            return session.ai_analysis

        content = self.analyzer.generate(build_analysis_prompt(session), user_id=user_id)
        analysis, used_fallback = parse_analysis(content, session.focus_score)
        if used_fallback:
            logger.warning("focus_analysis_unparseable", session_id=session.id)

        analysis["generated_at"] = self.clock().isoformat()
        session.ai_analysis = analysis
        self._commit()

        logger.info(
            "focus_analysis_generated", session_id=session.id, fallback=used_fallback
        )
        return analysis

    # Reads

    def get_active(self, user_id: int) -> FocusSession | None:
        """The user's running session, or the paused one if nothing is running."""
        return self._session_in_status(
            user_id, FocusSessionStatus.ACTIVE
        ) or self._session_in_status(user_id, FocusSessionStatus.PAUSED)

    def list_sessions(
        self,
        user_id: int,
        status: str | None = None,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "started_at",
    ) -> dict:
        query = FocusSession.query.filter(FocusSession.user_id == user_id)
        if status:
            query = query.filter(FocusSession.status == status)

        total = query.count()
        sessions = (
            query.order_by(SORT_FIELDS[sort_by].desc(), FocusSession.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        return {
            "sessions": [s.to_dict() for s in sessions],
            "count": len(sessions),
            "total": total,
            "page": page,
            "pages": math.ceil(total / limit) if total else 0,
        }

    def stats(self, user_id: int, period_days: int) -> dict:
        """Totals and a per-day breakdown of completed sessions in the window."""
        user = db.session.get(User, user_id)
        if not user:
            raise SessionNotFoundError("User not found")

        period_days = min(max(period_days, 1), MAX_STATS_PERIOD_DAYS)
        window_start = self.clock() - timedelta(days=period_days)
        sessions = FocusSession.query.filter(
            FocusSession.user_id == user_id,
            FocusSession.status == FocusSessionStatus.COMPLETED.value,
            FocusSession.created_at >= window_start,
        ).all()

        total_minutes = sum(s.actual_duration_minutes or 0 for s in sessions)
        average_score = (
            round_half_up(sum(s.focus_score or 0 for s in sessions) / len(sessions))
            if sessions
            else 0
        )

        daily: dict[str, dict] = {}
        for s in sessions:
            day = s.started_at.date().isoformat()
            bucket = daily.setdefault(
                day, {"sessions": 0, "minutes": 0, "flow_xp": 0, "tasks_completed": 0}
            )
            bucket["sessions"] += 1
            bucket["minutes"] += s.actual_duration_minutes or 0
            bucket["flow_xp"] += s.flow_xp_earned or 0
            bucket["tasks_completed"] += len(s.tasks_completed or [])

        return {
            "overview": {
                "total_sessions": len(sessions),
                "total_minutes": total_minutes,
                "total_hours": round_half_up(total_minutes * 10 / 60) / 10,
                "total_flow_xp": sum(s.flow_xp_earned or 0 for s in sessions),
                "average_focus_score": average_score,
                "total_distractions": sum(s.distraction_count for s in sessions),
                "total_tasks_completed": sum(
                    len(s.tasks_completed or []) for s in sessions
                ),
                "current_streak": user.focus_streak,
                "longest_streak": user.longest_focus_streak,
                "lifetime_flow_xp": user.flow_xp,
                "lifetime_sessions": user.total_focus_sessions,
            },
            "daily_breakdown": [
                {"date": day, **daily[day]} for day in sorted(daily)
            ],
        }


def get_focus_service() -> FocusSessionService:
    """Build the service from the current app's configuration."""
    config = current_app.config
    return FocusSessionService(
        clock=config.get("FOCUS_CLOCK"),
        analyzer=current_app.extensions.get("session_analyzer"),
        pause_counts_as_distraction=config.get(
            "FOCUS_PAUSE_COUNTS_AS_DISTRACTION", True
        ),
        exclude_paused_time=config.get("FOCUS_EXCLUDE_PAUSED_TIME", False),
    )
