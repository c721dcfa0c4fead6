"""Tests for the focus session service against a real database."""

import json
from datetime import datetime, timedelta

import pytest
from sqlalchemy import text

from lvlai import db
from lvlai.models import FocusSession, User
from lvlai.services.focus_service import FocusSessionService
from lvlai.services.session_analyzer import FALLBACK_ANALYSIS
from lvlai.services.session_state import (
    ActiveSessionConflictError,
    AnalysisUnavailableError,
    ConcurrentUpdateError,
    EmptyAnalysisError,
    IllegalTransitionError,
    SessionNotFoundError,
)

T0 = datetime(2026, 3, 2, 9, 0, 0)

VALID_ANALYSIS = json.dumps(
    {
        "summary": "Focused and consistent.",
        "strengths": ["No distractions"],
        "improvements": ["Try a longer session"],
        "productivityScore": 92,
        "recommendations": ["Keep going"],
    }
)


def complete_session(service, clock, user_id, minutes=25, planned=25, **kwargs):
    session = service.start(user_id, planned)
    clock.advance(minutes=minutes)
    return service.end(session.id, user_id, **kwargs)


class TestStartSession:
    def test_start_creates_active_session(self, service, clock, test_user):
        session = service.start(
            test_user["id"], 25, session_type="pomodoro", tasks_worked_on=["t1", 2]
        )

        assert session.id is not None
        assert session.status == "active"
        assert session.started_at == T0
        assert session.created_at == T0
        assert session.distraction_count == 0
        assert session.flow_xp_earned == 0
        assert session.tasks_worked_on == ["t1", 2]
        assert session.tasks_completed == []

    def test_second_start_conflicts(self, service, test_user):
        service.start(test_user["id"], 25)

        with pytest.raises(ActiveSessionConflictError):
            service.start(test_user["id"], 25)

        assert FocusSession.query.filter_by(user_id=test_user["id"]).count() == 1

    def test_start_race_is_caught_by_unique_index(
        self, service, test_user, monkeypatch
    ):
        service.start(test_user["id"], 25)
        # Simulate a concurrent request that passed the pre-check
        monkeypatch.setattr(service, "_session_in_status", lambda *args: None)

        with pytest.raises(ActiveSessionConflictError):
            service.start(test_user["id"], 25)

        active = FocusSession.query.filter_by(
            user_id=test_user["id"], status="active"
        ).count()
        assert active == 1

    def test_users_are_independent(self, service, test_user, other_user):
        service.start(test_user["id"], 25)
        session = service.start(other_user["id"], 25)
        assert session.status == "active"

    def test_start_allowed_while_other_session_paused(
        self, service, clock, test_user
    ):
        first = service.start(test_user["id"], 25)
        service.pause(first.id, test_user["id"])

        second = service.start(test_user["id"], 25)

        assert second.status == "active"
        assert service.get_active(test_user["id"]).id == second.id


class TestPauseResume:
    def test_pause_counts_as_distraction(self, service, clock, test_user):
        session = service.start(test_user["id"], 25)
        clock.advance(minutes=5)

        session = service.pause(session.id, test_user["id"])

        assert session.status == "paused"
        assert session.paused_at == T0 + timedelta(minutes=5)
        assert session.distraction_count == 1

    def test_pause_without_distraction(self, clock, fake_analyzer, test_user):
        service = FocusSessionService(
            clock=clock, analyzer=fake_analyzer, pause_counts_as_distraction=False
        )
        session = service.start(test_user["id"], 25)

        session = service.pause(session.id, test_user["id"])

        assert session.distraction_count == 0

    def test_resume_accumulates_pause_time(self, service, clock, test_user):
        session = service.start(test_user["id"], 25)
        clock.advance(minutes=5)
        service.pause(session.id, test_user["id"])
        clock.advance(minutes=3)

        session = service.resume(session.id, test_user["id"])

        assert session.status == "active"
        assert session.paused_at is None
        assert session.total_pause_seconds == 180
        assert session.started_at == T0

    def test_resume_conflicts_with_other_active_session(
        self, service, clock, test_user
    ):
        first = service.start(test_user["id"], 25)
        service.pause(first.id, test_user["id"])
        service.start(test_user["id"], 25)

        with pytest.raises(ActiveSessionConflictError):
            service.resume(first.id, test_user["id"])

        assert db.session.get(FocusSession, first.id).status == "paused"

    def test_pause_paused_session_is_illegal(self, service, test_user):
        session = service.start(test_user["id"], 25)
        service.pause(session.id, test_user["id"])

        with pytest.raises(IllegalTransitionError):
            service.pause(session.id, test_user["id"])

    def test_resume_active_session_is_illegal(self, service, test_user):
        session = service.start(test_user["id"], 25)

        with pytest.raises(IllegalTransitionError):
            service.resume(session.id, test_user["id"])

    def test_record_distraction(self, service, test_user):
        session = service.start(test_user["id"], 25)

        service.record_distraction(session.id, test_user["id"])
        session = service.record_distraction(session.id, test_user["id"])

        assert session.status == "active"
        assert session.distraction_count == 2

    def test_other_users_session_is_not_found(self, service, test_user, other_user):
        session = service.start(test_user["id"], 25)

        with pytest.raises(SessionNotFoundError):
            service.pause(session.id, other_user["id"])

        assert db.session.get(FocusSession, session.id).status == "active"

    def test_stale_session_version_is_rejected(self, service, test_user):
        session = service.start(test_user["id"], 25)
        assert session.version_id == 1
        db.session.execute(
            text(
                "UPDATE focus_sessions SET version_id = version_id + 1 WHERE id = :id"
            ),
            {"id": session.id},
        )

        with pytest.raises(ConcurrentUpdateError):
            service.pause(session.id, test_user["id"])


class TestEndSession:
    def test_full_pomodoro_rewards(self, service, clock, test_user):
        session, rewards = complete_session(service, clock, test_user["id"])

        assert session.status == "completed"
        assert session.ended_at == T0 + timedelta(minutes=25)
        assert session.actual_duration_minutes == 25
        assert session.focus_score == 100
        assert session.flow_xp_earned == 75
        assert rewards == {
            "flow_xp_earned": 75,
            "streak_bonus": 0,
            "total_xp_earned": 75,
            "focus_score": 100,
            "current_streak": 1,
        }

        user = db.session.get(User, test_user["id"])
        assert user.xp == 75
        assert user.flow_xp == 75
        assert user.focus_streak == 1
        assert user.longest_focus_streak == 1
        assert user.total_focus_sessions == 1
        assert user.last_focus_session_at == T0 + timedelta(minutes=25)

    def test_four_pauses_reduce_score(self, service, clock, test_user):
        session = service.start(test_user["id"], 25)
        for _ in range(4):
            service.pause(session.id, test_user["id"])
            service.resume(session.id, test_user["id"])
        clock.advance(minutes=25)

        session, rewards = service.end(session.id, test_user["id"])

        assert session.distraction_count == 4
        assert session.focus_score == 80
        assert rewards["flow_xp_earned"] == 70

    def test_streak_continues_within_window(self, service, clock, test_user):
        user = db.session.get(User, test_user["id"])
        user.last_focus_session_at = T0 - timedelta(hours=10)
        user.focus_streak = 5
        user.longest_focus_streak = 5
        user.xp = 200
        db.session.commit()

        session, rewards = complete_session(service, clock, test_user["id"])

        assert session.streak_bonus == 30
        assert rewards["current_streak"] == 6
        assert rewards["streak_bonus"] == 30
        assert rewards["total_xp_earned"] == 105

        user = db.session.get(User, test_user["id"])
        assert user.xp == 305
        assert user.focus_streak == 6
        assert user.longest_focus_streak == 6

    def test_immediate_end_earns_nothing(self, service, test_user):
        session = service.start(test_user["id"], 25)

        session, rewards = service.end(session.id, test_user["id"])

        assert session.actual_duration_minutes == 0
        assert session.focus_score == 0
        assert rewards["flow_xp_earned"] == 0

    def test_end_stores_tasks_and_notes(self, service, clock, test_user):
        session, _ = complete_session(
            service,
            clock,
            test_user["id"],
            tasks_completed=["t1"],
            user_notes="Felt sharp",
        )

        assert session.tasks_completed == ["t1"]
        assert session.user_notes == "Felt sharp"

    def test_paused_time_counts_by_default(self, service, clock, test_user):
        session = service.start(test_user["id"], 25)
        clock.advance(minutes=10)
        service.pause(session.id, test_user["id"])
        clock.advance(minutes=5)
        service.resume(session.id, test_user["id"])
        clock.advance(minutes=15)

        session, _ = service.end(session.id, test_user["id"])

        assert session.total_pause_seconds == 300
        assert session.actual_duration_minutes == 30

    def test_paused_time_can_be_excluded(self, clock, fake_analyzer, test_user):
        service = FocusSessionService(
            clock=clock, analyzer=fake_analyzer, exclude_paused_time=True
        )
        session = service.start(test_user["id"], 25)
        clock.advance(minutes=10)
        service.pause(session.id, test_user["id"])
        clock.advance(minutes=5)
        service.resume(session.id, test_user["id"])
        clock.advance(minutes=15)

        session, _ = service.end(session.id, test_user["id"])

        assert session.actual_duration_minutes == 25
        assert session.focus_score == 95

    def test_end_twice_is_illegal(self, service, clock, test_user):
        session, _ = complete_session(service, clock, test_user["id"])

        with pytest.raises(IllegalTransitionError):
            service.end(session.id, test_user["id"])

        assert db.session.get(User, test_user["id"]).total_focus_sessions == 1

    def test_end_paused_session_is_illegal(self, service, test_user):
        session = service.start(test_user["id"], 25)
        service.pause(session.id, test_user["id"])

        with pytest.raises(IllegalTransitionError):
            service.end(session.id, test_user["id"])

    def test_stale_user_version_aborts_end(self, service, clock, test_user):
        session = service.start(test_user["id"], 25)
        clock.advance(minutes=25)

        user = db.session.get(User, test_user["id"])
        assert user.version_id == 1
        # Another request updates the user between our read and our write
        db.session.execute(
            text("UPDATE users SET version_id = version_id + 1 WHERE id = :id"),
            {"id": test_user["id"]},
        )

        with pytest.raises(ConcurrentUpdateError):
            service.end(session.id, test_user["id"])

        assert db.session.get(FocusSession, session.id).status == "active"
        assert db.session.get(User, test_user["id"]).xp == 0


class TestCancelSession:
    def test_cancel_active_session(self, service, clock, test_user):
        session = service.start(test_user["id"], 25)
        clock.advance(minutes=10)

        session = service.cancel(session.id, test_user["id"])

        assert session.status == "cancelled"
        assert session.ended_at == T0 + timedelta(minutes=10)
        assert session.actual_duration_minutes == 10
        assert session.flow_xp_earned == 0
        assert session.focus_score is None
        assert db.session.get(User, test_user["id"]).xp == 0
        assert service.get_active(test_user["id"]) is None

    def test_cancel_paused_session_closes_pause(self, service, clock, test_user):
        session = service.start(test_user["id"], 25)
        service.pause(session.id, test_user["id"])
        clock.advance(minutes=4)

        session = service.cancel(session.id, test_user["id"])

        assert session.paused_at is None
        assert session.total_pause_seconds == 240

    def test_cancelled_session_is_terminal(self, service, test_user):
        session = service.start(test_user["id"], 25)
        service.cancel(session.id, test_user["id"])

        for action in (service.resume, service.pause, service.cancel):
            with pytest.raises(IllegalTransitionError):
                action(session.id, test_user["id"])


class TestRequestAnalysis:
    def test_analysis_is_generated_once(
        self, service, clock, fake_analyzer, test_user
    ):
        fake_analyzer.content = VALID_ANALYSIS
        session, _ = complete_session(service, clock, test_user["id"])
        clock.advance(minutes=1)

        first = service.request_analysis(session.id, test_user["id"])
        clock.advance(minutes=1)
        second = service.request_analysis(session.id, test_user["id"])

        assert fake_analyzer.calls == 1
        assert first == second
        assert first["summary"] == "Focused and consistent."
        assert first["productivity_score"] == 92
        assert first["generated_at"] == (T0 + timedelta(minutes=26)).isoformat()
        assert db.session.get(FocusSession, session.id).ai_analysis == first

    def test_prompt_describes_session(self, service, clock, fake_analyzer, test_user):
        fake_analyzer.content = VALID_ANALYSIS
        session, _ = complete_session(service, clock, test_user["id"])

        service.request_analysis(session.id, test_user["id"])

        assert "Focus Score: 100/100" in fake_analyzer.prompts[0]

    def test_unparseable_answer_uses_fallback(
        self, service, clock, fake_analyzer, test_user
    ):
        fake_analyzer.content = "You did great, keep going!"
        session, _ = complete_session(service, clock, test_user["id"], minutes=10)

        analysis = service.request_analysis(session.id, test_user["id"])

        assert analysis["summary"] == FALLBACK_ANALYSIS["summary"]
        assert analysis["productivity_score"] == 40
        assert db.session.get(FocusSession, session.id).ai_analysis == analysis

    @pytest.mark.parametrize(
        "error",
        [
            EmptyAnalysisError("Failed to generate AI analysis"),
            AnalysisUnavailableError("AI analysis is temporarily unavailable"),
        ],
    )
    def test_failed_generation_persists_nothing(
        self, service, clock, fake_analyzer, test_user, error
    ):
        fake_analyzer.error = error
        session, _ = complete_session(service, clock, test_user["id"])

        with pytest.raises(type(error)):
            service.request_analysis(session.id, test_user["id"])

        assert db.session.get(FocusSession, session.id).ai_analysis is None

    def test_active_session_cannot_be_analyzed(
        self, service, fake_analyzer, test_user
    ):
        session = service.start(test_user["id"], 25)

        with pytest.raises(IllegalTransitionError):
            service.request_analysis(session.id, test_user["id"])

        assert fake_analyzer.calls == 0

    def test_other_user_cannot_analyze(
        self, service, clock, fake_analyzer, test_user, other_user
    ):
        session, _ = complete_session(service, clock, test_user["id"])

        with pytest.raises(SessionNotFoundError):
            service.request_analysis(session.id, other_user["id"])

        assert fake_analyzer.calls == 0


class TestReads:
    def test_get_active_prefers_running_session(self, service, test_user):
        assert service.get_active(test_user["id"]) is None

        session = service.start(test_user["id"], 25)
        assert service.get_active(test_user["id"]).id == session.id

        service.pause(session.id, test_user["id"])
        assert service.get_active(test_user["id"]).id == session.id

    def test_list_sessions_paginates_newest_first(self, service, clock, test_user):
        ids = []
        for _ in range(3):
            session, _ = complete_session(service, clock, test_user["id"])
            ids.append(session.id)
            clock.advance(minutes=5)

        result = service.list_sessions(test_user["id"], page=1, limit=2)

        assert result["total"] == 3
        assert result["count"] == 2
        assert result["pages"] == 2
        assert [s["id"] for s in result["sessions"]] == [ids[2], ids[1]]

        result = service.list_sessions(test_user["id"], page=2, limit=2)
        assert [s["id"] for s in result["sessions"]] == [ids[0]]

    def test_list_sessions_filters_by_status(self, service, clock, test_user):
        complete_session(service, clock, test_user["id"])
        cancelled = service.start(test_user["id"], 25)
        service.cancel(cancelled.id, test_user["id"])

        result = service.list_sessions(test_user["id"], status="cancelled")

        assert result["total"] == 1
        assert result["sessions"][0]["id"] == cancelled.id

    def test_list_sessions_empty(self, service, test_user):
        result = service.list_sessions(test_user["id"])
        assert result == {
            "sessions": [],
            "count": 0,
            "total": 0,
            "page": 1,
            "pages": 0,
        }

    def test_stats_window_and_breakdown(self, service, clock, test_user):
        # Outside the 30 day window
        clock.now = T0 - timedelta(days=40)
        complete_session(service, clock, test_user["id"])

        clock.now = T0
        complete_session(service, clock, test_user["id"])
        clock.advance(minutes=5)
        complete_session(
            service, clock, test_user["id"], minutes=10, tasks_completed=["a", "b"]
        )
        cancelled = service.start(test_user["id"], 25)
        clock.advance(minutes=5)
        service.cancel(cancelled.id, test_user["id"])

        stats = service.stats(test_user["id"], 30)
        overview = stats["overview"]

        assert overview["total_sessions"] == 2
        assert overview["total_minutes"] == 35
        assert overview["total_hours"] == 0.6
        assert overview["total_flow_xp"] == 99
        assert overview["average_focus_score"] == 70
        assert overview["total_distractions"] == 0
        assert overview["total_tasks_completed"] == 2
        assert overview["current_streak"] == 2
        assert overview["longest_streak"] == 2
        assert overview["lifetime_sessions"] == 3
        assert overview["lifetime_flow_xp"] == 75 + 75 + 24 + 10

        assert stats["daily_breakdown"] == [
            {
                "date": "2026-03-02",
                "sessions": 2,
                "minutes": 35,
                "flow_xp": 99,
                "tasks_completed": 2,
            }
        ]

    def test_stats_without_sessions(self, service, test_user):
        stats = service.stats(test_user["id"], 7)

        assert stats["overview"]["total_sessions"] == 0
        assert stats["overview"]["average_focus_score"] == 0
        assert stats["daily_breakdown"] == []

    def test_total_hours_round_half_up(self, service, clock, test_user):
        # 15 minutes is exactly 0.25 hours
        complete_session(service, clock, test_user["id"], minutes=15)

        overview = service.stats(test_user["id"], 30)["overview"]

        assert overview["total_minutes"] == 15
        assert overview["total_hours"] == 0.3

    def test_stats_period_is_capped(self, service, clock, test_user):
        complete_session(service, clock, test_user["id"])

        stats = service.stats(test_user["id"], 1_000_000)

        assert stats["overview"]["total_sessions"] == 1
