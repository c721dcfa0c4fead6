"""Focus session API endpoints."""

from flask import current_app, request
from flask_jwt_extended import get_jwt_identity, jwt_required, verify_jwt_in_request
from flask_limiter.util import get_remote_address

from lvlai.api import api_bp
from lvlai.extensions import limiter
from lvlai.models.focus_session import (
    MAX_NOTES_LENGTH,
    MAX_PLANNED_MINUTES,
    MAX_STATS_PERIOD_DAYS,
    MIN_PLANNED_MINUTES,
    FocusSessionStatus,
    FocusSessionType,
)
from lvlai.services.focus_service import SORT_FIELDS, get_focus_service
from lvlai.services.session_state import FocusSessionError
from lvlai.utils import (
    error_response,
    success_response,
    too_many_requests,
    validation_error,
)

SESSION_TYPES = [t.value for t in FocusSessionType]
SESSION_STATUSES = [s.value for s in FocusSessionStatus]


@api_bp.errorhandler(FocusSessionError)
def handle_focus_session_error(error: FocusSessionError):
    return error_response(error.code, error.message, status_code=error.status_code)


@api_bp.errorhandler(429)
def handle_rate_limit(error):
    return too_many_requests(f"Rate limit exceeded: {error.description}")


def _current_user_id() -> int:
    return int(get_jwt_identity())


def _analysis_rate_key() -> str:
    verify_jwt_in_request(optional=True)
    return f"focus-analysis:{get_jwt_identity() or get_remote_address()}"


def _parse_int(value, minimum: int | None = None, maximum: int | None = None):
    """Parse an int (or int-like string) within bounds. Returns None if invalid."""
    if isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    if isinstance(value, float) and value != number:
        return None
    if minimum is not None and number < minimum:
        return None
    if maximum is not None and number > maximum:
        return None
    return number


def _is_id_list(value) -> bool:
    return isinstance(value, list) and all(
        isinstance(item, (str, int)) and not isinstance(item, bool) for item in value
    )


@api_bp.route("/focus/sessions", methods=["POST"])
@jwt_required()
def start_focus_session():
    """
    Start a new focus session.

    Request body:
    {
        "session_type": "pomodoro",  // optional: pomodoro | short_break | long_break
        "planned_duration_minutes": 25,
        "tasks_worked_on": ["task-1"]  // optional
    }
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return validation_error({"body": "Request body is required"})

    errors = {}

    session_type = data.get("session_type", FocusSessionType.POMODORO.value)
    if session_type not in SESSION_TYPES:
        errors["session_type"] = "Invalid session type"

    duration = _parse_int(
        data.get("planned_duration_minutes"), MIN_PLANNED_MINUTES, MAX_PLANNED_MINUTES
    )
    if duration is None:
        errors["planned_duration_minutes"] = (
            f"Duration must be between {MIN_PLANNED_MINUTES} and "
            f"{MAX_PLANNED_MINUTES} minutes"
        )

    tasks_worked_on = data.get("tasks_worked_on", [])
    if not _is_id_list(tasks_worked_on):
        errors["tasks_worked_on"] = "Tasks must be an array of task ids"

    if errors:
        return validation_error(errors)

    session = get_focus_service().start(
        user_id=_current_user_id(),
        planned_duration_minutes=duration,
        session_type=session_type,
        tasks_worked_on=tasks_worked_on,
    )

    return success_response(
        {"session": session.to_dict()},
        message="Focus session started successfully!",
        status_code=201,
    )


@api_bp.route("/focus/sessions/<int:session_id>/pause", methods=["PUT"])
@jwt_required()
def pause_focus_session(session_id: int):
    """Pause an active focus session."""
    session = get_focus_service().pause(session_id, _current_user_id())
    return success_response({"session": session.to_dict()}, message="Session paused")


@api_bp.route("/focus/sessions/<int:session_id>/resume", methods=["PUT"])
@jwt_required()
def resume_focus_session(session_id: int):
    """Resume a paused focus session."""
    session = get_focus_service().resume(session_id, _current_user_id())
    return success_response(
        {"session": session.to_dict()}, message="Session resumed successfully"
    )


@api_bp.route("/focus/sessions/<int:session_id>/distractions", methods=["POST"])
@jwt_required()
def record_distraction(session_id: int):
    """Record a distraction during an active session."""
    session = get_focus_service().record_distraction(session_id, _current_user_id())
    return success_response(
        {"session": session.to_dict()}, message="Distraction recorded"
    )


@api_bp.route("/focus/sessions/<int:session_id>/end", methods=["PUT"])
@jwt_required()
def end_focus_session(session_id: int):
    """
    Complete an active focus session and collect rewards.

    Request body:
    {
        "tasks_completed": ["task-1"],  // optional
        "user_notes": "Felt sharp today"  // optional, max 500 chars
    }
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return validation_error({"body": "Request body must be an object"})

    errors = {}

    tasks_completed = data.get("tasks_completed", [])
    if not _is_id_list(tasks_completed):
        errors["tasks_completed"] = "Tasks completed must be an array of task ids"

    user_notes = data.get("user_notes")
    if user_notes is not None:
        if not isinstance(user_notes, str):
            errors["user_notes"] = "Notes must be a string"
        elif len(user_notes) > MAX_NOTES_LENGTH:
            errors["user_notes"] = (
                f"Notes cannot exceed {MAX_NOTES_LENGTH} characters"
            )

    if errors:
        return validation_error(errors)

    session, rewards = get_focus_service().end(
        session_id,
        _current_user_id(),
        tasks_completed=tasks_completed,
        user_notes=user_notes,
    )

    return success_response(
        {"session": session.to_dict(), "rewards": rewards},
        message=(
            f"Session completed! You earned {rewards['total_xp_earned']} Flow XP!"
        ),
    )


@api_bp.route("/focus/sessions/<int:session_id>/cancel", methods=["PUT"])
@jwt_required()
def cancel_focus_session(session_id: int):
    """Cancel an active or paused focus session without rewards."""
    session = get_focus_service().cancel(session_id, _current_user_id())
    return success_response({"session": session.to_dict()}, message="Session cancelled")


@api_bp.route("/focus/sessions/<int:session_id>/analyze", methods=["POST"])
@jwt_required()
@limiter.limit(
    lambda: current_app.config["FOCUS_ANALYZE_RATE_LIMIT"],
    key_func=_analysis_rate_key,
)
def analyze_focus_session(session_id: int):
    """Get (or generate once) AI coaching feedback for a completed session."""
    analysis = get_focus_service().request_analysis(session_id, _current_user_id())
    return success_response({"analysis": analysis})


@api_bp.route("/focus/sessions", methods=["GET"])
@jwt_required()
def list_focus_sessions():
    """
    List the caller's focus sessions.

    Query params:
    - status: active | paused | completed | cancelled (optional)
    - page: page number, starting at 1 (default 1)
    - limit: page size, 1-50 (default 10)
    - sort_by: started_at | created_at | focus_score | flow_xp_earned
    """
    errors = {}

    status = request.args.get("status")
    if status is not None and status not in SESSION_STATUSES:
        errors["status"] = "Invalid status"

    page = _parse_int(request.args.get("page", 1), minimum=1)
    if page is None:
        errors["page"] = "Page must be a positive integer"

    limit = _parse_int(request.args.get("limit", 10), minimum=1, maximum=50)
    if limit is None:
        errors["limit"] = "Limit must be between 1 and 50"

    sort_by = request.args.get("sort_by", "started_at")
    if sort_by not in SORT_FIELDS:
        errors["sort_by"] = "Invalid sort field"

    if errors:
        return validation_error(errors)

    result = get_focus_service().list_sessions(
        _current_user_id(), status=status, page=page, limit=limit, sort_by=sort_by
    )
    return success_response(result)


@api_bp.route("/focus/stats", methods=["GET"])
@jwt_required()
def get_focus_stats():
    """
    Focus statistics for a trailing window.

    Query params:
    - period: window length in days, 1-3650 (default 30)
    """
    period = _parse_int(
        request.args.get(
            "period", current_app.config["FOCUS_STATS_DEFAULT_PERIOD_DAYS"]
        ),
        minimum=1,
        maximum=MAX_STATS_PERIOD_DAYS,
    )
    if period is None:
        return validation_error(
            {"period": f"Period must be between 1 and {MAX_STATS_PERIOD_DAYS} days"}
        )

    return success_response(get_focus_service().stats(_current_user_id(), period))


@api_bp.route("/focus/active", methods=["GET"])
@jwt_required()
def get_active_session():
    """
    Get the current focus session.

    Returns the running session, or the paused one when nothing is running.
    Check `status`: a paused session is not counting time.
    """
    session = get_focus_service().get_active(_current_user_id())

    if not session:
        return success_response({"session": None}, message="No active session")

    return success_response({"session": session.to_dict()})
