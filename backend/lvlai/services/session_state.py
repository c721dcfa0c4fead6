"""Focus session lifecycle: the single table of legal status changes."""

from enum import Enum

from lvlai.models.focus_session import FocusSessionStatus

ACTIVE = FocusSessionStatus.ACTIVE
PAUSED = FocusSessionStatus.PAUSED
COMPLETED = FocusSessionStatus.COMPLETED
CANCELLED = FocusSessionStatus.CANCELLED


class SessionEvent(str, Enum):
    """Things a client can do to a session."""

    PAUSE = "pause"
    RESUME = "resume"
    RECORD_DISTRACTION = "record_distraction"
    END = "end"
    CANCEL = "cancel"
    ANALYZE = "analyze"


TRANSITIONS: dict[tuple[FocusSessionStatus, SessionEvent], FocusSessionStatus] = {
    (ACTIVE, SessionEvent.PAUSE): PAUSED,
    (ACTIVE, SessionEvent.RECORD_DISTRACTION): ACTIVE,
    (ACTIVE, SessionEvent.END): COMPLETED,
    (ACTIVE, SessionEvent.CANCEL): CANCELLED,
    (PAUSED, SessionEvent.RESUME): ACTIVE,
    (PAUSED, SessionEvent.CANCEL): CANCELLED,
    (COMPLETED, SessionEvent.ANALYZE): COMPLETED,
}


class FocusSessionError(Exception):
    """Base class for focus session failures surfaced to API callers."""

    code = "FOCUS_SESSION_ERROR"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class SessionNotFoundError(FocusSessionError):
    code = "NOT_FOUND"
    status_code = 404


class ActiveSessionConflictError(FocusSessionError):
    code = "CONFLICT"
    status_code = 409


class IllegalTransitionError(FocusSessionError):
    """Raised when an event is not allowed in the session's current status."""

    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, status: FocusSessionStatus, event: SessionEvent):
        self.status = FocusSessionStatus(status)
        self.event = SessionEvent(event)
        super().__init__(
            f"Cannot {self.event.value.replace('_', ' ')} a session "
            f"that is {self.status.value}"
        )


class ConcurrentUpdateError(FocusSessionError):
    code = "CONCURRENT_UPDATE"
    status_code = 409


class EmptyAnalysisError(FocusSessionError):
    code = "SERVER_ERROR"
    status_code = 500


class AnalysisUnavailableError(FocusSessionError):
    code = "SERVER_ERROR"
    status_code = 500


def allowed_events(status: FocusSessionStatus | str) -> list[SessionEvent]:
    """Events accepted in the given status, in table order."""
    status = FocusSessionStatus(status)
    return [event for (source, event) in TRANSITIONS if source == status]


def transition(
    status: FocusSessionStatus | str, event: SessionEvent | str
) -> FocusSessionStatus:
    """Return the status reached by applying event, or raise IllegalTransitionError."""
    status = FocusSessionStatus(status)
    event = SessionEvent(event)
    try:
        return TRANSITIONS[(status, event)]
    except KeyError:
        raise IllegalTransitionError(status, event) from None
