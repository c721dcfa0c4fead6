"""Business logic services."""

from lvlai.services.flow_xp_calculator import FlowXPCalculator
from lvlai.services.focus_service import FocusSessionService, get_focus_service
from lvlai.services.session_analyzer import OpenAISessionAnalyzer, SessionAnalyzer

__all__ = [
    "FlowXPCalculator",
    "FocusSessionService",
    "get_focus_service",
    "SessionAnalyzer",
    "OpenAISessionAnalyzer",
]
