"""AI coaching feedback for completed focus sessions."""

import copy
import json
import logging
from typing import Any

from flask import current_app
from openai import OpenAIError

from lvlai.services.flow_xp_calculator import round_half_up
from lvlai.services.openai_client import get_openai_client
from lvlai.services.session_state import AnalysisUnavailableError, EmptyAnalysisError
from lvlai.utils.ai_tracker import tracked_openai_call

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert productivity coach. Provide concise, actionable "
    "insights in JSON format only."
)

LIST_FIELDS = ("strengths", "improvements", "recommendations")

FALLBACK_ANALYSIS = {
    "summary": "Session completed successfully. Keep up the good work!",
    "strengths": [
        "Completed a focus session",
        "Maintained concentration",
        "Made progress on tasks",
    ],
    "improvements": [
        "Try to minimize distractions",
        "Plan ahead for longer sessions",
        "Take regular breaks",
    ],
    "recommendations": [
        "Set clear goals before starting",
        "Use the Pomodoro technique",
        "Review your progress daily",
    ],
}


def build_analysis_prompt(session) -> str:
    """Describe a completed session's metrics for the coach model."""
    return f"""You are a productivity coach analyzing a focus session. Provide insights and recommendations.

Session Details:
- Session Type: {session.session_type}
- Planned Duration: {session.planned_duration_minutes} minutes
- Actual Duration: {session.actual_duration_minutes or 0} minutes
- Focus Score: {session.focus_score or 0}/100
- Distractions: {session.distraction_count}
- Tasks Worked On: {len(session.tasks_worked_on or [])}
- Tasks Completed: {len(session.tasks_completed or [])}

Provide a JSON response with the following structure:
{{
  "summary": "Brief 2-3 sentence overview of the session",
  "strengths": ["strength 1", "strength 2", "strength 3"],
  "improvements": ["improvement 1", "improvement 2", "improvement 3"],
  "productivityScore": number (0-100),
  "recommendations": ["recommendation 1", "recommendation 2", "recommendation 3"]
}}

Be encouraging but honest. Focus on actionable insights."""


def fallback_analysis(productivity_score: int | None) -> dict[str, Any]:
    """Generic payload used when the model's answer cannot be parsed."""
    result = copy.deepcopy(FALLBACK_ANALYSIS)
    result["productivity_score"] = productivity_score or 0
    return result


def _strip_code_fence(content: str) -> str:
    content = content.strip()
    if content.startswith("```"):
        content = content.split("```")[1]
        if content.startswith("json"):
            content = content[4:]
    return content.strip()


def _validate(payload: Any) -> dict[str, Any] | None:
    """Normalize a parsed payload, or None if it does not match the schema."""
    if not isinstance(payload, dict):
        return None

    summary = payload.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        return None

    result = {"summary": summary.strip()}
    for field in LIST_FIELDS:
        items = payload.get(field)
        if not isinstance(items, list) or not all(isinstance(i, str) for i in items):
            return None
        result[field] = items

    score = payload.get("productivityScore", payload.get("productivity_score"))
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        return None
    result["productivity_score"] = min(max(round_half_up(score), 0), 100)

    return result


def parse_analysis(
    content: str, fallback_score: int | None
) -> tuple[dict[str, Any], bool]:
    """
    Turn raw model output into an analysis payload.

    Returns (payload, used_fallback). Content that is not JSON or does
    not match the expected shape yields the generic fallback payload
    instead of an error.
    """
    try:
        parsed = json.loads(_strip_code_fence(content))
    except (json.JSONDecodeError, TypeError):
        parsed = None

    result = _validate(parsed)
    if result is None:
        return fallback_analysis(fallback_score), True
    return result, False


class SessionAnalyzer:
    """Capability interface: prompt in, raw model text out."""

    def generate(self, prompt: str, user_id: int | None = None) -> str:
        """
        Return the model's raw answer.

        Raises EmptyAnalysisError when the provider returns no content
        and AnalysisUnavailableError when it cannot be reached at all.
        """
        raise NotImplementedError


class OpenAISessionAnalyzer(SessionAnalyzer):
    """Chat completion backed analyzer."""

    TEMPERATURE = 0.7
    MAX_TOKENS = 800

    def __init__(self, client=None, model: str | None = None):
        self.client = client if client is not None else get_openai_client()
        self.model = model or current_app.config.get(
            "FOCUS_ANALYSIS_MODEL", "gpt-4o-mini"
        )

    def generate(self, prompt: str, user_id: int | None = None) -> str:
        if self.client is None:
            raise AnalysisUnavailableError("AI analysis is not configured")

        logger.info(f"Requesting focus session analysis from {self.model}")
        try:
            response = tracked_openai_call(
                self.client,
                user_id=user_id,
                endpoint="focus_session_analysis",
                service_name="session_analyzer",
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.TEMPERATURE,
                max_tokens=self.MAX_TOKENS,
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            logger.error(f"Focus session analysis request failed: {e}")
            raise AnalysisUnavailableError(
                "AI analysis is temporarily unavailable"
            ) from e

        content = None
        if response.choices:
            content = response.choices[0].message.content

        if not content or not content.strip():
            raise EmptyAnalysisError("Failed to generate AI analysis")

        return content
