"""AI usage tracking for language model calls."""

import logging
import time

from lvlai import db
from lvlai.models.ai_usage_log import AIUsageLog

logger = logging.getLogger(__name__)

# Pricing per 1M tokens (input/output), update when providers change prices
MODEL_PRICING = {
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
    "gpt-4o": {"input": 2.50, "output": 10.00},
    "gpt-5-mini": {"input": 0.40, "output": 1.60},
    "deepseek/deepseek-chat": {"input": 0.27, "output": 1.10},
}


def calculate_cost(model: str, prompt_tokens: int, completion_tokens: int) -> float:
    """Calculate estimated cost in USD based on model and token counts."""
    pricing = MODEL_PRICING.get(model, {"input": 1.0, "output": 3.0})
    input_cost = (prompt_tokens / 1_000_000) * pricing["input"]
    output_cost = (completion_tokens / 1_000_000) * pricing["output"]
    return round(input_cost + output_cost, 6)


def track_ai_usage(
    user_id,
    service_name: str,
    model: str,
    response,
    latency_ms: int,
    endpoint: str,
):
    """Log a completion call to the database.

    Tracking never breaks the caller: failures are logged and rolled back.
    """
    try:
        usage = getattr(response, "usage", None)
        if not usage:
            return

        prompt_tokens = getattr(usage, "prompt_tokens", 0) or 0
        completion_tokens = getattr(usage, "completion_tokens", 0) or 0

        log_entry = AIUsageLog(
            user_id=user_id,
            service_name=service_name,
            model=model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
            estimated_cost_usd=calculate_cost(model, prompt_tokens, completion_tokens),
            latency_ms=latency_ms,
            endpoint=endpoint,
        )
        db.session.add(log_entry)
        db.session.commit()
    except Exception as e:
        logger.warning(f"Failed to track AI usage: {e}")
        db.session.rollback()


def tracked_openai_call(client, user_id, endpoint: str, service_name: str, **kwargs):
    """Wrap an OpenAI chat completion call with usage tracking.

    Usage:
        response = tracked_openai_call(
            client, user_id=123, endpoint="focus_session_analysis",
            service_name="session_analyzer",
            model="gpt-4o-mini", messages=[...], max_tokens=800
        )
    """
    model = kwargs.get("model", "unknown")

    start = time.time()
    response = client.chat.completions.create(**kwargs)
    latency_ms = int((time.time() - start) * 1000)

    track_ai_usage(
        user_id=user_id,
        service_name=service_name,
        model=model,
        response=response,
        latency_ms=latency_ms,
        endpoint=endpoint,
    )

    return response
