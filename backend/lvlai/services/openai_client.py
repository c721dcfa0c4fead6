"""OpenAI client factory with proxy and base URL support."""

import httpx
from flask import current_app
from openai import OpenAI


def get_openai_client():
    """
    Create OpenAI client with optional proxy support.

    OPENAI_BASE_URL points the client at any OpenAI-compatible endpoint
    (e.g. https://openrouter.ai/api/v1). Returns None if no API key is set.
    """
    api_key = current_app.config.get("OPENAI_API_KEY")
    if not api_key:
        return None

    kwargs = {"api_key": api_key}

    base_url = current_app.config.get("OPENAI_BASE_URL")
    if base_url:
        kwargs["base_url"] = base_url

    proxy_url = current_app.config.get("OPENAI_PROXY")
    if proxy_url:
        # Create httpx client with proxy
        kwargs["http_client"] = httpx.Client(proxy=proxy_url)
        current_app.logger.info("OpenAI client initialized with proxy")

    return OpenAI(**kwargs)
