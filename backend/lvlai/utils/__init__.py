"""Utility functions."""

from lvlai.utils.clock import utcnow
from lvlai.utils.response import (
    conflict,
    error_response,
    server_error,
    success_response,
    too_many_requests,
    unauthorized,
    validation_error,
)

__all__ = [
    "success_response",
    "error_response",
    "unauthorized",
    "validation_error",
    "conflict",
    "too_many_requests",
    "server_error",
    "utcnow",
]
