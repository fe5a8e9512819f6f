"""Error classification utilities for model and dispatch failures."""

from enum import Enum
from typing import Literal


class ErrorCategory(Enum):
    """Categories of errors that can occur while talking to the model."""

    SERVICE_QUOTA_EXCEEDED = "service_quota_exceeded"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    AUTHENTICATION_FAILED = "authentication_failed"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


_PatternName = Literal["quota", "rate_limit", "auth", "timeout", "network"]

_ERROR_PATTERNS: dict[_PatternName, dict[str, list[str] | set[str]]] = {
    "quota": {
        "phrases": [
            "quota exceeded",
            "insufficient credits",
            "credit limit",
            "credits exhausted",
            "out of credits",
            "402",
        ],
        "exception_types": set(),
    },
    "rate_limit": {
        "phrases": [
            "rate limit",
            "too many requests",
            "rate_limit_exceeded",
            "throttled",
            "429",
        ],
        "exception_types": set(),
    },
    "auth": {
        "phrases": [
            "authentication failed",
            "invalid api key",
            "unauthorized",
            "invalid token",
            "api key",
            "401",
        ],
        "exception_types": {"AuthenticationError", "PermissionError"},
    },
    "timeout": {
        "phrases": ["timed out", "deadline exceeded"],
        "exception_types": {"TimeoutError", "ReadTimeout", "ConnectTimeout"},
    },
    "network": {
        "phrases": [
            "connection",
            "network",
            "503",
            "502",
            "504",
            "unreachable",
        ],
        "exception_types": {"ConnectionError", "ConnectError"},
    },
}

_CATEGORY_BY_PATTERN: dict[_PatternName, ErrorCategory] = {
    "quota": ErrorCategory.SERVICE_QUOTA_EXCEEDED,
    "rate_limit": ErrorCategory.RATE_LIMIT_EXCEEDED,
    "auth": ErrorCategory.AUTHENTICATION_FAILED,
    "timeout": ErrorCategory.TIMEOUT,
    "network": ErrorCategory.NETWORK_ERROR,
}

def _match_error_pattern(*, error_str: str, exception_type: str, pattern_type: _PatternName) -> bool:
    """Return True if the error matches the configured pattern type."""
    patterns = _ERROR_PATTERNS[pattern_type]
    return any(phrase in error_str for phrase in patterns["phrases"]) or exception_type in patterns["exception_types"]


def classify_agent_error(exception: BaseException) -> ErrorCategory:
    """Classify a model or dispatch error for logging.

    Patterns are checked in order (quota, rate limit, auth, timeout, network),
    so a message mentioning both "429" and "connection" counts as a rate limit.
    The sender always gets the fixed fallback reply whatever the category.

    Args:
        exception: The exception raised while dispatching a burst

    Returns:
        The matching ErrorCategory, or UNKNOWN
    """
    error_str = str(exception).lower()
    exception_type = type(exception).__name__

    for pattern_type, category in _CATEGORY_BY_PATTERN.items():
        if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type=pattern_type):
            return category

    return ErrorCategory.UNKNOWN
