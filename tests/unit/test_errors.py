"""Unit tests for error classification utilities."""

import pytest

from src.core.errors import ErrorCategory, classify_agent_error


@pytest.mark.unit
class TestClassifyAgentError:
    """Tests for classify_agent_error function."""

    def test_quota_exceeded(self):
        category = classify_agent_error(Exception("OpenRouter API error: quota exceeded for this model"))

        assert category == ErrorCategory.SERVICE_QUOTA_EXCEEDED

    def test_insufficient_credits(self):
        assert classify_agent_error(Exception("402: insufficient credits remaining")) == (
            ErrorCategory.SERVICE_QUOTA_EXCEEDED
        )

    def test_rate_limit(self):
        assert classify_agent_error(Exception("status_code: 429, Too Many Requests")) == (
            ErrorCategory.RATE_LIMIT_EXCEEDED
        )

    def test_rate_limit_wins_over_network(self):
        assert classify_agent_error(Exception("429 returned over connection pool")) == (
            ErrorCategory.RATE_LIMIT_EXCEEDED
        )

    def test_authentication(self):
        assert classify_agent_error(Exception("401 Unauthorized: invalid api key")) == (
            ErrorCategory.AUTHENTICATION_FAILED
        )

    def test_timeout_by_type(self):
        assert classify_agent_error(TimeoutError()) == ErrorCategory.TIMEOUT

    def test_network_by_type(self):
        assert classify_agent_error(ConnectionError("reset by peer")) == ErrorCategory.NETWORK_ERROR

    def test_network_by_message(self):
        assert classify_agent_error(Exception("502 Bad Gateway")) == ErrorCategory.NETWORK_ERROR

    def test_unknown(self):
        assert classify_agent_error(ValueError("something odd")) == ErrorCategory.UNKNOWN
