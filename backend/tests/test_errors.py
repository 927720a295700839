import asyncio

import pytest

from memo_digitizer.core.config import settings
from memo_digitizer.core.errors import (
    MissingCredential,
    ModelTimeout,
    RateLimited,
    Unauthorized,
    UpstreamError,
    classify_model_error,
)


class AuthenticationError(Exception):
    status_code = 401


class RateLimitError(Exception):
    status_code = 429


class BadRequestError(Exception):
    status_code = 400


class APITimeoutError(Exception):
    pass


@pytest.mark.parametrize(
    "exc, expected, status",
    [
        (Exception("Error code: 401 - invalid x-api-key"), Unauthorized, 401),
        (AuthenticationError("bad key"), Unauthorized, 401),
        (Exception("Error code: 429 - {'type': 'rate_limit_error'}"), RateLimited, 429),
        (asyncio.TimeoutError(), ModelTimeout, 504),
        (APITimeoutError("Request timed out."), ModelTimeout, 504),
        (Exception("overloaded_error"), UpstreamError, 500),
    ],
)
def test_classification(exc, expected, status):
    error = classify_model_error(exc)
    assert isinstance(error, expected)
    assert error.status_code == status


def test_upstream_error_keeps_raw_message():
    error = classify_model_error(RuntimeError("Error code: 529 - overloaded"))
    assert error.message == "Error code: 529 - overloaded"


def test_rate_limit_message():
    error = classify_model_error(Exception("rate_limit exceeded"))
    assert error.message == "Rate limited. Try again in 60s"


def test_status_code_wins_over_digits_in_message():
    exc = RateLimitError(
        "Error code: 429 - {'type': 'error', 'error': {'type': 'rate_limit_error', "
        "'message': 'This request would exceed the rate limit of 40100 input tokens'}}"
    )
    error = classify_model_error(exc)
    assert isinstance(error, RateLimited)
    assert error.status_code == 429


def test_token_counts_do_not_look_like_auth_failures():
    error = classify_model_error(BadRequestError("prompt is too long: 240100 tokens"))
    assert isinstance(error, UpstreamError)
    assert error.status_code == 500
    assert error.message == "prompt is too long: 240100 tokens"


def test_message_fallback_matches_whole_status_code():
    assert isinstance(
        classify_model_error(Exception("request 84013401 failed")), UpstreamError
    )
    assert isinstance(
        classify_model_error(Exception("HTTP 401 Unauthorized")), Unauthorized
    )


def test_credential_messages_follow_provider(monkeypatch):
    assert Unauthorized().message == "Invalid Claude API key"
    monkeypatch.setattr(settings, "vision_provider", "openai")
    assert Unauthorized().message == "Invalid OpenAI API key"
    assert MissingCredential().message == "OpenAI API key not configured"
