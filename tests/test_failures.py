"""Tests for roundtable/failures.py."""

import pytest

from roundtable.failures import FailureKind, classify_failure, is_retryable
from roundtable.providers.base import ProviderError


@pytest.mark.parametrize(
    "message",
    [
        "Rate limit reached for gpt-4o",
        "You exceeded your current quota",
        "insufficient_quota",
        "429 Too Many Requests",
        "Your credit balance is too low",
        "billing hard limit reached",
        "RESOURCE_EXHAUSTED",
    ],
)
def test_quota_signatures(message):
    assert classify_failure(RuntimeError(message)) is FailureKind.QUOTA


@pytest.mark.parametrize(
    "message",
    [
        "500 Internal Server Error",
        "Internal error encountered",
        "Overloaded",
        "The model is at capacity",
        "503 Service Unavailable",
    ],
)
def test_transient_signatures(message):
    assert classify_failure(RuntimeError(message)) is FailureKind.TRANSIENT


@pytest.mark.parametrize(
    "message",
    ["invalid x-api-key", "400 messages: field required", "unexpected response shape"],
)
def test_everything_else_is_fatal(message):
    assert classify_failure(ValueError(message)) is FailureKind.FATAL
    assert is_retryable(ValueError(message)) is False


def test_status_code_wins_over_text():
    assert classify_failure(ProviderError("claude", "boom", status_code=429)) is FailureKind.QUOTA
    assert classify_failure(ProviderError("claude", "boom", status_code=502)) is FailureKind.TRANSIENT


def test_status_code_found_on_cause():
    class SdkError(Exception):
        status_code = 529

    try:
        try:
            raise SdkError("upstream")
        except SdkError as inner:
            raise ProviderError("claude", "API call failed") from inner
    except ProviderError as exc:
        assert classify_failure(exc) is FailureKind.TRANSIENT
        assert is_retryable(exc) is True


@pytest.mark.parametrize(
    "message",
    [
        "Error code: 400 - max_tokens: 15000 > 8192, which is the maximum allowed",
        "Error code: 400 - {'code': 'context_length_exceeded'}",
        "Error code: 404 - model unavailable for this account",
    ],
)
def test_client_errors_are_fatal(message):
    exc = ProviderError("claude", message, status_code=400)
    assert classify_failure(exc) is FailureKind.FATAL
    assert is_retryable(exc) is False


def test_client_error_with_billing_wording_is_quota():
    exc = ProviderError("chatgpt", "Error code: 403 - insufficient_quota", status_code=403)
    assert classify_failure(exc) is FailureKind.QUOTA


def test_status_numbers_match_whole_words_only():
    assert classify_failure(RuntimeError("max_tokens must be below 15000")) is FailureKind.FATAL
    assert classify_failure(RuntimeError("request id 14290 rejected")) is FailureKind.FATAL
    assert classify_failure(RuntimeError("upstream returned 502")) is FailureKind.TRANSIENT
