"""Classify backend failures into retryable (quota, transient) and fatal."""

import logging
import re
from enum import Enum

logger = logging.getLogger(__name__)


class FailureKind(str, Enum):
    QUOTA = "quota"
    TRANSIENT = "transient"
    FATAL = "fatal"


# Billing or quota wording; the only signals that make a 4xx retryable.
_BILLING_SIGNATURES = (
    "quota",
    "insufficient_quota",
    "billing",
    "credit",
    "resource_exhausted",
)

_QUOTA_SIGNATURES = _BILLING_SIGNATURES + (
    "rate limit",
    "rate_limit",
    "too many requests",
)

_TRANSIENT_SIGNATURES = (
    "internal error",
    "internal server error",
    "overloaded",
    "capacity",
    "unavailable",
    "bad gateway",
)

_QUOTA_CODE_RE = re.compile(r"\b429\b")
_SERVER_CODE_RE = re.compile(r"\b5\d\d\b")


def _status_code(exc: BaseException) -> int | None:
    """Find an HTTP status on the exception or anything it was raised from."""
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        for attr in ("status_code", "code", "status"):
            value = getattr(current, attr, None)
            if isinstance(value, int) and 100 <= value < 600:
                return value
        current = current.__cause__ or current.__context__
    return None


def classify_failure(exc: BaseException) -> FailureKind:
    """Map an exception raised by a backend call onto the failure taxonomy.

    A known HTTP status decides first: 429 is a quota failure, 5xx is
    transient, and any other 4xx is fatal unless the message talks about
    billing or quota. Without a status the message text is matched.
    """
    status = _status_code(exc)
    message = str(exc).lower()
    if status == 429:
        return FailureKind.QUOTA
    if status is not None and status >= 500:
        return FailureKind.TRANSIENT
    if status is not None and 400 <= status < 500:
        if any(sig in message for sig in _BILLING_SIGNATURES):
            return FailureKind.QUOTA
        return FailureKind.FATAL

    if _QUOTA_CODE_RE.search(message) or any(sig in message for sig in _QUOTA_SIGNATURES):
        return FailureKind.QUOTA
    if _SERVER_CODE_RE.search(message) or any(sig in message for sig in _TRANSIENT_SIGNATURES):
        return FailureKind.TRANSIENT
    return FailureKind.FATAL


def is_retryable(exc: BaseException) -> bool:
    kind = classify_failure(exc)
    logger.debug("Classified %s as %s", type(exc).__name__, kind.value)
    return kind is not FailureKind.FATAL
