"""Failure classification for scan submissions.

Pure functions over ``(status_code, message)`` so the retry/abort policy can
be tested with literal inputs and no network.
"""

from typing import Optional

from jsmon_cli.models.scan import ErrorKind

AUTH_STATUS_CODES = frozenset({401, 403})
RATE_LIMIT_STATUS = 429

AUTH_PHRASES = (
    "invalid api key",
    "api key is invalid",
)
RATE_LIMIT_PHRASES = (
    "rate limit",
    "too many requests",
    "quota exceeded",
    "limit exceeded",
)

FAILURE_PREFIXES = ("URL Scan failed - ", "JS Scan failed - ", "Scan failed - ")
FAILURE_SUFFIXES = (
    "Please provide a valid URL.",
    "Please provide a valid JS file URL.",
)


def is_auth_failure(status_code: Optional[int], message: str) -> bool:
    """Check whether the API rejected the key itself.

    Key phrases only count when the API itself answered.
    """
    if status_code in AUTH_STATUS_CODES:
        return True
    if status_code is None:
        return False
    text = (message or "").lower()
    return any(phrase in text for phrase in AUTH_PHRASES)


def is_quota_exhausted(status_code: Optional[int], message: str) -> bool:
    """Check whether the account's scan allotment is used up."""
    text = (message or "").lower()
    if "insufficient" not in text:
        return False
    return (
        "scan limit" in text
        or "jsscan limit" in text
        or ("limit" in text and "exhausted" in text)
    )


def is_rate_limited(status_code: Optional[int], message: str) -> bool:
    """Check whether the API is throttling requests."""
    if status_code == RATE_LIMIT_STATUS:
        return True
    text = (message or "").lower()
    return any(phrase in text for phrase in RATE_LIMIT_PHRASES)


def classify_failure(status_code: Optional[int], message: str) -> ErrorKind:
    """Map a submission result to its ErrorKind.

    First match wins: auth, quota, rate limit, generic failure. A result
    with neither a status code nor a message is a success.

    Args:
        status_code: HTTP status of a failed submission, None if unknown
        message: Error text reported by the API

    Returns:
        The outcome class driving the batch recovery action
    """
    if status_code is None and not message:
        return ErrorKind.SUCCESS
    if is_auth_failure(status_code, message):
        return ErrorKind.AUTH_FAILURE
    if is_quota_exhausted(status_code, message):
        return ErrorKind.QUOTA_EXHAUSTED
    if is_rate_limited(status_code, message):
        return ErrorKind.RATE_LIMITED
    return ErrorKind.GENERIC_FAILURE


def clean_failure_message(message: str) -> str:
    """Strip the API's boilerplate around a per-item failure reason.

    Example:
        >>> clean_failure_message("URL Scan failed - Not JS. Please provide a valid URL.")
        'Not JS.'
    """
    reason = (message or "").strip()
    for prefix in FAILURE_PREFIXES:
        if reason.startswith(prefix):
            reason = reason[len(prefix):].strip()
            break
    for suffix in FAILURE_SUFFIXES:
        if reason.endswith(suffix):
            reason = reason[: -len(suffix)]
    return reason.strip()
