"""
Core types shared across the session manager.

This module provides the enums and aliases that the error hierarchy, the
token exchange client and the session state machine all agree on.
"""

from collections.abc import Callable
from datetime import UTC, datetime
from enum import Enum


class ErrorKind(Enum):
    """
    Closed set of error classifications for credential operations.

    Every failure surfaced by this package carries exactly one of these tags,
    assigned once, right after the transport call returns.

    Kinds:
        TRANSIENT: Network failures, 5xx and 429 responses. Retried with
                   backoff inside the exchange client.
        TIMEOUT: A single attempt exceeded its deadline. Counts toward the
                 retry budget like TRANSIENT.
        GRANT_REJECTED: The authorization server refused the grant (revoked,
                        expired or invalid refresh token, bad client). Never
                        retried; calling code must re-authenticate.
        STORE_FAILURE: The credential store could not read, save or clear.
        PERMANENT: Everything else that will not succeed on retry
                   (malformed responses, configuration, terminated session).
    """

    TRANSIENT = "transient"
    TIMEOUT = "timeout"
    GRANT_REJECTED = "grant_rejected"
    STORE_FAILURE = "store_failure"
    PERMANENT = "permanent"


class SessionState(Enum):
    """
    Observable states of a Session.

    REFRESHING is never stored; it mirrors the refresh coalescer's busy flag.
    """

    VALID = "valid"
    NEEDS_REFRESH = "needs_refresh"
    REFRESHING = "refreshing"
    TERMINATED = "terminated"


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock: timezone-aware current UTC time."""
    return datetime.now(UTC)


__all__ = [
    "ErrorKind",
    "SessionState",
    "Clock",
    "utc_now",
]
