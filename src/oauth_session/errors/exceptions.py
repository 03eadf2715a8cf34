"""
Unified exception hierarchy for credential operations.

Provides typed exceptions tagged with an ErrorKind so callers can decide
between "retry after refresh" and "re-authenticate" without inspecting
provider-specific fields.
"""

from oauth_session.types import ErrorKind


class CredentialError(Exception):
    """
    Base exception for all session manager errors.

    Attributes:
        message: Human-readable error description
        kind: Error classification for retry decisions
        cause: Original exception if wrapping
        context: Additional context dict for debugging
    """

    kind: ErrorKind = ErrorKind.PERMANENT

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        return self.kind in (ErrorKind.TRANSIENT, ErrorKind.TIMEOUT)

    @property
    def requires_reauthentication(self) -> bool:
        return self.kind == ErrorKind.GRANT_REJECTED

    def __str__(self) -> str:
        parts = [self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


# =============================================================================
# Transient Errors (retried inside the exchange client)
# =============================================================================


class TransientError(CredentialError):
    """Network failure or server-side error that may succeed on retry."""

    kind = ErrorKind.TRANSIENT

    def __init__(
        self,
        message: str,
        status: int | None = None,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        super().__init__(message, cause, context)
        self.status = status


class ThrottlingError(TransientError):
    """Rate limited (429) - should back off."""

    def __init__(
        self,
        message: str,
        retry_after: float | None = None,
        status: int | None = 429,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        super().__init__(message, status, cause, context)
        self.retry_after = retry_after  # Seconds to wait if provided


class RetryExhaustedError(TransientError):
    """Retry budget spent on transient failures; a later call may succeed."""

    def __init__(self, operation: str, attempts: int, last_error: Exception):
        super().__init__(
            f"{operation} failed after {attempts} attempts",
            status=getattr(last_error, "status", None),
            cause=last_error,
            context={"operation": operation, "attempts": attempts},
        )
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error


class TokenTimeoutError(CredentialError):
    """A single token endpoint attempt exceeded its deadline."""

    kind = ErrorKind.TIMEOUT


# =============================================================================
# Grant Rejection (fatal for the refresh cycle)
# =============================================================================


class GrantRejectedError(CredentialError):
    """
    The authorization server refused the grant.

    Raised for revoked, expired or otherwise invalid refresh tokens and for
    client authentication failures. Never retried.
    """

    kind = ErrorKind.GRANT_REJECTED

    def __init__(
        self,
        message: str,
        status: int | None = None,
        error_code: str | None = None,
        error_description: str | None = None,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        super().__init__(message, cause, context)
        self.status = status
        self.error_code = error_code
        self.error_description = error_description


# =============================================================================
# Store Errors
# =============================================================================


class StoreError(CredentialError):
    """Credential store read, save or clear failed."""

    kind = ErrorKind.STORE_FAILURE

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        identity: str | None = None,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        super().__init__(message, cause, context)
        self.operation = operation
        self.identity = identity


# =============================================================================
# Permanent Errors
# =============================================================================


class MalformedTokenResponseError(CredentialError):
    """Token endpoint answered 2xx with a body that is not a usable grant."""


class InvalidConfigurationError(CredentialError):
    """Client or session configuration is invalid."""


class SessionTerminatedError(CredentialError):
    """Session tokens were revoked or rejected; re-authentication required."""


class CompoundCredentialError(CredentialError):
    """
    Several failures reported as one.

    Used when cleanup (typically a store clear) fails while another error is
    already being propagated. The kind follows the first credential error so
    retry decisions are driven by the primary failure.
    """

    def __init__(self, errors: list[Exception]):
        if not errors:
            raise ValueError("CompoundCredentialError needs at least one error")
        self.errors = list(errors)
        summary = "; ".join(f"{type(e).__name__}: {e}" for e in self.errors)
        super().__init__(
            f"{len(self.errors)} errors: {summary}",
            cause=self.errors[0],
        )
        primary = next(
            (e for e in self.errors if isinstance(e, CredentialError)), None
        )
        self.kind = primary.kind if primary is not None else ErrorKind.PERMANENT

    def __str__(self) -> str:
        return self.message


def combine_errors(*errors: Exception | None) -> Exception | None:
    """
    Merge optional errors into a single reportable one.

    Returns None when every argument is None, the error itself when only one
    is present, and a CompoundCredentialError otherwise.
    """
    present = [e for e in errors if e is not None]
    if not present:
        return None
    if len(present) == 1:
        return present[0]
    return CompoundCredentialError(present)


__all__ = [
    "CredentialError",
    "TransientError",
    "ThrottlingError",
    "RetryExhaustedError",
    "TokenTimeoutError",
    "GrantRejectedError",
    "StoreError",
    "MalformedTokenResponseError",
    "InvalidConfigurationError",
    "SessionTerminatedError",
    "CompoundCredentialError",
    "combine_errors",
]
