"""
Classification of token endpoint responses and transport failures.

This is the single place where raw HTTP statuses, OAuth2 error bodies and
transport exceptions are turned into typed CredentialError instances.
Everything downstream (retry decisions, session state transitions) only
looks at the resulting ErrorKind.
"""

import asyncio
from collections.abc import Mapping
from typing import Any

import aiohttp

from oauth_session.errors.exceptions import (
    CredentialError,
    GrantRejectedError,
    ThrottlingError,
    TokenTimeoutError,
    TransientError,
)
from oauth_session.types import ErrorKind

# OAuth2 error codes (RFC 6749 section 5.2) that mean the grant itself is dead
GRANT_ERROR_CODES = frozenset(
    {
        "invalid_grant",
        "invalid_client",
        "unauthorized_client",
        "unsupported_grant_type",
        "invalid_scope",
        "invalid_request",
        "access_denied",
    }
)

# Markers for string-based detection of expired access tokens reported by
# resource servers (fallback when no status code is available)
EXPIRED_TOKEN_MARKERS = frozenset(
    {
        "401",
        "unauthorized",
        "invalid_token",
        "token expired",
        "expired token",
        "expired_token",
    }
)


def classify_http_status(status_code: int) -> ErrorKind | None:
    """Classify a token endpoint HTTP status. Returns None for success."""
    if 200 <= status_code < 300:
        return None

    if status_code == 408:
        return ErrorKind.TIMEOUT

    if status_code == 429:
        return ErrorKind.TRANSIENT  # Rate limited

    if 400 <= status_code < 500:
        return ErrorKind.GRANT_REJECTED  # Client errors, won't fix with retry

    if status_code >= 500:
        return ErrorKind.TRANSIENT  # Server errors, may recover

    # 1xx/3xx from a token endpoint is a protocol violation
    return ErrorKind.PERMANENT


def _parse_retry_after(headers: Mapping[str, str] | None) -> float | None:
    if not headers:
        return None
    value = headers.get("Retry-After") or headers.get("retry-after")
    if value is None:
        return None
    try:
        return max(float(value), 0.0)
    except (TypeError, ValueError):
        # HTTP-date form is not worth honoring for a token endpoint
        return None


def _oauth_error_fields(body: Any) -> tuple[str | None, str | None]:
    if not isinstance(body, Mapping):
        return None, None
    code = body.get("error")
    description = body.get("error_description")
    return (
        str(code) if code is not None else None,
        str(description) if description is not None else None,
    )


def classify_token_response(
    status: int,
    body: Any = None,
    headers: Mapping[str, str] | None = None,
) -> CredentialError:
    """
    Build a typed error for a non-2xx token endpoint response.

    Args:
        status: HTTP status code
        body: Decoded JSON body, raw text, or None
        headers: Response headers (used for Retry-After)

    Returns:
        CredentialError subclass matching the classified ErrorKind
    """
    error_code, description = _oauth_error_fields(body)
    detail = description or error_code or (body if isinstance(body, str) else "")
    detail = str(detail)[:200]
    message = f"Token endpoint returned HTTP {status}"
    if detail:
        message = f"{message}: {detail}"

    context = {"http_status": status}
    if error_code:
        context["error_code"] = error_code

    kind = classify_http_status(status)

    # Some servers answer invalid_grant with a 5xx; the body wins
    if error_code in GRANT_ERROR_CODES and kind == ErrorKind.TRANSIENT and status != 429:
        kind = ErrorKind.GRANT_REJECTED

    if kind == ErrorKind.GRANT_REJECTED:
        return GrantRejectedError(
            message,
            status=status,
            error_code=error_code,
            error_description=description,
            context=context,
        )

    if kind == ErrorKind.TIMEOUT:
        return TokenTimeoutError(message, context=context)

    if kind == ErrorKind.TRANSIENT:
        if status == 429:
            return ThrottlingError(
                message,
                retry_after=_parse_retry_after(headers),
                status=status,
                context=context,
            )
        return TransientError(message, status=status, context=context)

    return CredentialError(message, context=context)


def classify_transport_exception(exc: Exception) -> CredentialError:
    """
    Classify an exception raised while talking to the token endpoint.

    Timeouts become TokenTimeoutError, connection-level failures become
    TransientError, anything already classified passes through unchanged.
    Unknown exceptions are treated as permanent so programming errors are
    not hidden behind retries.
    """
    if isinstance(exc, CredentialError):
        return exc

    if isinstance(exc, (asyncio.TimeoutError, aiohttp.ServerTimeoutError)):
        return TokenTimeoutError(
            "Token endpoint request timed out",
            cause=exc,
            context={"error_type": "timeout"},
        )

    if isinstance(exc, aiohttp.ContentTypeError):
        return TransientError(
            f"Token endpoint returned non-JSON body: {exc.message}",
            status=exc.status,
            cause=exc,
        )

    if isinstance(exc, (aiohttp.ClientError, OSError)):
        return TransientError(
            f"Token endpoint connection failed: {exc}",
            cause=exc,
            context={"error_type": "connection"},
        )

    return CredentialError(f"Unexpected token endpoint failure: {exc}", cause=exc)


def is_expired_tokens_error(exc: Exception) -> bool:
    """
    Check whether a resource request failed because the access token expired.

    Intended for request-dispatch code deciding whether to call
    Session.handle_expired_tokens_error. Looks at typed status codes first
    and falls back to string matching.
    """
    if isinstance(exc, CredentialError):
        return False

    status = getattr(exc, "status", None)
    if status is None:
        status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        return status == 401

    error_str = str(exc).lower()
    return any(marker in error_str for marker in EXPIRED_TOKEN_MARKERS)


__all__ = [
    "GRANT_ERROR_CODES",
    "EXPIRED_TOKEN_MARKERS",
    "classify_http_status",
    "classify_token_response",
    "classify_transport_exception",
    "is_expired_tokens_error",
]
