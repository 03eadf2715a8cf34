"""
Error classification and exception hierarchy.

Provides:
- CredentialError hierarchy tagged with ErrorKind
- Classification of token endpoint responses and transport failures
- Detection helper for expired-token errors from resource requests
"""

from oauth_session.errors.classifiers import (
    GRANT_ERROR_CODES,
    classify_http_status,
    classify_token_response,
    classify_transport_exception,
    is_expired_tokens_error,
)
from oauth_session.errors.exceptions import (
    CompoundCredentialError,
    CredentialError,
    GrantRejectedError,
    InvalidConfigurationError,
    MalformedTokenResponseError,
    RetryExhaustedError,
    SessionTerminatedError,
    StoreError,
    ThrottlingError,
    TokenTimeoutError,
    TransientError,
    combine_errors,
)
from oauth_session.types import ErrorKind

__all__ = [
    # Enums
    "ErrorKind",
    # Base classes
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
    # Classification
    "GRANT_ERROR_CODES",
    "classify_http_status",
    "classify_token_response",
    "classify_transport_exception",
    "is_expired_tokens_error",
]
