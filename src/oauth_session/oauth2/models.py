"""OAuth2 credential models and configuration."""

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from oauth_session.errors.exceptions import MalformedTokenResponseError

# Treat tokens as expired this long before their literal expiry
DEFAULT_EXPIRATION_BUFFER_MS = 30_000

# Used when a token response omits expires_in
DEFAULT_EXPIRES_IN_SECONDS = 3600


@dataclass(frozen=True)
class CredentialPair:
    """
    Access/refresh token pair with expiry bookkeeping.

    Attributes:
        access_token: Short-lived bearer token, None when not cached
        refresh_token: Longer-lived token used to obtain a new pair
        issued_at: UTC timestamp when the pair was issued
        ttl_ms: Access token lifetime in milliseconds
        token_type: Token type (typically "Bearer")
        scope: Space-separated scopes granted
    """

    access_token: str | None
    refresh_token: str | None
    issued_at: datetime
    ttl_ms: int
    token_type: str = "Bearer"
    scope: str | None = None

    def __post_init__(self):
        if isinstance(self.ttl_ms, bool) or not isinstance(self.ttl_ms, int):
            raise ValueError(f"ttl_ms must be an integer, got {self.ttl_ms!r}")
        if self.ttl_ms <= 0:
            raise ValueError(f"ttl_ms must be positive, got {self.ttl_ms}")
        if self.access_token == "":
            raise ValueError("access_token must be non-empty when present")
        if self.issued_at.tzinfo is None:
            raise ValueError("issued_at must be timezone-aware")

    @property
    def expires_at(self) -> datetime:
        """Literal expiry: issued_at + ttl_ms."""
        return self.issued_at + timedelta(milliseconds=self.ttl_ms)

    def is_expired(
        self, now: datetime, buffer_ms: int = DEFAULT_EXPIRATION_BUFFER_MS
    ) -> bool:
        """
        Check if the access token is missing, expired or close to expiry.

        Args:
            now: Current UTC time
            buffer_ms: Safety buffer before actual expiry

        Returns:
            True if the token should be refreshed before use
        """
        if not self.access_token:
            return True
        return now >= self.expires_at - timedelta(milliseconds=buffer_ms)

    def remaining_lifetime(self, now: datetime) -> timedelta:
        """Time left before literal expiry (negative once expired)."""
        return self.expires_at - now

    @classmethod
    def from_token_response(
        cls,
        response: Mapping[str, Any],
        issued_at: datetime,
        previous: "CredentialPair | None" = None,
    ) -> "CredentialPair":
        """
        Create a pair from an OAuth2 token endpoint response.

        Providers that do not rotate refresh tokens omit refresh_token on
        refresh; the previous pair's refresh token is kept in that case.

        Args:
            response: Decoded JSON token response
            issued_at: When the request that produced it was sent
            previous: Pair being refreshed, if any

        Returns:
            CredentialPair instance

        Raises:
            MalformedTokenResponseError: If the response is not a usable grant
        """
        if not isinstance(response, Mapping):
            raise MalformedTokenResponseError(
                f"Token response must be a JSON object, got {type(response).__name__}"
            )

        access_token = response.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise MalformedTokenResponseError("Token response has no access_token")

        expires_in = response.get("expires_in", DEFAULT_EXPIRES_IN_SECONDS)
        try:
            expires_in = float(expires_in)
        except (TypeError, ValueError):
            raise MalformedTokenResponseError(
                f"Token response has invalid expires_in: {expires_in!r}"
            ) from None
        if not math.isfinite(expires_in) or expires_in <= 0:
            raise MalformedTokenResponseError(
                f"Token response has invalid expires_in: {expires_in!r}"
            )
        ttl_ms = int(expires_in * 1000)
        if ttl_ms < 1:
            raise MalformedTokenResponseError(
                f"Token response expires_in is below one millisecond: {expires_in!r}"
            )

        refresh_token = response.get("refresh_token") or (
            previous.refresh_token if previous else None
        )

        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            issued_at=issued_at,
            ttl_ms=ttl_ms,
            token_type=response.get("token_type") or "Bearer",
            scope=response.get("scope") or (previous.scope if previous else None),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize for credential stores."""
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "issued_at": self.issued_at.isoformat(),
            "ttl_ms": self.ttl_ms,
            "token_type": self.token_type,
            "scope": self.scope,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CredentialPair":
        """Deserialize a pair written by to_dict()."""
        return cls(
            access_token=data.get("access_token"),
            refresh_token=data.get("refresh_token"),
            issued_at=datetime.fromisoformat(data["issued_at"]),
            ttl_ms=int(data["ttl_ms"]),
            token_type=data.get("token_type") or "Bearer",
            scope=data.get("scope"),
        )

    def __repr__(self) -> str:
        # Never show token values
        return (
            f"CredentialPair(access_token={'***' if self.access_token else None}, "
            f"refresh_token={'***' if self.refresh_token else None}, "
            f"issued_at={self.issued_at.isoformat()}, ttl_ms={self.ttl_ms})"
        )


@dataclass
class OAuth2Config:
    """
    Authorization server configuration for the token exchange client.

    Attributes:
        client_id: OAuth2 client ID
        client_secret: OAuth2 client secret (optional for public clients)
        token_url: Token endpoint URL
        revoke_url: Revocation endpoint URL (RFC 7009)
        scope: Space-separated or list of scopes to request
        additional_params: Additional parameters for token requests
        timeout_seconds: Per-attempt request timeout
        allow_client_credentials: Fall back to the client_credentials grant
            when no refresh token is available
    """

    client_id: str
    token_url: str
    client_secret: str | None = None
    revoke_url: str | None = None
    scope: str | list[str] | None = None
    additional_params: dict[str, str] | None = field(default=None)
    timeout_seconds: float = 30.0
    allow_client_credentials: bool = False

    def __post_init__(self):
        self.timeout_seconds = float(self.timeout_seconds)

    def get_scope_string(self) -> str:
        """Get scope as space-separated string."""
        if not self.scope:
            return ""
        if isinstance(self.scope, list):
            return " ".join(self.scope)
        return self.scope

    def __repr__(self) -> str:
        return (
            f"OAuth2Config(client_id={self.client_id!r}, token_url={self.token_url!r}, "
            f"revoke_url={self.revoke_url!r}, client_secret="
            f"{'***' if self.client_secret else None})"
        )


__all__ = [
    "CredentialPair",
    "OAuth2Config",
    "DEFAULT_EXPIRATION_BUFFER_MS",
    "DEFAULT_EXPIRES_IN_SECONDS",
]
