"""
Token endpoint protocol client.

Performs the refresh-token and client-credentials grants and token
revocation against a standard OAuth2 authorization server. Stateless with
respect to sessions: it only looks at the CredentialPair it is given and
returns new ones.
"""

import asyncio
import json
import logging
from typing import Any

import aiohttp

from oauth_session.errors.classifiers import (
    classify_token_response,
    classify_transport_exception,
)
from oauth_session.errors.exceptions import (
    GrantRejectedError,
    InvalidConfigurationError,
    MalformedTokenResponseError,
)
from oauth_session.oauth2.models import CredentialPair, OAuth2Config
from oauth_session.resilience.retry import DEFAULT_RETRY, RetryConfig, retry_async
from oauth_session.types import Clock, utc_now

logger = logging.getLogger(__name__)

GRANT_REFRESH_TOKEN = "refresh_token"
GRANT_CLIENT_CREDENTIALS = "client_credentials"


class TokenExchangeClient:
    """
    Stateless client for the token and revocation endpoints.

    Transient failures (connection errors, 5xx, 429, timeouts) are retried
    with backoff up to RetryConfig.max_attempts. Grant rejections are raised
    on the first occurrence.

    Usage:
        config = OAuth2Config(
            client_id="...",
            client_secret="...",
            token_url="https://auth.example.com/oauth/token",
            revoke_url="https://auth.example.com/oauth/revoke",
        )
        async with TokenExchangeClient(config) as client:
            pair = await client.refresh(pair)
    """

    def __init__(
        self,
        config: OAuth2Config,
        retry_config: RetryConfig | None = None,
        session: aiohttp.ClientSession | None = None,
        clock: Clock | None = None,
    ):
        if not all([config.client_id, config.token_url]):
            raise InvalidConfigurationError("client_id and token_url are required")
        if config.timeout_seconds <= 0:
            raise InvalidConfigurationError(
                f"timeout_seconds must be positive, got {config.timeout_seconds}"
            )

        self.config = config
        self.retry_config = retry_config or DEFAULT_RETRY
        self._session = session
        self._owns_session = session is None
        self._clock = clock or utc_now

        logger.debug(
            "Initialized token exchange client",
            extra={"token_url": config.token_url, "max_attempts": self.retry_config.max_attempts},
        )

    async def __aenter__(self) -> "TokenExchangeClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP client session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    def _client_auth_params(self) -> dict[str, str]:
        params = {"client_id": self.config.client_id}
        if self.config.client_secret:
            params["client_secret"] = self.config.client_secret
        return params

    def _grant_request(self, current: CredentialPair | None) -> dict[str, str]:
        if current is not None and current.refresh_token:
            request_data = {
                "grant_type": GRANT_REFRESH_TOKEN,
                "refresh_token": current.refresh_token,
            }
        elif self.config.allow_client_credentials:
            request_data = {"grant_type": GRANT_CLIENT_CREDENTIALS}
            scope = self.config.get_scope_string()
            if scope:
                request_data["scope"] = scope
        else:
            raise GrantRejectedError(
                "No refresh token available and client credentials grant is disabled"
            )

        request_data.update(self._client_auth_params())
        if self.config.additional_params:
            request_data.update(self.config.additional_params)
        return request_data

    async def refresh(self, current: CredentialPair | None) -> CredentialPair:
        """
        Exchange the current refresh token (or client credentials) for a new pair.

        Args:
            current: Pair to refresh; None for sessions without any tokens yet

        Returns:
            New CredentialPair

        Raises:
            GrantRejectedError: Server refused the grant (not retried)
            RetryExhaustedError: Transient failures used up the retry budget
            MalformedTokenResponseError: 2xx response without a usable grant
        """
        request_data = self._grant_request(current)
        grant_type = request_data["grant_type"]

        async def attempt() -> CredentialPair:
            issued_at = self._clock()
            body = await self._post(self.config.token_url, request_data)
            return CredentialPair.from_token_response(body, issued_at, previous=current)

        pair = await retry_async(
            attempt,
            config=self.retry_config,
            operation=f"token_exchange:{grant_type}",
        )
        logger.info(
            "Token exchange succeeded",
            extra={
                "grant_type": grant_type,
                "ttl_ms": pair.ttl_ms,
                "refresh_token_rotated": bool(
                    current is not None
                    and pair.refresh_token
                    and pair.refresh_token != current.refresh_token
                ),
            },
        )
        return pair

    async def revoke(self, pair: CredentialPair) -> None:
        """
        Revoke the most authoritative token in the pair.

        The refresh token is preferred because providers typically cascade
        its revocation to the access tokens issued from it. Single attempt;
        revocation is best-effort cleanup.

        Raises:
            InvalidConfigurationError: No revoke_url configured
            CredentialError: Classified revocation failure
        """
        if pair.refresh_token:
            token, hint = pair.refresh_token, "refresh_token"
        elif pair.access_token:
            token, hint = pair.access_token, "access_token"
        else:
            logger.debug("Nothing to revoke")
            return

        if not self.config.revoke_url:
            raise InvalidConfigurationError("revoke_url is required to revoke tokens")

        request_data = {"token": token, "token_type_hint": hint}
        request_data.update(self._client_auth_params())

        try:
            await self._post(self.config.revoke_url, request_data, expect_json=False)
        except Exception as e:
            error = classify_transport_exception(e)
            logger.warning(
                "Token revocation failed",
                extra={"token_type_hint": hint, "error_kind": error.kind.value},
            )
            if error is e:
                raise
            raise error from e

        logger.info("Revoked token", extra={"token_type_hint": hint})

    async def _post(
        self,
        url: str,
        data: dict[str, str],
        expect_json: bool = True,
    ) -> Any:
        """POST a form-encoded request and classify any failure."""
        session = await self._ensure_session()

        async with session.post(
            url,
            data=data,
            headers={"Accept": "application/json"},
            timeout=aiohttp.ClientTimeout(total=self.config.timeout_seconds),
        ) as response:
            if not 200 <= response.status < 300:
                body = await self._read_error_body(response)
                raise classify_token_response(response.status, body, response.headers)

            if not expect_json:
                return None

            try:
                return await response.json(content_type=None)
            except ValueError as e:
                raise MalformedTokenResponseError(
                    "Token endpoint returned a body that is not JSON", cause=e
                ) from e

    @staticmethod
    async def _read_error_body(response: aiohttp.ClientResponse) -> Any:
        text = await response.text()
        try:
            return json.loads(text)
        except (TypeError, ValueError):
            return text

    async def close(self) -> None:
        """Close the HTTP client session if this client created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
            await asyncio.sleep(0)


__all__ = [
    "TokenExchangeClient",
    "GRANT_REFRESH_TOKEN",
    "GRANT_CLIENT_CREDENTIALS",
]
