"""
Credential session state machine.

A Session owns one CredentialPair and decides, on every access-token
request, whether to serve the cached token, refresh through a dedicated
RequestCoalescer, or fail fast.

States:
    VALID          cached access token is outside the expiration buffer
    NEEDS_REFRESH  buffer-adjusted expiry passed, no access token cached,
                   or the server reported the token expired
    REFRESHING     a coalesced refresh is in flight (derived, not stored)
    TERMINATED     tokens revoked or rejected; re-authentication required

The credential pair is only replaced inside the coalesced refresh, so a
single refresh exchange and a single store write happen per busy period
no matter how many callers are waiting.

Usage:
    async with TokenExchangeClient(config) as client:
        session = Session("user:42", client, credentials=pair, store=store)
        token = await session.get_access_token()
        try:
            await call_api(token)
        except ApiError as e:
            if is_expired_tokens_error(e):
                await session.handle_expired_tokens_error(e)
            raise
"""

import asyncio
import logging
from typing import Any, NoReturn

from oauth_session.errors.exceptions import (
    CredentialError,
    GrantRejectedError,
    SessionTerminatedError,
    StoreError,
    combine_errors,
)
from oauth_session.oauth2.exchange import TokenExchangeClient
from oauth_session.oauth2.models import DEFAULT_EXPIRATION_BUFFER_MS, CredentialPair
from oauth_session.resilience.coalescer import RequestCoalescer
from oauth_session.storage.base import CredentialStore
from oauth_session.types import Clock, SessionState, utc_now

logger = logging.getLogger(__name__)


class Session:
    """
    Owns a credential pair and refreshes it exactly once per expiry.

    Args:
        identity: Key used to address the credential store
        exchange_client: Token endpoint client (referenced, not owned)
        credentials: Initial pair, possibly obtained out-of-band
        store: Optional durable store; None keeps credentials in memory only
        expiration_buffer_ms: Treat tokens as expired this long before expiry
        clock: Callable returning the current UTC time
    """

    def __init__(
        self,
        identity: str,
        exchange_client: TokenExchangeClient,
        credentials: CredentialPair | None = None,
        store: CredentialStore | None = None,
        expiration_buffer_ms: int = DEFAULT_EXPIRATION_BUFFER_MS,
        clock: Clock | None = None,
    ):
        if not identity:
            raise ValueError("identity is required")
        if expiration_buffer_ms < 0:
            raise ValueError(
                f"expiration_buffer_ms must be >= 0, got {expiration_buffer_ms}"
            )

        self.identity = identity
        self.expiration_buffer_ms = int(expiration_buffer_ms)
        self._exchange = exchange_client
        self._store = store
        self._clock = clock or utc_now
        self._coalescer: RequestCoalescer[str] = RequestCoalescer(
            f"token_refresh:{identity}"
        )
        # Serializes save and clear for this identity
        self._write_lock = asyncio.Lock()

        self._credentials = credentials
        self._force_refresh = False
        self._unsaved = False
        self._terminated = False
        self._terminal_error: Exception | None = None

    @classmethod
    async def from_store(
        cls,
        identity: str,
        exchange_client: TokenExchangeClient,
        store: CredentialStore,
        **kwargs: Any,
    ) -> "Session":
        """
        Create a session seeded with the pair persisted for identity.

        A missing record yields a session without credentials; its first
        access goes straight to the exchange client.

        Raises:
            StoreError: If the store could not be read
        """
        try:
            credentials = await store.read(identity)
        except Exception as e:
            raise _store_error("read", identity, e) from e

        logger.debug(
            "Loaded session from store",
            extra={"identity": identity, "found": credentials is not None},
        )
        return cls(identity, exchange_client, credentials=credentials, store=store, **kwargs)

    # =========================================================================
    # State
    # =========================================================================

    @property
    def state(self) -> SessionState:
        if self._terminated:
            return SessionState.TERMINATED
        if self._coalescer.busy:
            return SessionState.REFRESHING
        if self._is_valid():
            return SessionState.VALID
        return SessionState.NEEDS_REFRESH

    @property
    def store(self) -> CredentialStore | None:
        return self._store

    def _is_valid(self) -> bool:
        pair = self._credentials
        if pair is None or self._force_refresh or self._unsaved:
            return False
        return not pair.is_expired(self._clock(), self.expiration_buffer_ms)

    # =========================================================================
    # Access
    # =========================================================================

    def peek_access_token(self) -> str | None:
        """Return the cached access token if VALID, without any I/O."""
        if self._terminated or not self._is_valid():
            return None
        return self._credentials.access_token

    async def get_access_token(self) -> str:
        """
        Get a valid access token, refreshing once if needed.

        Concurrent callers during a refresh share the same exchange and the
        same outcome.

        Raises:
            SessionTerminatedError: Tokens were revoked or rejected earlier
            GrantRejectedError: Refresh was rejected (session is now terminated)
            RetryExhaustedError: Token endpoint kept failing transiently
            StoreError: Refreshed pair could not be persisted
        """
        if self._terminated:
            raise SessionTerminatedError(
                f"Session '{self.identity}' is terminated; re-authentication required",
                cause=self._terminal_error,
            )

        # Fast path: no await, no coalescer
        if self._is_valid():
            return self._credentials.access_token

        return await self._coalescer.run(self._refresh)

    async def authorization_header(self) -> dict[str, str]:
        """Build an Authorization header with a valid access token."""
        token = await self.get_access_token()
        token_type = self._credentials.token_type if self._credentials else "Bearer"
        return {"Authorization": f"{token_type} {token}"}

    async def _refresh(self) -> str:
        """Producer for the refresh coalescer; the only writer of credentials."""
        current = self._credentials

        if (
            self._unsaved
            and current is not None
            and not self._force_refresh
            and not current.is_expired(self._clock(), self.expiration_buffer_ms)
        ):
            # Exchange already succeeded; only the write is outstanding
            await self._persist(current)
            return current.access_token

        logger.debug(
            "Refreshing credentials",
            extra={
                "identity": self.identity,
                "forced": self._force_refresh,
                "has_refresh_token": bool(current and current.refresh_token),
            },
        )

        try:
            new_pair = await self._exchange.refresh(current)
        except GrantRejectedError as e:
            await self._terminate_after_rejection(e)

        self._credentials = new_pair
        self._force_refresh = False
        self._unsaved = self._store is not None

        if self._store is not None:
            await self._persist(new_pair)

        logger.info(
            "Session credentials refreshed",
            extra={
                "identity": self.identity,
                "expires_at": new_pair.expires_at.isoformat(),
            },
        )
        return new_pair.access_token

    async def _persist(self, pair: CredentialPair) -> None:
        try:
            async with self._write_lock:
                await self._store.save(self.identity, pair)
        except Exception as e:
            logger.error(
                "Failed to persist refreshed credentials",
                extra={"identity": self.identity, "error_type": type(e).__name__},
            )
            raise _store_error("save", self.identity, e) from e
        self._unsaved = False

    async def _terminate_after_rejection(self, error: GrantRejectedError) -> NoReturn:
        logger.warning(
            "Token grant rejected, terminating session",
            extra={
                "identity": self.identity,
                "error_code": error.error_code,
                "http_status": error.status,
            },
        )
        self._credentials = None
        self._unsaved = False
        self._terminated = True
        self._terminal_error = error

        store_error = await self._clear_store()
        if store_error is None:
            raise error
        raise combine_errors(error, store_error) from error

    async def _wait_for_refresh(self, reason: str) -> None:
        """Join in-flight refreshes until none is running."""
        while self._coalescer.busy:
            try:
                await self._coalescer.run(self._refresh)
            except CredentialError as e:
                logger.debug(
                    "In-flight refresh failed before %s",
                    reason,
                    extra={"identity": self.identity, "error_type": type(e).__name__},
                )

    # =========================================================================
    # Recovery and teardown
    # =========================================================================

    async def handle_expired_tokens_error(self, error: Exception) -> NoReturn:
        """
        Recover from a resource request rejected for an expired token.

        Clears the stored record for this identity and forces the next
        get_access_token() to refresh, even if the cached pair still looks
        valid locally (clock skew). Always raises: the original error, or a
        CompoundCredentialError if clearing the store also failed.

        If a refresh is in flight it is awaited first. When that refresh
        replaced the pair, the error refers to a superseded token and is
        re-raised without touching the store.
        """
        reported = self._credentials
        await self._wait_for_refresh("expired tokens report")
        if self._terminated or self._credentials is not reported:
            logger.debug(
                "Expired tokens report refers to superseded credentials",
                extra={"identity": self.identity, "error_type": type(error).__name__},
            )
            raise error

        logger.info(
            "Server reported expired tokens, forcing refresh",
            extra={"identity": self.identity, "error_type": type(error).__name__},
        )
        self._force_refresh = True

        store_error = await self._clear_store()
        if store_error is None:
            raise error
        raise combine_errors(error, store_error) from error

    def invalidate(self) -> None:
        """Force the next get_access_token() to refresh. The store is untouched."""
        if not self._terminated:
            self._force_refresh = True

    async def revoke_tokens(self) -> None:
        """
        Revoke the session's tokens and terminate the session.

        Waits for in-flight refreshes, including ones started by callers
        retrying while it waited, so the freshest refresh token is the one
        revoked. The session is TERMINATED afterwards even if revocation or
        the store clear fails; those failures still propagate.
        """
        await self._wait_for_refresh("revoke")

        pair = self._credentials
        self._credentials = None
        self._unsaved = False
        self._terminated = True
        self._terminal_error = None

        revoke_error: Exception | None = None
        if pair is not None:
            try:
                await self._exchange.revoke(pair)
            except Exception as e:
                revoke_error = e

        store_error = await self._clear_store()
        error = combine_errors(revoke_error, store_error)

        logger.info(
            "Session terminated by revocation",
            extra={"identity": self.identity, "revoked": revoke_error is None},
        )
        if error is not None:
            raise error

    def reset(self, credentials: CredentialPair) -> None:
        """
        Re-arm the session with externally obtained credentials.

        Used after interactive re-authentication. The new pair is not
        written to the store here; call save on the store directly if it
        should be persisted.

        Raises:
            RuntimeError: If a refresh is in flight
        """
        if self._coalescer.busy:
            raise RuntimeError("Cannot reset a session while a refresh is in flight")
        self._credentials = credentials
        self._force_refresh = False
        self._unsaved = False
        self._terminated = False
        self._terminal_error = None
        logger.info("Session reset with new credentials", extra={"identity": self.identity})

    async def _clear_store(self) -> StoreError | None:
        if self._store is None:
            return None
        try:
            async with self._write_lock:
                await self._store.clear(self.identity)
        except Exception as e:
            logger.error(
                "Failed to clear stored credentials",
                extra={"identity": self.identity, "error_type": type(e).__name__},
            )
            return _store_error("clear", self.identity, e)
        return None

    # =========================================================================
    # Diagnostics
    # =========================================================================

    def describe(self) -> dict[str, Any]:
        """Session information for diagnostics. Never includes token values."""
        pair = self._credentials
        now = self._clock()
        info: dict[str, Any] = {
            "identity": self.identity,
            "state": self.state.value,
            "has_access_token": bool(pair and pair.access_token),
            "has_refresh_token": bool(pair and pair.refresh_token),
            "refresh_executions": self._coalescer.executions,
            "unsaved": self._unsaved,
        }
        if pair is not None:
            info.update(
                {
                    "issued_at": pair.issued_at.isoformat(),
                    "expires_at": pair.expires_at.isoformat(),
                    "remaining_seconds": pair.remaining_lifetime(now).total_seconds(),
                    "token_type": pair.token_type,
                    "scope": pair.scope,
                }
            )
        return info


def _store_error(operation: str, identity: str, cause: Exception) -> StoreError:
    if isinstance(cause, StoreError):
        return cause
    return StoreError(
        f"Credential store {operation} failed for '{identity}'",
        operation=operation,
        identity=identity,
        cause=cause,
    )


__all__ = ["Session"]
