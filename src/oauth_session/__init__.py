"""
Client-side OAuth2 credential session manager.

Holds an access/refresh token pair, refreshes it exactly once per expiry no
matter how many coroutines ask for a token, persists refreshed pairs to a
credential store, and classifies token endpoint failures into retryable and
fatal kinds.

Basic Usage:
    from oauth_session import (
        OAuth2Config,
        Session,
        TokenExchangeClient,
        JsonFileCredentialStore,
    )

    config = OAuth2Config(
        client_id=os.getenv("CLIENT_ID"),
        client_secret=os.getenv("CLIENT_SECRET"),
        token_url="https://auth.example.com/oauth/token",
    )
    store = JsonFileCredentialStore("~/.oauth_session/credentials.json")

    async with TokenExchangeClient(config) as client:
        session = await Session.from_store("user:42", client, store)
        headers = await session.authorization_header()
"""

from oauth_session.errors import (
    CompoundCredentialError,
    CredentialError,
    ErrorKind,
    GrantRejectedError,
    InvalidConfigurationError,
    MalformedTokenResponseError,
    RetryExhaustedError,
    SessionTerminatedError,
    StoreError,
    ThrottlingError,
    TokenTimeoutError,
    TransientError,
    is_expired_tokens_error,
)
from oauth_session.oauth2 import (
    DEFAULT_EXPIRATION_BUFFER_MS,
    CredentialPair,
    OAuth2Config,
    TokenExchangeClient,
)
from oauth_session.resilience import RequestCoalescer, RetryConfig
from oauth_session.session import Session
from oauth_session.storage import (
    CredentialStore,
    InMemoryCredentialStore,
    JsonFileCredentialStore,
)
from oauth_session.types import SessionState

__version__ = "0.1.0"

__all__ = [
    # Session
    "Session",
    "SessionState",
    "DEFAULT_EXPIRATION_BUFFER_MS",
    # OAuth2
    "CredentialPair",
    "OAuth2Config",
    "TokenExchangeClient",
    # Resilience
    "RequestCoalescer",
    "RetryConfig",
    # Storage
    "CredentialStore",
    "InMemoryCredentialStore",
    "JsonFileCredentialStore",
    # Errors
    "ErrorKind",
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
    "is_expired_tokens_error",
]
