"""
OAuth2 credential models and token endpoint client.

Basic Usage:
    from oauth_session.oauth2 import OAuth2Config, TokenExchangeClient

    config = OAuth2Config(
        client_id=os.getenv("CLIENT_ID"),
        client_secret=os.getenv("CLIENT_SECRET"),
        token_url="https://auth.example.com/oauth/token",
        revoke_url="https://auth.example.com/oauth/revoke",
    )
    async with TokenExchangeClient(config) as client:
        new_pair = await client.refresh(pair)
"""

from oauth_session.oauth2.exchange import (
    GRANT_CLIENT_CREDENTIALS,
    GRANT_REFRESH_TOKEN,
    TokenExchangeClient,
)
from oauth_session.oauth2.models import (
    DEFAULT_EXPIRATION_BUFFER_MS,
    DEFAULT_EXPIRES_IN_SECONDS,
    CredentialPair,
    OAuth2Config,
)

__all__ = [
    # Client
    "TokenExchangeClient",
    "GRANT_REFRESH_TOKEN",
    "GRANT_CLIENT_CREDENTIALS",
    # Models
    "CredentialPair",
    "OAuth2Config",
    "DEFAULT_EXPIRATION_BUFFER_MS",
    "DEFAULT_EXPIRES_IN_SECONDS",
]
