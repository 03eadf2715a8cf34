"""
Session manager configuration.

Loads a single YAML file with environment variable expansion:

    oauth:
      client_id: ${OAUTH_CLIENT_ID}
      client_secret: ${OAUTH_CLIENT_SECRET}
      token_url: https://auth.example.com/oauth/token
      revoke_url: https://auth.example.com/oauth/revoke
      scope: "read write"
      timeout_seconds: 30
      allow_client_credentials: false
    retry:
      max_attempts: 3
      base_delay: 1.0
      max_delay: 30.0
      exponential_base: 2.0
    session:
      identity: ${OAUTH_IDENTITY:-default}
      expiration_buffer_ms: 30000
    store:
      type: json            # none | memory | json
      path: ~/.oauth_session/credentials.json
    logging:
      level: INFO
      json_format: false
      log_file: null

Both ${VAR} and ${VAR:-default} are supported. Unset variables without a
default are left as-is so validation can point at them.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from oauth_session.oauth2.exchange import TokenExchangeClient
from oauth_session.oauth2.models import (
    DEFAULT_EXPIRATION_BUFFER_MS,
    CredentialPair,
    OAuth2Config,
)
from oauth_session.resilience.retry import RetryConfig
from oauth_session.session import Session
from oauth_session.storage.base import CredentialStore
from oauth_session.storage.json_file import JsonFileCredentialStore
from oauth_session.storage.memory import InMemoryCredentialStore

logger = logging.getLogger(__name__)

STORE_TYPES = ("none", "memory", "json")
DEFAULT_STORE_PATH = "~/.oauth_session/credentials.json"

_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::-(([^}]*))?)?\}")
_UNEXPANDED_PATTERN = re.compile(r"\$\{[^}]+\}")


def load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML file and return dict."""
    if not path.exists():
        return {}
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand ${VAR_NAME} and ${VAR_NAME:-default} environment variables in config data."""
    if isinstance(data, dict):
        return {key: _expand_env_vars(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):

        def replacer(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else match.group(0)
            return os.getenv(var_name, default_value)

        return _ENV_PATTERN.sub(replacer, data)
    else:
        return data


def _as_bool(value: Any) -> bool:
    # bool('false') would be True
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


@dataclass
class SessionSettings:
    """
    Complete settings for one credential session.

    Attributes:
        oauth: Authorization server configuration
        retry: Retry policy for the token endpoint
        identity: Credential store key for this session
        expiration_buffer_ms: Refresh this long before literal expiry
        store_type: "none", "memory" or "json"
        store_path: JSON store location (store_type "json" only)
        log_level: Root log level name
        log_json: Emit JSON lines on the console
        log_file: Optional JSON-lines log file
    """

    oauth: OAuth2Config
    retry: RetryConfig = field(default_factory=RetryConfig)
    identity: str = "default"
    expiration_buffer_ms: int = DEFAULT_EXPIRATION_BUFFER_MS
    store_type: str = "json"
    store_path: str = DEFAULT_STORE_PATH
    log_level: str = "INFO"
    log_json: bool = False
    log_file: str | None = None

    def __post_init__(self):
        """Ensure proper types from YAML/env vars."""
        self.identity = str(self.identity)
        self.expiration_buffer_ms = int(self.expiration_buffer_ms)
        self.store_type = str(self.store_type).strip().lower()
        self.store_path = str(self.store_path)
        self.log_level = str(self.log_level).upper()
        self.log_json = _as_bool(self.log_json)

    def validate(self) -> list[str]:
        """
        Check settings for problems that would only surface at request time.

        Returns:
            List of human-readable problems; empty when valid
        """
        errors = []

        if not self.oauth.client_id or _UNEXPANDED_PATTERN.search(self.oauth.client_id):
            errors.append("oauth.client_id is required")
        if not self.oauth.token_url or _UNEXPANDED_PATTERN.search(self.oauth.token_url):
            errors.append("oauth.token_url is required")
        elif not self.oauth.token_url.startswith(("https://", "http://")):
            errors.append(f"oauth.token_url must be an http(s) URL: {self.oauth.token_url}")
        if self.oauth.client_secret and _UNEXPANDED_PATTERN.search(self.oauth.client_secret):
            errors.append("oauth.client_secret references an unset environment variable")
        if self.oauth.timeout_seconds <= 0:
            errors.append("oauth.timeout_seconds must be positive")

        if self.retry.base_delay < 0 or self.retry.max_delay < 0:
            errors.append("retry delays must be >= 0")

        if not self.identity:
            errors.append("session.identity is required")
        if self.expiration_buffer_ms < 0:
            errors.append("session.expiration_buffer_ms must be >= 0")

        if self.store_type not in STORE_TYPES:
            errors.append(
                f"store.type must be one of {', '.join(STORE_TYPES)}, got {self.store_type!r}"
            )
        elif self.store_type == "json" and not self.store_path:
            errors.append("store.path is required for the json store")

        if not isinstance(logging.getLevelName(self.log_level), int):
            errors.append(f"logging.level is not a valid level: {self.log_level}")

        return errors

    # =========================================================================
    # Builders
    # =========================================================================

    def create_exchange_client(self) -> TokenExchangeClient:
        return TokenExchangeClient(self.oauth, retry_config=self.retry)

    def create_store(self) -> CredentialStore | None:
        if self.store_type == "memory":
            return InMemoryCredentialStore()
        if self.store_type == "json":
            return JsonFileCredentialStore(self.store_path)
        return None

    async def create_session(
        self,
        exchange_client: TokenExchangeClient | None = None,
        credentials: CredentialPair | None = None,
    ) -> Session:
        """
        Build a Session from these settings.

        When credentials are not given and a store is configured, the session
        is seeded from the store.
        """
        client = exchange_client or self.create_exchange_client()
        store = self.create_store()

        if credentials is None and store is not None:
            return await Session.from_store(
                self.identity,
                client,
                store,
                expiration_buffer_ms=self.expiration_buffer_ms,
            )

        return Session(
            self.identity,
            client,
            credentials=credentials,
            store=store,
            expiration_buffer_ms=self.expiration_buffer_ms,
        )


def settings_from_dict(data: dict[str, Any]) -> SessionSettings:
    """Build settings from an already-expanded config mapping."""
    if "oauth" not in data:
        raise ValueError("Invalid config file: missing 'oauth:' section")

    oauth = data.get("oauth") or {}
    retry = data.get("retry") or {}
    session = data.get("session") or {}
    store = data.get("store") or {}
    log = data.get("logging") or {}

    oauth_config = OAuth2Config(
        client_id=str(oauth.get("client_id") or ""),
        token_url=str(oauth.get("token_url") or ""),
        client_secret=oauth.get("client_secret") or None,
        revoke_url=oauth.get("revoke_url") or None,
        scope=oauth.get("scope") or None,
        additional_params=oauth.get("additional_params") or None,
        timeout_seconds=oauth.get("timeout_seconds", 30.0),
        allow_client_credentials=_as_bool(oauth.get("allow_client_credentials", False)),
    )

    try:
        retry_config = RetryConfig(**retry)
    except TypeError as e:
        raise ValueError(f"Invalid retry section: {e}") from e

    return SessionSettings(
        oauth=oauth_config,
        retry=retry_config,
        identity=session.get("identity", "default"),
        expiration_buffer_ms=session.get("expiration_buffer_ms", DEFAULT_EXPIRATION_BUFFER_MS),
        store_type=store.get("type", "json"),
        store_path=store.get("path") or DEFAULT_STORE_PATH,
        log_level=log.get("level", "INFO"),
        log_json=log.get("json_format", False),
        log_file=log.get("log_file") or None,
    )


def load_settings(config_path: Path | str) -> SessionSettings:
    """
    Load and validate session settings from a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is structurally invalid or fails validation
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    logger.info("Loading configuration from file: %s", config_path)
    data = _expand_env_vars(load_yaml(config_path))

    settings = settings_from_dict(data)
    errors = settings.validate()
    if errors:
        raise ValueError("Invalid configuration:\n  - " + "\n  - ".join(errors))

    logger.debug(
        "Configuration loaded",
        extra={"identity": settings.identity, "token_url": settings.oauth.token_url},
    )
    return settings


__all__ = [
    "SessionSettings",
    "load_settings",
    "settings_from_dict",
    "load_yaml",
    "STORE_TYPES",
    "DEFAULT_STORE_PATH",
]
