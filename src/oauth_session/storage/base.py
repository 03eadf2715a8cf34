"""Credential store interface."""

from abc import ABC, abstractmethod

from oauth_session.oauth2.models import CredentialPair


class CredentialStore(ABC):
    """
    Abstract base class for durable credential persistence.

    Records are keyed by session identity. Implementations only need to be
    safe for sequential writes per identity; a Session never issues two
    concurrent writes for the same identity.
    """

    @abstractmethod
    async def read(self, identity: str) -> CredentialPair | None:
        """
        Read the stored pair for an identity.

        Returns:
            CredentialPair, or None if nothing is stored
        """
        pass

    @abstractmethod
    async def save(self, identity: str, pair: CredentialPair) -> None:
        """Persist a pair, replacing any existing record."""
        pass

    @abstractmethod
    async def clear(self, identity: str) -> None:
        """Remove the record for an identity. Missing records are not an error."""
        pass

    async def close(self) -> None:
        """Release resources held by the store."""


__all__ = ["CredentialStore"]
