"""In-process credential store."""

import asyncio

from oauth_session.oauth2.models import CredentialPair
from oauth_session.storage.base import CredentialStore


class InMemoryCredentialStore(CredentialStore):
    """Dict-backed store; contents are lost when the process exits."""

    def __init__(self, initial: dict[str, CredentialPair] | None = None):
        self._pairs: dict[str, CredentialPair] = dict(initial or {})
        self._lock = asyncio.Lock()

    async def read(self, identity: str) -> CredentialPair | None:
        async with self._lock:
            return self._pairs.get(identity)

    async def save(self, identity: str, pair: CredentialPair) -> None:
        async with self._lock:
            self._pairs[identity] = pair

    async def clear(self, identity: str) -> None:
        async with self._lock:
            self._pairs.pop(identity, None)


__all__ = ["InMemoryCredentialStore"]
