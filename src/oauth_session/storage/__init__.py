"""
Credential persistence.

Components:
    - CredentialStore: async read/save/clear interface keyed by identity
    - InMemoryCredentialStore: process-local dict
    - JsonFileCredentialStore: atomic JSON file on local disk
"""

from oauth_session.storage.base import CredentialStore
from oauth_session.storage.json_file import JsonFileCredentialStore
from oauth_session.storage.memory import InMemoryCredentialStore

__all__ = [
    "CredentialStore",
    "InMemoryCredentialStore",
    "JsonFileCredentialStore",
]
