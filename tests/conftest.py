"""
Pytest configuration and fixtures for token vault tests.
"""

from __future__ import annotations

from typing import Dict, Optional, Tuple

import pytest
from keyring.backend import KeyringBackend
from keyring.errors import KeyringLocked, PasswordDeleteError

from tokenvault import (
    EnvelopeCipher,
    FileMedium,
    InMemoryMedium,
    KeyringMedium,
    SecureKey,
    TokenStore,
)


class DictKeyring(KeyringBackend):
    """Keyring backend keeping passwords in a dict."""

    priority = 1

    def __init__(self) -> None:
        super().__init__()
        self.entries: Dict[Tuple[str, str], str] = {}

    def get_password(self, service: str, username: str) -> Optional[str]:
        return self.entries.get((service, username))

    def set_password(self, service: str, username: str, password: str) -> None:
        self.entries[(service, username)] = password

    def delete_password(self, service: str, username: str) -> None:
        try:
            del self.entries[(service, username)]
        except KeyError:
            raise PasswordDeleteError(username)


class CountingMedium(InMemoryMedium):
    """In-memory medium that counts document writes."""

    def __init__(self, data: Optional[bytes] = None) -> None:
        super().__init__(data)
        self.writes = 0

    def write(self, data: bytes) -> None:
        super().write(data)
        self.writes += 1


class LockedKeyring(KeyringBackend):
    """Keyring backend that refuses every call."""

    priority = 1

    def get_password(self, service: str, username: str) -> Optional[str]:
        raise KeyringLocked("keyring is locked")

    def set_password(self, service: str, username: str, password: str) -> None:
        raise KeyringLocked("keyring is locked")


@pytest.fixture
def key() -> SecureKey:
    """Fixed 32-byte test key."""
    return SecureKey(bytes(range(32)))


@pytest.fixture
def other_key() -> SecureKey:
    """A different 32-byte key."""
    return SecureKey(bytes(range(32, 64)))


@pytest.fixture
def cipher(key: SecureKey) -> EnvelopeCipher:
    return EnvelopeCipher(key)


@pytest.fixture
def memory_medium() -> CountingMedium:
    """Create an in-memory medium that counts writes."""
    return CountingMedium()


@pytest.fixture
def file_medium(tmp_path) -> FileMedium:
    return FileMedium(tmp_path / "vault" / "tokens.json")


@pytest.fixture
def dict_keyring() -> DictKeyring:
    return DictKeyring()


@pytest.fixture
def keyring_medium(dict_keyring: DictKeyring) -> KeyringMedium:
    return KeyringMedium("tokenvault-test", "tokens", backend=dict_keyring)


@pytest.fixture
def store(memory_medium: InMemoryMedium, key: SecureKey) -> TokenStore:
    """Empty store on an in-memory medium."""
    return TokenStore.open(memory_medium, key)


@pytest.fixture
def locked_keyring() -> LockedKeyring:
    return LockedKeyring()
