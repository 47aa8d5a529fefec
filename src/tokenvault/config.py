"""
Vault configuration.

Settings come from environment variables, optionally loaded from a .env file:

    TOKENVAULT_BACKEND          file | keyring (default: file)
    TOKENVAULT_PATH             document path for the file backend
                                (default: ~/.tokenvault/tokens.json)
    TOKENVAULT_KEYRING_SERVICE  keyring service name (default: tokenvault)
    TOKENVAULT_KEYRING_ACCOUNT  keyring account name (default: tokens)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional

from dotenv import find_dotenv, load_dotenv

from .errors import ConfigError
from .storage import (
    DEFAULT_KEYRING_ACCOUNT,
    DEFAULT_KEYRING_SERVICE,
    BackingMedium,
    FileMedium,
    KeyringMedium,
)

DEFAULT_STORE_PATH = Path("~/.tokenvault/tokens.json")


class Backend(Enum):
    """Kind of backing medium."""

    FILE = "file"
    KEYRING = "keyring"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_str(cls, s: str) -> Backend:
        """Parse from string."""
        try:
            return cls(s.strip().lower())
        except ValueError:
            choices = ", ".join(b.value for b in cls)
            raise ConfigError(f"Invalid backend: {s!r} (expected one of: {choices})")


@dataclass
class VaultSettings:
    """Resolved vault settings."""

    backend: Backend = Backend.FILE
    store_path: Path = field(default_factory=lambda: DEFAULT_STORE_PATH.expanduser())
    keyring_service: str = DEFAULT_KEYRING_SERVICE
    keyring_account: str = DEFAULT_KEYRING_ACCOUNT

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        dotenv_path: Optional[Path] = None,
    ) -> VaultSettings:
        """
        Build settings from the environment.

        When environ is not given, a .env file (dotenv_path, or the nearest one
        found by python-dotenv) is loaded into os.environ first; variables
        already set in the process win.

        Raises:
            ConfigError: If a value is invalid
        """
        if environ is None:
            load_dotenv(dotenv_path or find_dotenv(usecwd=True))
            environ = os.environ

        backend = Backend.from_str(environ.get("TOKENVAULT_BACKEND") or Backend.FILE.value)
        raw_path = environ.get("TOKENVAULT_PATH")
        store_path = Path(raw_path).expanduser() if raw_path else DEFAULT_STORE_PATH.expanduser()
        service = environ.get("TOKENVAULT_KEYRING_SERVICE") or DEFAULT_KEYRING_SERVICE
        account = environ.get("TOKENVAULT_KEYRING_ACCOUNT") or DEFAULT_KEYRING_ACCOUNT

        return cls(
            backend=backend,
            store_path=store_path,
            keyring_service=service,
            keyring_account=account,
        )


def create_medium(settings: VaultSettings) -> BackingMedium:
    """Build the backing medium selected by settings."""
    if settings.backend is Backend.KEYRING:
        return KeyringMedium(settings.keyring_service, settings.keyring_account)
    return FileMedium(settings.store_path)
