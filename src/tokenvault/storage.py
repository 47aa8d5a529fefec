"""
Backing media for the token document.

This module provides:
- BackingMedium: Abstract interface for document storage backends
- InMemoryMedium: In-memory implementation for testing
- FileMedium: JSON document in a file on disk
- KeyringMedium: JSON document stored as the password of one OS keyring entry

A medium stores one opaque document. It knows nothing about its contents;
parsing and encryption belong to TokenStore.
"""

from __future__ import annotations

import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import keyring
from keyring.backend import KeyringBackend
from keyring.errors import KeyringError

from .errors import MediumUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_KEYRING_SERVICE = "tokenvault"
DEFAULT_KEYRING_ACCOUNT = "tokens"


class BackingMedium(ABC):
    """
    Abstract storage interface for the serialized document.

    read() returns None when no document has been written yet. Both methods
    raise MediumUnavailableError when the medium cannot be reached.
    """

    @abstractmethod
    def read(self) -> Optional[bytes]:
        """Read the whole document, or None if there is none."""
        ...

    @abstractmethod
    def write(self, data: bytes) -> None:
        """Replace the whole document."""
        ...

    @abstractmethod
    def describe(self) -> str:
        """Human-readable location, safe to log."""
        ...


class InMemoryMedium(BackingMedium):
    """In-memory medium for testing."""

    def __init__(self, data: Optional[bytes] = None) -> None:
        self._data = data

    def read(self) -> Optional[bytes]:
        return self._data

    def write(self, data: bytes) -> None:
        self._data = bytes(data)

    def describe(self) -> str:
        return "memory"


class FileMedium(BackingMedium):
    """
    Document stored in a single file.

    Writes go to a temporary file in the same directory which then replaces
    the target, so readers see either the old or the new document. The file
    is created with owner-only permissions.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> Optional[bytes]:
        try:
            return self._path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise MediumUnavailableError(f"Cannot read {self._path}: {e}") from e

    def write(self, data: bytes) -> None:
        directory = self._path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True, mode=0o700)
            fd, tmp_name = tempfile.mkstemp(
                dir=directory, prefix=f".{self._path.name}.", suffix=".tmp"
            )
        except OSError as e:
            raise MediumUnavailableError(f"Cannot write {self._path}: {e}") from e

        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self._path)
        except OSError as e:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise MediumUnavailableError(f"Cannot write {self._path}: {e}") from e

        logger.debug("Wrote %d bytes to %s", len(data), self._path)

    def describe(self) -> str:
        return str(self._path)

    def __repr__(self) -> str:
        return f"FileMedium({str(self._path)!r})"


class KeyringMedium(BackingMedium):
    """
    Document stored as the password of one OS keyring entry.

    The keyring backend is passed in explicitly; when omitted, the backend
    keyring would pick for this platform is resolved once at construction.
    """

    def __init__(
        self,
        service: str = DEFAULT_KEYRING_SERVICE,
        account: str = DEFAULT_KEYRING_ACCOUNT,
        backend: Optional[KeyringBackend] = None,
    ) -> None:
        self._service = service
        self._account = account
        self._backend = backend if backend is not None else keyring.get_keyring()

    @property
    def backend(self) -> KeyringBackend:
        return self._backend

    def read(self) -> Optional[bytes]:
        try:
            password = self._backend.get_password(self._service, self._account)
        except KeyringError as e:
            raise MediumUnavailableError(f"Cannot read keyring entry {self.describe()}: {e}") from e
        if password is None or password == "":
            return None
        return password.encode("utf-8")

    def write(self, data: bytes) -> None:
        try:
            self._backend.set_password(self._service, self._account, data.decode("utf-8"))
        except KeyringError as e:
            raise MediumUnavailableError(f"Cannot write keyring entry {self.describe()}: {e}") from e
        logger.debug("Wrote %d bytes to keyring entry %s", len(data), self.describe())

    def describe(self) -> str:
        return f"keyring:{self._service}/{self._account}"

    def __repr__(self) -> str:
        return f"KeyringMedium({self._service!r}, {self._account!r})"
