"""
Exception classes for vault operations.

Storage failures and cryptographic failures have separate branches so callers
can tell a broken medium apart from a wrong master secret.
"""

from __future__ import annotations


class VaultError(Exception):
    """Base exception for all vault operations."""

    pass


class CryptoError(VaultError):
    """Cryptographic operation failed (encryption, decryption, key handling)."""

    pass


class MalformedEnvelopeError(CryptoError):
    """Envelope is not valid base64 or is shorter than a nonce."""

    pass


class AuthenticationError(CryptoError):
    """AEAD tag did not verify: wrong master key or tampered envelope."""

    pass


class EncodingError(CryptoError):
    """Decrypted bytes are not valid UTF-8."""

    pass


class StorageError(VaultError):
    """Backing medium or document error."""

    pass


class CorruptStoreError(StorageError):
    """Persisted document could not be parsed."""

    pass


class MediumUnavailableError(StorageError):
    """Backing file or keyring entry could not be read or written."""

    pass


class EmptyStoreError(StorageError):
    """Master key verification was requested on a store with no entries."""

    pass


class ConfigError(VaultError):
    """Configuration error."""

    pass
