"""
Cryptographic primitives for the token vault.

This module provides:
- SecureKey: Secure key wrapper with zeroization
- EncryptedData: Encrypted payload with nonce and ciphertext
- AesGcmCipher: AES-256-GCM encryption/decryption of raw bytes
- EnvelopeCipher: Text-in, base64-envelope-out cipher bound to one master key
- derive_master_key: Master secret -> 32-byte key

Envelope format: base64(nonce(12) || ciphertext || tag(16)).

Security Note:
    Never log plaintext, envelopes or key material.
"""

from __future__ import annotations

import base64
import binascii
import secrets
from dataclasses import dataclass
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import AuthenticationError, CryptoError, EncodingError, MalformedEnvelopeError

# Cryptographic constants
AES_256_KEY_SIZE: int = 32  # 256 bits
NONCE_SIZE: int = 12  # 96 bits (standard for AES-GCM)
TAG_SIZE: int = 16  # 128 bits (authentication tag)


class SecureKey:
    """
    Secure key wrapper with memory cleanup.

    Uses bytearray internally so the key can be zeroed in place, either
    explicitly through zeroize() or best-effort in __del__.
    """

    __slots__ = ("_bytes",)

    def __init__(self, key_bytes: bytes | bytearray) -> None:
        """
        Create a SecureKey from raw bytes.

        Args:
            key_bytes: Raw key material (should be 32 bytes for AES-256)
        """
        if not isinstance(key_bytes, (bytes, bytearray)):
            raise CryptoError("Key must be bytes or bytearray")
        self._bytes = bytearray(key_bytes)

    @classmethod
    def generate(cls) -> SecureKey:
        """Generate a cryptographically secure random 32-byte key."""
        return cls(secrets.token_bytes(AES_256_KEY_SIZE))

    def as_bytes(self) -> bytes:
        """Return key as immutable bytes."""
        return bytes(self._bytes)

    def zeroize(self) -> None:
        """Overwrite the key with zeros and drop it. The key is unusable afterwards."""
        for i in range(len(self._bytes)):
            self._bytes[i] = 0
        del self._bytes[:]

    @property
    def is_zeroized(self) -> bool:
        return len(self._bytes) == 0

    def __len__(self) -> int:
        """Return key length in bytes."""
        return len(self._bytes)

    def __repr__(self) -> str:
        """Redacted representation to prevent accidental key disclosure."""
        return "SecureKey([REDACTED])"

    def __del__(self) -> None:
        """Zero memory on deletion (best-effort)."""
        if hasattr(self, "_bytes"):
            self.zeroize()


def derive_master_key(master_secret: str) -> SecureKey:
    """
    Derive the 32-byte master key from a user-entered master secret.

    The key is SHA-256 over the UTF-8 bytes of the secret, with no salt and
    no stretching. This matches documents written by earlier releases; it
    gives no brute-force resistance beyond the cost of one hash.

    Args:
        master_secret: Secret typed by the user

    Returns:
        SecureKey holding the derived key

    Raises:
        ValueError: If the master secret is empty
        EncodingError: If the secret cannot be encoded as UTF-8
    """
    if not master_secret:
        raise ValueError("Master secret must not be empty")
    try:
        data = master_secret.encode("utf-8")
    except UnicodeEncodeError as e:
        raise EncodingError(f"Master secret is not valid text: {e}") from e

    digest = hashes.Hash(hashes.SHA256())
    digest.update(data)
    return SecureKey(digest.finalize())


@dataclass(frozen=True)
class EncryptedData:
    """
    Encrypted data container with nonce and ciphertext.

    The ciphertext includes the 16-byte authentication tag appended by AESGCM.
    """

    nonce: bytes  # 12 bytes
    ciphertext: bytes  # Ciphertext + 16-byte auth tag

    def to_aead_blob(self) -> bytes:
        """Convert to AEAD blob format: nonce || ciphertext || tag."""
        return self.nonce + self.ciphertext

    @classmethod
    def from_aead_blob(cls, blob: bytes) -> EncryptedData:
        """
        Parse from AEAD blob format: nonce || ciphertext || tag.

        Only the nonce length is checked here. A blob too short to carry a
        tag is rejected by the cipher as an authentication failure.

        Raises:
            MalformedEnvelopeError: If blob is shorter than a nonce
        """
        if len(blob) < NONCE_SIZE:
            raise MalformedEnvelopeError(
                f"Envelope too small: expected at least {NONCE_SIZE} bytes, got {len(blob)}"
            )
        return cls(nonce=blob[:NONCE_SIZE], ciphertext=blob[NONCE_SIZE:])

    def to_base64(self) -> str:
        """Encode as base64 string."""
        return base64.standard_b64encode(self.to_aead_blob()).decode("ascii")

    @classmethod
    def from_base64(cls, encoded: str) -> EncryptedData:
        """
        Decode from base64 string.

        Args:
            encoded: Base64-encoded AEAD blob

        Returns:
            EncryptedData instance

        Raises:
            MalformedEnvelopeError: If decoding fails, the encoding is not
                canonical, or data is too short
        """
        try:
            decoded = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError, TypeError) as e:
            raise MalformedEnvelopeError(f"Base64 decode error: {e}") from e

        # Unused trailing bits must be zero, or two strings map to one blob
        if base64.standard_b64encode(decoded).decode("ascii") != encoded:
            raise MalformedEnvelopeError("Base64 decode error: non-canonical base64")

        return cls.from_aead_blob(decoded)


class AesGcmCipher:
    """
    AES-256-GCM authenticated encryption.

    Provides static methods for encryption and decryption with optional
    Additional Authenticated Data (AAD) for binding.
    """

    @staticmethod
    def encrypt(
        key: SecureKey,
        plaintext: bytes,
        aad: Optional[bytes] = None,
    ) -> EncryptedData:
        """
        Encrypt plaintext with AES-256-GCM under a fresh random nonce.

        Raises:
            CryptoError: If key size is invalid or encryption fails
        """
        _check_key(key)

        nonce = secrets.token_bytes(NONCE_SIZE)
        aesgcm = AESGCM(key.as_bytes())

        try:
            ciphertext = aesgcm.encrypt(nonce, plaintext, aad)
        except (OverflowError, TypeError, ValueError) as e:
            raise CryptoError(f"Encryption error: {e}") from e

        return EncryptedData(nonce=nonce, ciphertext=ciphertext)

    @staticmethod
    def decrypt(
        key: SecureKey,
        encrypted: EncryptedData,
        aad: Optional[bytes] = None,
    ) -> bytes:
        """
        Decrypt ciphertext with AES-256-GCM.

        Raises:
            CryptoError: If key or nonce size is invalid
            AuthenticationError: If the tag does not verify
        """
        _check_key(key)

        if len(encrypted.nonce) != NONCE_SIZE:
            raise MalformedEnvelopeError(
                f"Invalid nonce size: expected {NONCE_SIZE}, got {len(encrypted.nonce)}"
            )

        aesgcm = AESGCM(key.as_bytes())

        try:
            return aesgcm.decrypt(encrypted.nonce, encrypted.ciphertext, aad)
        except InvalidTag as e:
            # Same message for wrong key and tampering
            raise AuthenticationError("Decryption failed") from e


class EnvelopeCipher:
    """
    Encrypts and decrypts text values under one master key.

    Every envelope gets its own random nonce, so encrypting the same value
    twice yields two different envelopes.
    """

    def __init__(self, key: SecureKey) -> None:
        _check_key(key)
        self._key = key

    @classmethod
    def from_master_secret(cls, master_secret: str) -> EnvelopeCipher:
        """Derive the master key from a secret and bind a cipher to it."""
        return cls(derive_master_key(master_secret))

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt a text value into a base64 envelope.

        Raises:
            EncodingError: If plaintext cannot be encoded as UTF-8
        """
        try:
            data = plaintext.encode("utf-8")
        except UnicodeEncodeError as e:
            raise EncodingError(f"Value is not valid text: {e}") from e
        return AesGcmCipher.encrypt(self._key, data).to_base64()

    def decrypt(self, envelope: str) -> str:
        """
        Decrypt a base64 envelope back into text.

        Raises:
            MalformedEnvelopeError: Envelope is not base64 or shorter than a nonce
            AuthenticationError: Wrong key or tampered envelope
            EncodingError: Decrypted bytes are not UTF-8
        """
        encrypted = EncryptedData.from_base64(envelope)
        data = AesGcmCipher.decrypt(self._key, encrypted)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise EncodingError(f"Decrypted value is not valid UTF-8: {e}") from e

    def zeroize(self) -> None:
        """Wipe the bound key. Further use raises CryptoError."""
        self._key.zeroize()

    def __repr__(self) -> str:
        return "EnvelopeCipher(key=[REDACTED])"


def _check_key(key: SecureKey) -> None:
    if len(key) != AES_256_KEY_SIZE:
        raise CryptoError(
            f"Invalid key size: expected {AES_256_KEY_SIZE}, got {len(key)}"
        )
