"""
Encrypted token store.

This module provides:
- TokenStore: Name -> encrypted value mapping persisted to a BackingMedium

Document format (pretty-printed JSON):

    {"tokens": {"<name>": "<base64(nonce || ciphertext || tag)>"}}

Master key verification:
    The master key is never stored, not even as a hash. A wrong key is
    detected by decrypting one existing envelope (the one with the smallest
    name) before list, delete and export. With a 128-bit tag, a successful
    decryption means the key is the one that wrote the store. An empty store
    cannot be verified and raises EmptyStoreError.

Concurrency:
    The whole document is rewritten on every mutation. Two processes writing
    the same medium are not coordinated; the last writer wins.
"""

from __future__ import annotations

import json
import logging
from typing import Dict, List, Optional, Union

from .crypto import EnvelopeCipher, SecureKey
from .errors import CorruptStoreError, EmptyStoreError
from .storage import BackingMedium

logger = logging.getLogger(__name__)

DOCUMENT_FIELD = "tokens"


class TokenStore:
    """
    Persistent encrypted key-value store.

    Use TokenStore.open() to load an existing document. Values are encrypted
    one by one; names are stored in clear.
    """

    def __init__(
        self,
        medium: BackingMedium,
        cipher: EnvelopeCipher,
        tokens: Optional[Dict[str, str]] = None,
    ) -> None:
        """
        Initialize a store around an already loaded document.

        Args:
            medium: Backing medium the document is persisted to
            cipher: Cipher bound to the master key
            tokens: Name -> envelope mapping (empty if omitted)
        """
        self._medium = medium
        self._cipher = cipher
        self._tokens: Dict[str, str] = dict(tokens or {})

    @classmethod
    def open(
        cls,
        medium: BackingMedium,
        master_key: Union[SecureKey, EnvelopeCipher],
    ) -> TokenStore:
        """
        Load the document from a medium.

        A medium with no document yields an empty store.

        Args:
            medium: Backing medium to load from and persist to
            master_key: Master key, or a cipher already bound to it

        Returns:
            TokenStore instance

        Raises:
            CorruptStoreError: If the persisted document cannot be parsed
            MediumUnavailableError: If the medium cannot be read
        """
        cipher = master_key if isinstance(master_key, EnvelopeCipher) else EnvelopeCipher(master_key)
        raw = medium.read()
        tokens = {} if raw is None else _parse_document(raw)
        logger.debug("Opened %s with %d entries", medium.describe(), len(tokens))
        return cls(medium, cipher, tokens)

    @property
    def medium(self) -> BackingMedium:
        return self._medium

    def put(self, name: str, plaintext: str) -> None:
        """
        Encrypt a value and store it under name, replacing any previous value.

        Raises:
            ValueError: If name is empty
            MediumUnavailableError: If the document cannot be persisted
        """
        if not name:
            raise ValueError("Token name must not be empty")
        self._tokens[name] = self._cipher.encrypt(plaintext)
        self._save()

    def get(self, name: str) -> Optional[str]:
        """
        Decrypt the value stored under name.

        Returns:
            Plaintext, or None if name is not in the store

        Raises:
            AuthenticationError: Wrong master key or tampered envelope
            MalformedEnvelopeError: Stored envelope is not decodable
        """
        envelope = self._tokens.get(name)
        if envelope is None:
            return None
        return self._cipher.decrypt(envelope)

    def list_names(self) -> List[str]:
        """
        Verify the master key, then return all names in sorted order.

        Raises:
            EmptyStoreError: If the store has no entries
            AuthenticationError: If the master key is wrong
        """
        self.verify_master_key()
        return sorted(self._tokens)

    def delete(self, name: str) -> bool:
        """
        Verify the master key, then remove name if present.

        Returns:
            True if name was present and removed

        Raises:
            EmptyStoreError: If the store has no entries
            AuthenticationError: If the master key is wrong
        """
        self.verify_master_key()
        if name not in self._tokens:
            return False
        del self._tokens[name]
        self._save()
        return True

    def export_all(self) -> Dict[str, str]:
        """
        Verify the master key, then decrypt every value.

        Returns:
            Name -> plaintext mapping, ordered by name
        """
        self.verify_master_key()
        return {name: self._cipher.decrypt(self._tokens[name]) for name in sorted(self._tokens)}

    def verify_master_key(self) -> None:
        """
        Check the master key by decrypting the entry with the smallest name.

        Raises:
            EmptyStoreError: If there is nothing to verify against
            AuthenticationError: If the master key is wrong
        """
        if not self._tokens:
            raise EmptyStoreError(
                "Store is empty; add a token before listing, deleting or exporting"
            )
        probe = min(self._tokens)
        self._cipher.decrypt(self._tokens[probe])
        logger.debug("Master key verified against %s", self._medium.describe())

    def close(self) -> None:
        """Wipe the master key. The store cannot encrypt or decrypt afterwards."""
        self._cipher.zeroize()

    def __enter__(self) -> TokenStore:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __len__(self) -> int:
        return len(self._tokens)

    def __contains__(self, name: object) -> bool:
        return name in self._tokens

    def __repr__(self) -> str:
        return f"TokenStore({self._medium.describe()!r}, entries={len(self._tokens)})"

    def _save(self) -> None:
        document = {DOCUMENT_FIELD: self._tokens}
        data = json.dumps(document, indent=2).encode("utf-8")
        self._medium.write(data)
        logger.debug("Persisted %d entries to %s", len(self._tokens), self._medium.describe())


def _parse_document(raw: bytes) -> Dict[str, str]:
    try:
        document = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise CorruptStoreError(f"Store is corrupt, please recreate it: {e}") from e

    if not isinstance(document, dict) or not isinstance(document.get(DOCUMENT_FIELD), dict):
        raise CorruptStoreError(f"Store is corrupt: missing '{DOCUMENT_FIELD}' mapping")

    tokens = document[DOCUMENT_FIELD]
    for name, envelope in tokens.items():
        if not name:
            raise CorruptStoreError("Store is corrupt: entry with an empty name")
        if not isinstance(envelope, str):
            raise CorruptStoreError(f"Store is corrupt: entry {name!r} is not a string")
    return tokens
