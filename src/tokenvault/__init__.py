"""
Token Vault

Stores named secrets (access tokens and the like) on the local machine,
encrypted with AES-256-GCM under a key derived from a master secret.

Quick Start
-----------
```python
from tokenvault import EnvelopeCipher, FileMedium, TokenStore

cipher = EnvelopeCipher.from_master_secret("correct horse battery staple")
with TokenStore.open(FileMedium("~/.tokenvault/tokens.json"), cipher) as store:
    store.put("GITHUB_TOKEN", "ghp_...")
    print(store.get("GITHUB_TOKEN"))
    print(store.list_names())
```

Key Features
------------
- **AES-256-GCM**: One authenticated envelope per secret, fresh nonce each time
- **Keyless verification**: Wrong master keys are detected by decrypting an
  existing entry, so no key hash is ever stored
- **Pluggable media**: JSON file, OS keyring entry, or in-memory for tests
- **Memory Security**: Master key zeroized on close
"""

__version__ = "0.1.0"

# =============================================================================
# Crypto Exports
# =============================================================================

from .crypto import (
    AES_256_KEY_SIZE,
    NONCE_SIZE,
    TAG_SIZE,
    AesGcmCipher,
    EncryptedData,
    EnvelopeCipher,
    SecureKey,
    derive_master_key,
)

# =============================================================================
# Error Exports
# =============================================================================

from .errors import (
    AuthenticationError,
    ConfigError,
    CorruptStoreError,
    CryptoError,
    EmptyStoreError,
    EncodingError,
    MalformedEnvelopeError,
    MediumUnavailableError,
    StorageError,
    VaultError,
)

# =============================================================================
# Storage Exports
# =============================================================================

from .storage import (
    BackingMedium,
    FileMedium,
    InMemoryMedium,
    KeyringMedium,
)
from .store import TokenStore

# =============================================================================
# Config Exports
# =============================================================================

from .config import Backend, VaultSettings, create_medium

# =============================================================================
# Public API
# =============================================================================

__all__ = [
    # Version
    "__version__",
    # Crypto
    "AES_256_KEY_SIZE",
    "NONCE_SIZE",
    "TAG_SIZE",
    "AesGcmCipher",
    "EncryptedData",
    "EnvelopeCipher",
    "SecureKey",
    "derive_master_key",
    # Errors
    "VaultError",
    "CryptoError",
    "MalformedEnvelopeError",
    "AuthenticationError",
    "EncodingError",
    "StorageError",
    "CorruptStoreError",
    "MediumUnavailableError",
    "EmptyStoreError",
    "ConfigError",
    # Storage
    "BackingMedium",
    "FileMedium",
    "InMemoryMedium",
    "KeyringMedium",
    "TokenStore",
    # Config
    "Backend",
    "VaultSettings",
    "create_medium",
]
