"""
Keystore package - Encrypted key storage and account lifecycle.

Contains:
- KeyStore: Account lifecycle, lock/unlock state and signing entry points
- AccountRegistry: Directory-backed index of keyfiles
- EncryptedKeyFile, encode, decode: Web3 Secret Storage v3 codec
- EncryptionN, EncryptionP: Scrypt cost selectors (standard / light / custom)
- Errors: KeyStoreError and its subclasses
"""

from .crypto import (
    EncryptionN,
    EncryptionP,
    derive_key,
    encrypt,
    decrypt,
    encrypt_key,
    decrypt_key,
    wipe,
    STANDARD_SCRYPT_N,
    STANDARD_SCRYPT_P,
    LIGHT_SCRYPT_N,
    LIGHT_SCRYPT_P,
)
from .errors import (
    KeyStoreError,
    AuthenticationFailed,
    MalformedKeyFile,
    UnsupportedVersion,
    StorageError,
    DuplicateAccount,
    AccountNotFound,
    AccountLocked,
    DerivationCancelled,
)
from .keyfile import (
    EncryptedKeyFile,
    CryptoParams,
    KdfParams,
    encode,
    decode,
)
from .manager import KeyStore, UnlockState
from .presale import decrypt_presale_key
from .registry import AccountRegistry

__all__ = [
    # Crypto
    "EncryptionN",
    "EncryptionP",
    "derive_key",
    "encrypt",
    "decrypt",
    "encrypt_key",
    "decrypt_key",
    "wipe",
    "STANDARD_SCRYPT_N",
    "STANDARD_SCRYPT_P",
    "LIGHT_SCRYPT_N",
    "LIGHT_SCRYPT_P",
    # Errors
    "KeyStoreError",
    "AuthenticationFailed",
    "MalformedKeyFile",
    "UnsupportedVersion",
    "StorageError",
    "DuplicateAccount",
    "AccountNotFound",
    "AccountLocked",
    "DerivationCancelled",
    # Codec
    "EncryptedKeyFile",
    "CryptoParams",
    "KdfParams",
    "encode",
    "decode",
    # Manager
    "KeyStore",
    "UnlockState",
    "AccountRegistry",
    "decrypt_presale_key",
]
