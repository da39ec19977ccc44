"""
Keystore Crypto - Key derivation and authenticated key encryption.

Standard Web3 Secret Storage scheme:
- scrypt key derivation (memory-hard), PBKDF2-HMAC-SHA256 accepted on read
- AES-128-CTR encryption of the raw private key
- keccak256 MAC over the second half of the derived key and the ciphertext

Keys never exist unencrypted on disk. Decrypted keys are returned as
bytearrays so callers can wipe them once done.
"""

import hmac
import secrets
import threading
import uuid
from typing import Optional

# Cryptography
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

# Ethereum
from eth_account import Account
from web3 import Web3

from models import Address

from .errors import AuthenticationFailed, DerivationCancelled
from .keyfile import (
    CIPHER_AES_128_CTR,
    KDF_PBKDF2,
    KDF_SCRYPT,
    CryptoParams,
    EncryptedKeyFile,
    KdfParams,
)


# ============================================
# Security Constants
# ============================================

# Scrypt cost presets (fixed, match go-ethereum)
STANDARD_SCRYPT_N = 1 << 18     # 262144
STANDARD_SCRYPT_P = 1
LIGHT_SCRYPT_N = 1 << 12        # 4096
LIGHT_SCRYPT_P = 6

SCRYPT_R = 8
SCRYPT_DKLEN = 32

# AES-CTR constants
AES_KEY_SIZE = 16
AES_IV_SIZE = 16

SALT_SIZE = 32
PRIVATE_KEY_SIZE = 32


# ============================================
# Cost Selectors
# ============================================

class _CostSelector:
    """Standard, Light or Custom(value) cost parameter."""

    STANDARD_VALUE: int
    LIGHT_VALUE: int

    def __init__(self, kind: str, value: int):
        self.kind = kind
        self.value = value

    @classmethod
    def standard(cls):
        return cls("standard", cls.STANDARD_VALUE)

    @classmethod
    def light(cls):
        """Reduced cost for constrained devices. Weaker against brute force."""
        return cls("light", cls.LIGHT_VALUE)

    @classmethod
    def custom(cls, value: int):
        cls._validate(value)
        return cls("custom", value)

    @classmethod
    def _validate(cls, value: int) -> None:
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ValueError(f"{cls.__name__} must be a positive integer")

    def __eq__(self, other):
        if not isinstance(other, type(self)):
            return NotImplemented
        return (self.kind, self.value) == (other.kind, other.value)

    def __hash__(self):
        return hash((type(self).__name__, self.kind, self.value))

    def __repr__(self) -> str:
        if self.kind == "custom":
            return f"{type(self).__name__}.custom({self.value})"
        return f"{type(self).__name__}.{self.kind}()"


class EncryptionN(_CostSelector):
    """Scrypt CPU/memory cost N."""
    STANDARD_VALUE = STANDARD_SCRYPT_N
    LIGHT_VALUE = LIGHT_SCRYPT_N

    @classmethod
    def _validate(cls, value: int) -> None:
        super()._validate(value)
        if value < 2 or value & (value - 1):
            raise ValueError("EncryptionN must be a power of two greater than one")


class EncryptionP(_CostSelector):
    """Scrypt parallelization P."""
    STANDARD_VALUE = STANDARD_SCRYPT_P
    LIGHT_VALUE = LIGHT_SCRYPT_P


# ============================================
# Key Material Helpers
# ============================================

def wipe(buf: Optional[bytearray]) -> None:
    """Overwrite a key buffer with zeros."""
    if buf is None:
        return
    for i in range(len(buf)):
        buf[i] = 0


def generate_private_key() -> bytearray:
    """Generate a fresh secp256k1 private key."""
    while True:
        candidate = bytearray(secrets.token_bytes(PRIVATE_KEY_SIZE))
        try:
            Account.from_key(bytes(candidate))
            return candidate
        except ValueError:
            # Zero or above the curve order; astronomically rare
            wipe(candidate)


def private_key_to_address(private_key: bytes | bytearray) -> Address:
    """
    Derive the account address for a private key.

    Raises: ValueError if the key is not a valid secp256k1 scalar.
    """
    if len(private_key) != PRIVATE_KEY_SIZE:
        raise ValueError(f"Private key must be {PRIVATE_KEY_SIZE} bytes")
    account = Account.from_key(bytes(private_key))
    return Address.from_hex(account.address)


# ============================================
# Key Derivation
# ============================================

def scrypt_params(n: int, p: int, salt: Optional[bytes] = None) -> KdfParams:
    """Fresh scrypt parameters with a random salt."""
    return KdfParams(
        kdf=KDF_SCRYPT,
        dklen=SCRYPT_DKLEN,
        salt=salt if salt is not None else secrets.token_bytes(SALT_SIZE),
        n=n,
        r=SCRYPT_R,
        p=p,
    )


def derive_key(passphrase: str, params: KdfParams,
               cancel: Optional[threading.Event] = None) -> bytearray:
    """
    Derive a symmetric key from a passphrase.

    Scrypt is memory-hard: with standard parameters each guess needs
    ~256MB RAM and takes about a second.

    Args:
        passphrase: User passphrase
        params: KDF parameters from the keyfile
        cancel: Optional event; if set, derivation is abandoned

    Raises:
        DerivationCancelled: cancel was set before or during derivation
    """
    if cancel is not None and cancel.is_set():
        raise DerivationCancelled("Key derivation cancelled")

    secret = passphrase.encode('utf-8')
    if params.kdf == KDF_SCRYPT:
        kdf = Scrypt(salt=params.salt, length=params.dklen,
                     n=params.n, r=params.r, p=params.p)
    elif params.kdf == KDF_PBKDF2:
        kdf = PBKDF2HMAC(algorithm=hashes.SHA256(), length=params.dklen,
                         salt=params.salt, iterations=params.c)
    else:
        raise ValueError(f"Unsupported KDF: {params.kdf}")

    derived = bytearray(kdf.derive(secret))

    if cancel is not None and cancel.is_set():
        wipe(derived)
        raise DerivationCancelled("Key derivation cancelled")
    return derived


# ============================================
# Encryption
# ============================================

def _mac(derived_key: bytes | bytearray, ciphertext: bytes) -> bytes:
    return bytes(Web3.keccak(bytes(derived_key[16:32]) + ciphertext))


def _aes_ctr(key: bytes, iv: bytes, data: bytes) -> bytes:
    ctx = Cipher(algorithms.AES(key), modes.CTR(iv)).encryptor()
    return ctx.update(data) + ctx.finalize()


def encrypt(private_key: bytes | bytearray, derived_key: bytes | bytearray,
            iv: Optional[bytes] = None) -> tuple[bytes, bytes, bytes]:
    """
    Encrypt a private key with a derived key.

    Returns: (ciphertext, iv, mac)
    """
    if len(derived_key) < 32:
        raise ValueError("Derived key must be at least 32 bytes")
    if iv is None:
        iv = secrets.token_bytes(AES_IV_SIZE)
    ciphertext = _aes_ctr(bytes(derived_key[:AES_KEY_SIZE]), iv, bytes(private_key))
    return ciphertext, iv, _mac(derived_key, ciphertext)


def decrypt(ciphertext: bytes, derived_key: bytes | bytearray,
            expected_mac: bytes, iv: bytes) -> bytearray:
    """
    Verify the MAC and decrypt a private key.

    Raises: AuthenticationFailed if the passphrase is wrong or data is tampered.
    """
    if len(derived_key) < 32:
        raise AuthenticationFailed()
    if not hmac.compare_digest(_mac(derived_key, ciphertext), expected_mac):
        raise AuthenticationFailed()
    # CTR decryption is the same keystream XOR
    return bytearray(_aes_ctr(bytes(derived_key[:AES_KEY_SIZE]), iv, ciphertext))


# ============================================
# Keyfile Encryption
# ============================================

def encrypt_key(private_key: bytes | bytearray, passphrase: str,
                n: int = STANDARD_SCRYPT_N, p: int = STANDARD_SCRYPT_P,
                cancel: Optional[threading.Event] = None) -> EncryptedKeyFile:
    """Encrypt a private key into a new keyfile with a fresh salt and IV."""
    address = private_key_to_address(private_key)
    params = scrypt_params(n, p)
    derived = derive_key(passphrase, params, cancel)
    try:
        ciphertext, iv, mac = encrypt(private_key, derived)
    finally:
        wipe(derived)

    return EncryptedKeyFile(
        address=address,
        crypto=CryptoParams(
            cipher=CIPHER_AES_128_CTR,
            iv=iv,
            ciphertext=ciphertext,
            kdfparams=params,
            mac=mac,
        ),
        id=str(uuid.uuid4()),
    )


def decrypt_key(keyfile: EncryptedKeyFile, passphrase: str,
                cancel: Optional[threading.Event] = None) -> bytearray:
    """
    Decrypt the private key held in a keyfile.

    Raises:
        AuthenticationFailed: Wrong passphrase, tampered file, or the key
            does not belong to the keyfile's address
    """
    crypto = keyfile.crypto
    derived = derive_key(passphrase, crypto.kdfparams, cancel)
    try:
        key = decrypt(crypto.ciphertext, derived, crypto.mac, crypto.iv)
    finally:
        wipe(derived)

    try:
        address = private_key_to_address(key)
    except ValueError as e:
        wipe(key)
        raise AuthenticationFailed() from e
    if address != keyfile.address:
        wipe(key)
        raise AuthenticationFailed()
    return key
