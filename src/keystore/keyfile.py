"""
KeyFile Codec - Encrypted keyfile (Web3 Secret Storage v3) serialization.

Structural encode/decode only: no key derivation or decryption happens
here, so later stages can assume well-formed input.

File layout:
    {
      "address": "<40 hex>",
      "crypto": {
        "cipher": "aes-128-ctr",
        "ciphertext": "<hex>",
        "cipherparams": {"iv": "<hex>"},
        "kdf": "scrypt" | "pbkdf2",
        "kdfparams": {...},
        "mac": "<hex>"
      },
      "id": "<uuid4>",
      "version": 3
    }
"""

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from models import Address

from .errors import MalformedKeyFile, UnsupportedVersion


KEYFILE_VERSION = 3

CIPHER_AES_128_CTR = "aes-128-ctr"
KDF_SCRYPT = "scrypt"
KDF_PBKDF2 = "pbkdf2"
PBKDF2_PRF = "hmac-sha256"

# AES-128 key (16 bytes) + MAC key (16 bytes)
MIN_DKLEN = 32

SUPPORTED_CIPHERS = (CIPHER_AES_128_CTR,)
SUPPORTED_KDFS = (KDF_SCRYPT, KDF_PBKDF2)


# ============================================
# Data Classes
# ============================================

@dataclass(frozen=True)
class KdfParams:
    """Key derivation parameters. Scrypt uses n/r/p, PBKDF2 uses c/prf."""
    kdf: str
    dklen: int
    salt: bytes
    n: Optional[int] = None
    r: Optional[int] = None
    p: Optional[int] = None
    c: Optional[int] = None
    prf: Optional[str] = None

    def to_dict(self) -> dict:
        if self.kdf == KDF_SCRYPT:
            return {
                "dklen": self.dklen,
                "n": self.n,
                "p": self.p,
                "r": self.r,
                "salt": self.salt.hex(),
            }
        return {
            "c": self.c,
            "dklen": self.dklen,
            "prf": self.prf,
            "salt": self.salt.hex(),
        }


@dataclass(frozen=True)
class CryptoParams:
    """The "crypto" section of a keyfile."""
    cipher: str
    iv: bytes
    ciphertext: bytes
    kdfparams: KdfParams
    mac: bytes

    @property
    def kdf(self) -> str:
        return self.kdfparams.kdf

    def to_dict(self) -> dict:
        return {
            "cipher": self.cipher,
            "ciphertext": self.ciphertext.hex(),
            "cipherparams": {"iv": self.iv.hex()},
            "kdf": self.kdf,
            "kdfparams": self.kdfparams.to_dict(),
            "mac": self.mac.hex(),
        }


@dataclass(frozen=True)
class EncryptedKeyFile:
    """A parsed, still-encrypted keyfile. id is None when the file has none."""
    address: Address
    crypto: CryptoParams
    id: Optional[str]
    version: int = KEYFILE_VERSION

    def to_dict(self) -> dict:
        d = {
            "address": self.address.hex(),
            "crypto": self.crypto.to_dict(),
        }
        if self.id is not None:
            d["id"] = self.id
        d["version"] = self.version
        return d


# ============================================
# Encode / Decode
# ============================================

def encode(keyfile: EncryptedKeyFile) -> bytes:
    """Serialize to compact JSON in the standard field order."""
    return json.dumps(keyfile.to_dict(), separators=(',', ':')).encode('utf-8')


def decode(data: bytes | str) -> EncryptedKeyFile:
    """
    Parse keyfile JSON without decrypting it.

    Raises:
        MalformedKeyFile: Invalid JSON, missing fields or wrong types
        UnsupportedVersion: version is not 3
    """
    try:
        obj = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedKeyFile("Keyfile is not valid JSON") from e

    if not isinstance(obj, dict):
        raise MalformedKeyFile("Keyfile must be a JSON object")

    version = obj.get("version")
    if isinstance(version, bool) or not isinstance(version, int):
        raise MalformedKeyFile("Keyfile field 'version' must be an integer")
    if version != KEYFILE_VERSION:
        raise UnsupportedVersion(version)

    # Some tools write "Crypto" instead of "crypto"
    crypto = obj.get("crypto", obj.get("Crypto"))
    if not isinstance(crypto, dict):
        raise MalformedKeyFile("Keyfile field 'crypto' must be an object")

    try:
        address = Address.from_hex(_require(obj, "address", str))
    except ValueError as e:
        raise MalformedKeyFile("Keyfile field 'address' is not a valid address") from e

    return EncryptedKeyFile(
        address=address,
        crypto=_decode_crypto(crypto),
        id=_optional_str(obj, "id"),
        version=version,
    )


def _decode_crypto(crypto: dict) -> CryptoParams:
    cipher = _require(crypto, "cipher", str)
    if cipher not in SUPPORTED_CIPHERS:
        raise MalformedKeyFile(f"Unsupported cipher: {cipher}")

    cipherparams = _require(crypto, "cipherparams", dict)
    iv = _hex_field(cipherparams, "iv")
    if len(iv) != 16:
        raise MalformedKeyFile("Cipher IV must be 16 bytes")

    return CryptoParams(
        cipher=cipher,
        iv=iv,
        ciphertext=_hex_field(crypto, "ciphertext"),
        kdfparams=_decode_kdfparams(
            _require(crypto, "kdf", str),
            _require(crypto, "kdfparams", dict),
        ),
        mac=_hex_field(crypto, "mac"),
    )


def _decode_kdfparams(kdf: str, params: dict) -> KdfParams:
    dklen = _positive_int(params, "dklen")
    if dklen < MIN_DKLEN:
        raise MalformedKeyFile(f"KDF dklen must be at least {MIN_DKLEN}")

    if kdf == KDF_SCRYPT:
        n = _positive_int(params, "n")
        if n < 2 or n & (n - 1):
            raise MalformedKeyFile("Scrypt n must be a power of two greater than one")
        return KdfParams(
            kdf=kdf,
            dklen=dklen,
            salt=_hex_field(params, "salt"),
            n=n,
            r=_positive_int(params, "r"),
            p=_positive_int(params, "p"),
        )
    if kdf == KDF_PBKDF2:
        prf = _require(params, "prf", str)
        if prf != PBKDF2_PRF:
            raise MalformedKeyFile(f"Unsupported PBKDF2 PRF: {prf}")
        return KdfParams(
            kdf=kdf,
            dklen=dklen,
            salt=_hex_field(params, "salt"),
            c=_positive_int(params, "c"),
            prf=prf,
        )
    raise MalformedKeyFile(f"Unsupported KDF: {kdf}")


def _require(obj: dict, name: str, kind: type):
    value = obj.get(name)
    if isinstance(value, bool) or not isinstance(value, kind):
        raise MalformedKeyFile(f"Keyfile field '{name}' is missing or not {kind.__name__}")
    return value


def _optional_str(obj: dict, name: str) -> Optional[str]:
    if name not in obj:
        return None
    return _require(obj, name, str)


def _positive_int(obj: dict, name: str) -> int:
    value = _require(obj, name, int)
    if value <= 0:
        raise MalformedKeyFile(f"Keyfile field '{name}' must be positive")
    return value


def _hex_field(obj: dict, name: str) -> bytes:
    text = _require(obj, name, str)
    if text.startswith("0x"):
        text = text[2:]
    try:
        return bytes.fromhex(text)
    except ValueError as e:
        raise MalformedKeyFile(f"Keyfile field '{name}' is not valid hex") from e


# ============================================
# File Naming
# ============================================

def keyfile_name(address: Address, when: Optional[datetime] = None) -> str:
    """
    Standard keyfile name: UTC--2017-07-21T10-04-05.123456000Z--<address>.

    Unique per address and sortable by creation time.
    """
    if when is None:
        when = datetime.now(timezone.utc)
    stamp = when.strftime('%Y-%m-%dT%H-%M-%S')
    return f"UTC--{stamp}.{when.microsecond * 1000:09d}Z--{address.hex()}"
