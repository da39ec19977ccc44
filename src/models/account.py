"""
Account model.

Defines the identities managed by the keystore:
- Address: 20-byte account identifier derived from a public key
- Account: an address together with the keyfile that backs it
"""

from dataclasses import dataclass
from pathlib import Path

from web3 import Web3


ADDRESS_LENGTH = 20


@dataclass(frozen=True)
class Address:
    """A 20-byte Ethereum address. Equality is by byte value."""
    value: bytes

    def __post_init__(self):
        if not isinstance(self.value, bytes) or len(self.value) != ADDRESS_LENGTH:
            raise ValueError(f"Address must be exactly {ADDRESS_LENGTH} bytes")

    @classmethod
    def from_hex(cls, text: str) -> "Address":
        """
        Build an address from 40 hex characters.

        Accepts an optional 0x prefix. Used when reading keyfiles, which
        store the address without prefix.
        """
        if text.startswith("0x") or text.startswith("0X"):
            text = text[2:]
        if len(text) != ADDRESS_LENGTH * 2:
            raise ValueError(f"Address must be {ADDRESS_LENGTH * 2} hex characters")
        return cls(bytes.fromhex(text))

    def hex(self) -> str:
        """Lowercase hex without 0x prefix (keyfile form)."""
        return self.value.hex()

    @property
    def checksum(self) -> str:
        """EIP-55 mixed-case address with 0x prefix."""
        return Web3.to_checksum_address(self.value)

    def __str__(self) -> str:
        return self.checksum

    def __repr__(self) -> str:
        return f"Address({self.checksum})"


@dataclass(frozen=True)
class Account:
    """An address backed by an encrypted keyfile on disk."""
    address: Address
    path: Path        # Keyfile location, owned by the keystore

    def to_dict(self) -> dict:
        return {"address": self.address.checksum, "path": str(self.path)}
