"""
Transaction model.

Legacy (pre EIP-2718) Ethereum transactions and their signed form.

Signing lifecycle:
- Transaction: unsigned fields supplied by the caller
- SignedTransaction: the same fields plus (v, r, s), where v carries
  the chain ID per EIP-155 (v = recovery_id + chain_id * 2 + 35)
"""

from dataclasses import dataclass, field
from typing import Optional

import rlp
from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError
from web3 import Web3

from .account import Address


# EIP-155 offset added to the recovery id
EIP155_V_OFFSET = 35


@dataclass(frozen=True)
class Transaction:
    """An unsigned legacy transaction."""
    nonce: int
    gas_price: int                    # Wei per unit of gas
    gas: int                          # Gas limit
    to: Optional[Address]             # None for contract creation
    value: int                        # Wei
    data: bytes = field(default=b"")

    def __post_init__(self):
        for name in ("nonce", "gas_price", "gas", "value"):
            if getattr(self, name) < 0:
                raise ValueError(f"Transaction {name} must not be negative")

    def _fields(self) -> list:
        to = self.to.value if self.to is not None else b""
        return [self.nonce, self.gas_price, self.gas, to, self.value, self.data]

    def signing_payload(self, chain_id: int) -> bytes:
        """RLP payload hashed for signing, bound to chain_id (EIP-155)."""
        return rlp.encode(self._fields() + [chain_id, 0, 0])

    def signing_hash(self, chain_id: int) -> bytes:
        """32-byte keccak hash of the chain-bound signing payload."""
        return bytes(Web3.keccak(self.signing_payload(chain_id)))

    def to_dict(self) -> dict:
        return {
            "nonce": self.nonce,
            "gasPrice": self.gas_price,
            "gas": self.gas,
            "to": self.to.checksum if self.to is not None else None,
            "value": self.value,
            "data": "0x" + self.data.hex(),
        }


@dataclass(frozen=True)
class SignedTransaction:
    """A legacy transaction with EIP-155 signature fields populated."""
    transaction: Transaction
    v: int
    r: int
    s: int

    @property
    def chain_id(self) -> int:
        """Chain ID encoded in v."""
        return (self.v - EIP155_V_OFFSET) // 2

    @property
    def recovery_id(self) -> int:
        return (self.v - EIP155_V_OFFSET) % 2

    @property
    def raw(self) -> bytes:
        """RLP encoding ready for broadcast."""
        return rlp.encode(self.transaction._fields() + [self.v, self.r, self.s])

    @property
    def hash(self) -> bytes:
        """Transaction hash (keccak of the raw encoding)."""
        return bytes(Web3.keccak(self.raw))

    def sender(self) -> Address:
        """Recover the signing address using the chain ID carried in v."""
        signature = keys.Signature(vrs=(self.recovery_id, self.r, self.s))
        public_key = signature.recover_public_key_from_msg_hash(
            self.transaction.signing_hash(self.chain_id)
        )
        return Address(public_key.to_canonical_address())

    def verify(self, address: Address, chain_id: int) -> bool:
        """
        Check that this transaction was signed by address for chain_id.

        A signature made for another chain never verifies: the chain ID is
        part of both v and the signed hash.
        """
        if self.v < EIP155_V_OFFSET or self.chain_id != chain_id:
            return False
        try:
            return self.sender() == address
        except (BadSignature, ValidationError):
            return False

    def to_dict(self) -> dict:
        d = self.transaction.to_dict()
        d.update({
            "chainId": self.chain_id,
            "v": self.v,
            "r": hex(self.r),
            "s": hex(self.s),
            "hash": "0x" + self.hash.hex(),
            "raw": "0x" + self.raw.hex(),
        })
        return d
