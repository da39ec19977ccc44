"""
Signing Service - ECDSA signatures over hashes and transactions.

Stateless: callers hand in a decrypted private key and are responsible for
wiping it afterwards. The keystore is the only caller that holds keys.
"""

import logging
from dataclasses import dataclass

from eth_keys import keys

from models import Address, SignedTransaction, Transaction, EIP155_V_OFFSET
from networks import get_network

logger = logging.getLogger(__name__)

HASH_LENGTH = 32
SIGNATURE_LENGTH = 65


@dataclass(frozen=True)
class Signature:
    """Recoverable secp256k1 signature. v is the 0/1 recovery id."""
    v: int
    r: int
    s: int

    def to_bytes(self) -> bytes:
        """65-byte r || s || v encoding."""
        return self.r.to_bytes(32, "big") + self.s.to_bytes(32, "big") + bytes([self.v])

    @classmethod
    def from_bytes(cls, data: bytes) -> "Signature":
        if len(data) != SIGNATURE_LENGTH:
            raise ValueError(f"Signature must be {SIGNATURE_LENGTH} bytes")
        v = data[64]
        # Accept the 27/28 convention used by personal_sign
        if v >= 27:
            v -= 27
        return cls(
            v=v,
            r=int.from_bytes(data[:32], "big"),
            s=int.from_bytes(data[32:64], "big"),
        )

    def hex(self) -> str:
        return "0x" + self.to_bytes().hex()


def _check_hash(msg_hash: bytes) -> None:
    if len(msg_hash) != HASH_LENGTH:
        raise ValueError(f"Hash is required to be exactly {HASH_LENGTH} bytes ({len(msg_hash)})")


def validate_chain_id(chain_id: int) -> int:
    """Chain IDs are positive integers."""
    if isinstance(chain_id, bool) or not isinstance(chain_id, int) or chain_id <= 0:
        raise ValueError(f"Invalid chain ID: {chain_id!r}")
    return chain_id


def sign_hash(private_key: bytes | bytearray, msg_hash: bytes) -> Signature:
    """
    Sign a 32-byte hash.

    Args:
        private_key: Raw 32-byte private key
        msg_hash: Hash to sign (no further hashing is applied)

    Returns:
        Signature with recovery id
    """
    _check_hash(msg_hash)
    signature = keys.PrivateKey(bytes(private_key)).sign_msg_hash(bytes(msg_hash))
    return Signature(v=signature.v, r=signature.r, s=signature.s)


def recover_address(msg_hash: bytes, signature: Signature) -> Address:
    """Recover the signer's address from a hash and signature."""
    _check_hash(msg_hash)
    sig = keys.Signature(vrs=(signature.v, signature.r, signature.s))
    public_key = sig.recover_public_key_from_msg_hash(bytes(msg_hash))
    return Address(public_key.to_canonical_address())


def sign_transaction(private_key: bytes | bytearray, tx: Transaction,
                     chain_id: int) -> SignedTransaction:
    """
    Sign a legacy transaction with EIP-155 replay protection.

    The chain ID is mixed into the signed payload and into v, so the same
    transaction signed for two chains yields two mutually invalid signatures.
    """
    validate_chain_id(chain_id)
    signature = sign_hash(private_key, tx.signing_hash(chain_id))

    network = get_network(chain_id)
    logger.debug(
        f"Signed transaction nonce={tx.nonce} for "
        f"{network.display_name if network else f'chain {chain_id}'}"
    )

    return SignedTransaction(
        transaction=tx,
        v=signature.v + chain_id * 2 + EIP155_V_OFFSET,
        r=signature.r,
        s=signature.s,
    )
