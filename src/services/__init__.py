"""
Services package - Signing and logging for the keystore.

Contains:
- Signature: Recoverable ECDSA signature
- sign_hash, sign_transaction, recover_address: Stateless signer
- configure_logging: Logging setup
"""

from .signing import (
    Signature,
    sign_hash,
    sign_transaction,
    recover_address,
    validate_chain_id,
)
from .logging import configure_logging, cleanup_old_logs

__all__ = [
    "Signature",
    "sign_hash",
    "sign_transaction",
    "recover_address",
    "validate_chain_id",
    "configure_logging",
    "cleanup_old_logs",
]
