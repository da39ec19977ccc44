"""
Models package - Data models for the keystore.

Contains:
- Address: 20-byte account identifier
- Account: Address backed by an encrypted keyfile
- Transaction, SignedTransaction: Legacy transactions and their EIP-155 signed form
"""

from .account import Address, Account, ADDRESS_LENGTH
from .transaction import Transaction, SignedTransaction, EIP155_V_OFFSET

__all__ = [
    "Address",
    "Account",
    "ADDRESS_LENGTH",
    "Transaction",
    "SignedTransaction",
    "EIP155_V_OFFSET",
]
