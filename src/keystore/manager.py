"""
KeyStore - Account lifecycle and unlock state for a keystore directory.

Each address is in one of three states:

    LOCKED --unlock()--------> UNLOCKED
    LOCKED --timed_unlock()--> TIMED_UNLOCKED(expiry)
    UNLOCKED / TIMED_UNLOCKED --lock() or expiry--> LOCKED

Unlock state lives only in memory and starts LOCKED. Expiry is checked
lazily whenever the state is read. Decrypted keys are cached only while an
address is unlocked; passphrase-scoped operations decrypt, use and wipe the
key within the call.
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from models import Account, Address, SignedTransaction, Transaction
from services import signing
from services.signing import Signature
from utils import get_keystore_dir

from . import keyfile
from .crypto import (
    EncryptionN,
    EncryptionP,
    decrypt_key,
    encrypt_key,
    generate_private_key,
    wipe,
)
from .errors import AccountLocked, AccountNotFound, AuthenticationFailed
from .presale import decrypt_presale_key
from .registry import AccountRegistry


logger = logging.getLogger(__name__)


class UnlockState(Enum):
    LOCKED = "locked"
    UNLOCKED = "unlocked"
    TIMED_UNLOCKED = "timed_unlocked"


@dataclass
class _Unlocked:
    """Cached key for an unlocked address. expires_at is None for indefinite."""
    key: bytearray
    expires_at: Optional[float] = None


class KeyStore:
    """
    Encrypted keystore for a directory of Ethereum accounts.

    Usage:
        with KeyStore("/path/to/keystore") as ks:
            account = ks.new_account("correct-horse")
            ks.unlock(account, "correct-horse")
            signature = ks.sign_hash(account.address, msg_hash)
            signed = ks.sign_tx(account, tx, chain_id=1)
            ks.lock(account.address)
    """

    def __init__(self, path: str | Path = None,
                 encryption_n: EncryptionN = None,
                 encryption_p: EncryptionP = None,
                 clock: Callable[[], float] = time.monotonic):
        """
        Initialize keystore.

        Args:
            path: Directory holding the keyfiles. Defaults to <app dir>/keystore.
            encryption_n: Scrypt N for newly written keyfiles (default: standard)
            encryption_p: Scrypt P for newly written keyfiles (default: standard)
            clock: Monotonic clock used for timed unlock expiry
        """
        self.path = Path(path) if path is not None else get_keystore_dir()
        self.encryption_n = encryption_n or EncryptionN.standard()
        self.encryption_p = encryption_p or EncryptionP.standard()
        self._clock = clock
        self._registry = AccountRegistry(self.path)
        self._unlocked: dict[Address, _Unlocked] = {}
        self._state_lock = threading.RLock()

        if self.encryption_n.kind == "light" or self.encryption_p.kind == "light":
            logger.info(f"Keystore {self.path} uses light scrypt parameters")

    # ============================================
    # Lifetime
    # ============================================

    def close(self) -> None:
        """Lock every account, wiping all cached keys."""
        with self._state_lock:
            for entry in self._unlocked.values():
                wipe(entry.key)
            self._unlocked.clear()

    def __enter__(self) -> "KeyStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __del__(self):
        """Attempt to clear sensitive data on destruction."""
        if hasattr(self, '_state_lock'):
            self.close()

    # ============================================
    # Identity
    # ============================================

    def __eq__(self, other):
        if not isinstance(other, KeyStore):
            return NotImplemented
        return self.path == other.path

    def __hash__(self):
        return hash(self.path)

    def __str__(self) -> str:
        return f"{self.path} : {len(self.accounts)} accounts"

    def __repr__(self) -> str:
        return f"KeyStore({str(self.path)!r})"

    # ============================================
    # Accounts
    # ============================================

    @property
    def accounts(self) -> list[Account]:
        """Accounts currently on disk (rescanned on every access)."""
        return self._registry.list()

    def has(self, address: Address) -> bool:
        """Check whether the keystore holds a key for address."""
        return self._registry.has(address)

    def find(self, address: Address) -> Account:
        """
        Resolve an address to its account.

        Raises: AccountNotFound
        """
        account = self._registry.find(address)
        if account is None:
            raise AccountNotFound(address)
        return account

    def _resolve(self, account: Account | Address) -> Account:
        """
        Map an address or account onto the keyfile this keystore holds.

        An Account is only accepted if it is the one registered here for
        its address.

        Raises: AccountNotFound
        """
        if isinstance(account, Address):
            return self.find(account)
        registered = self.find(account.address)
        if registered.path.resolve() != Path(account.path).resolve():
            raise AccountNotFound(account.address)
        return registered

    def _decrypt(self, account: Account, passphrase: str,
                 cancel: Optional[threading.Event] = None) -> bytearray:
        encrypted = self._registry.read(account)
        try:
            return decrypt_key(encrypted, passphrase, cancel)
        except AuthenticationFailed:
            logger.warning(f"Passphrase check failed for {account.address}")
            raise

    def _encrypt(self, key: bytearray, passphrase: str) -> keyfile.EncryptedKeyFile:
        return encrypt_key(key, passphrase, self.encryption_n.value, self.encryption_p.value)

    def new_account(self, passphrase: str) -> Account:
        """
        Create a new account encrypted with passphrase.

        Raises: StorageError if the keyfile cannot be written (nothing is registered)
        """
        key = generate_private_key()
        try:
            encrypted = self._encrypt(key, passphrase)
        finally:
            wipe(key)
        account = self._registry.create(encrypted.address, encrypted)
        logger.info(f"Created account {account.address}")
        return account

    def delete(self, account: Account | Address, passphrase: str) -> None:
        """
        Delete an account's keyfile after proving ownership with passphrase.

        Raises:
            AccountNotFound: Account is not registered
            AuthenticationFailed: Wrong passphrase (nothing is deleted)
        """
        account = self._resolve(account)
        wipe(self._decrypt(account, passphrase))
        self._registry.remove(account)
        self.lock(account.address)
        logger.info(f"Deleted account {account.address}")

    def update(self, account: Account | Address, passphrase: str, new_passphrase: str) -> None:
        """
        Re-encrypt an account's key under a new passphrase with a fresh salt.

        The keyfile is replaced atomically; on any failure the original
        file is left untouched.
        """
        account = self._resolve(account)
        key = self._decrypt(account, passphrase)
        try:
            encrypted = self._encrypt(key, new_passphrase)
        finally:
            wipe(key)
        self._registry.replace(account, encrypted)
        logger.info(f"Updated passphrase for {account.address}")

    def export(self, account: Account | Address, passphrase: str, new_passphrase: str) -> bytes:
        """
        Export an account as keyfile JSON encrypted under new_passphrase.

        The stored keyfile is not modified.
        """
        account = self._resolve(account)
        key = self._decrypt(account, passphrase)
        try:
            encrypted = self._encrypt(key, new_passphrase)
        finally:
            wipe(key)
        return keyfile.encode(encrypted)

    # ============================================
    # Import
    # ============================================

    def _store_key(self, key: bytearray, passphrase: str) -> Account:
        try:
            encrypted = self._encrypt(key, passphrase)
        finally:
            wipe(key)
        return self._registry.create(encrypted.address, encrypted)

    def import_ecdsa_key(self, key: bytes, passphrase: str) -> Account:
        """
        Import a raw 32-byte private key.

        Raises:
            ValueError: Not a valid secp256k1 private key
            DuplicateAccount: Address already in the keystore
        """
        account = self._store_key(bytearray(key), passphrase)
        logger.info(f"Imported raw key for {account.address}")
        return account

    def import_key(self, key_json: bytes | str, passphrase: str, new_passphrase: str) -> Account:
        """
        Import a keyfile, re-encrypting it under new_passphrase.

        Raises:
            MalformedKeyFile / UnsupportedVersion: key_json does not parse
            AuthenticationFailed: Wrong passphrase
            DuplicateAccount: Address already in the keystore
        """
        encrypted = keyfile.decode(key_json)
        key = decrypt_key(encrypted, passphrase)
        account = self._store_key(key, new_passphrase)
        logger.info(f"Imported keyfile for {account.address}")
        return account

    def import_presale_key(self, key_json: bytes | str, passphrase: str) -> Account:
        """
        Import a crowd-sale wallet, keeping its passphrase.

        Raises:
            MalformedKeyFile: Not a pre-sale wallet
            AuthenticationFailed: Wrong passphrase
            DuplicateAccount: Address already in the keystore
        """
        key = decrypt_presale_key(key_json, passphrase)
        account = self._store_key(key, passphrase)
        logger.info(f"Imported pre-sale wallet for {account.address}")
        return account

    # ============================================
    # Lock / Unlock
    # ============================================

    def _active(self, address: Address) -> Optional[_Unlocked]:
        """Current unlock entry, expiring it first if due. Caller holds the lock."""
        entry = self._unlocked.get(address)
        if entry is None:
            return None
        if entry.expires_at is not None and self._clock() >= entry.expires_at:
            wipe(entry.key)
            del self._unlocked[address]
            logger.info(f"Unlock expired for {address}")
            return None
        return entry

    def _set_unlocked(self, address: Address, key: bytearray, expires_at: Optional[float]) -> None:
        with self._state_lock:
            previous = self._unlocked.get(address)
            self._unlocked[address] = _Unlocked(key=key, expires_at=expires_at)
            if previous is not None:
                wipe(previous.key)

    def unlock_state(self, address: Address) -> UnlockState:
        with self._state_lock:
            entry = self._active(address)
            if entry is None:
                return UnlockState.LOCKED
            if entry.expires_at is None:
                return UnlockState.UNLOCKED
            return UnlockState.TIMED_UNLOCKED

    def unlock(self, account: Account | Address, passphrase: str,
               cancel: Optional[threading.Event] = None) -> None:
        """
        Unlock an account indefinitely.

        Raises: AuthenticationFailed (state unchanged)
        """
        account = self._resolve(account)
        key = self._decrypt(account, passphrase, cancel)
        self._set_unlocked(account.address, key, None)
        logger.info(f"Unlocked {account.address}")

    def timed_unlock(self, account: Account | Address, passphrase: str, timeout: float,
                     cancel: Optional[threading.Event] = None) -> None:
        """
        Unlock an account for timeout seconds.

        A timeout of 0 unlocks indefinitely. Calling again replaces the
        previous expiry.

        Raises: AuthenticationFailed (state unchanged)
        """
        if timeout < 0:
            raise ValueError("Unlock timeout must not be negative")
        account = self._resolve(account)
        key = self._decrypt(account, passphrase, cancel)
        expires_at = self._clock() + timeout if timeout > 0 else None
        self._set_unlocked(account.address, key, expires_at)
        logger.info(f"Unlocked {account.address} for {timeout}s")

    def lock(self, account: Account | Address) -> None:
        """Lock an account, wiping its cached key. Idempotent."""
        address = account if isinstance(account, Address) else account.address
        with self._state_lock:
            entry = self._unlocked.pop(address, None)
            if entry is not None:
                wipe(entry.key)
                logger.info(f"Locked {address}")

    # ============================================
    # Signing
    # ============================================

    def sign_hash(self, account: Account | Address, msg_hash: bytes) -> Signature:
        """
        Sign a 32-byte hash with an unlocked account.

        Raises: AccountLocked if the address has no active unlock
        """
        address = account if isinstance(account, Address) else account.address
        with self._state_lock:
            entry = self._active(address)
            if entry is None:
                raise AccountLocked(address)
            return signing.sign_hash(entry.key, msg_hash)

    def sign_hash_with_passphrase(self, account: Account | Address, passphrase: str,
                                  msg_hash: bytes) -> Signature:
        """Decrypt, sign and wipe within one call. Unlock state is untouched."""
        account = self._resolve(account)
        key = self._decrypt(account, passphrase)
        try:
            return signing.sign_hash(key, msg_hash)
        finally:
            wipe(key)

    def sign_tx(self, account: Account | Address, tx: Transaction,
                chain_id: int) -> SignedTransaction:
        """
        Sign a transaction for chain_id with an unlocked account.

        Raises: AccountLocked if the address has no active unlock
        """
        address = account if isinstance(account, Address) else account.address
        with self._state_lock:
            entry = self._active(address)
            if entry is None:
                raise AccountLocked(address)
            return signing.sign_transaction(entry.key, tx, chain_id)

    def sign_tx_with_passphrase(self, account: Account | Address, passphrase: str,
                                tx: Transaction, chain_id: int) -> SignedTransaction:
        """Decrypt, sign a transaction for chain_id and wipe within one call."""
        signing.validate_chain_id(chain_id)
        account = self._resolve(account)
        key = self._decrypt(account, passphrase)
        try:
            return signing.sign_transaction(key, tx, chain_id)
        finally:
            wipe(key)
