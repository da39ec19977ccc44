"""
Account Registry - Index of keyfiles in the keystore directory.

The directory is the source of truth: list() and find() rescan it on every
call, so keyfiles added or removed by other processes are picked up.
Writes go through a temp file and an atomic rename.
"""

import logging
import os
import threading
from pathlib import Path
from typing import Optional

from models import Account, Address

from . import keyfile
from .errors import AccountNotFound, DuplicateAccount, KeyStoreError, StorageError
from .keyfile import EncryptedKeyFile


logger = logging.getLogger(__name__)

# Secure permissions (Unix only)
SECURE_FILE_MODE = 0o600  # Owner read/write only
SECURE_DIR_MODE = 0o700

TEMP_SUFFIX = ".tmp"

# One write lock per keystore directory, shared by every registry on it
_dir_locks: dict[Path, threading.Lock] = {}
_dir_locks_guard = threading.Lock()


def _directory_lock(keydir: Path) -> threading.Lock:
    key = keydir.expanduser().resolve()
    with _dir_locks_guard:
        return _dir_locks.setdefault(key, threading.Lock())


def set_secure_permissions(filepath: Path, mode: int = SECURE_FILE_MODE) -> None:
    """
    Set restrictive permissions on Unix systems.

    No-op on Windows (NTFS uses ACLs, not Unix permissions).
    """
    if os.name == 'posix':
        try:
            os.chmod(filepath, mode)
        except OSError as e:
            logger.warning(f"Could not restrict permissions on {filepath}: {e}")


def _is_candidate(path: Path) -> bool:
    """Skip editor backups, temp files, dotfiles and directories."""
    name = path.name
    if name.startswith(".") or name.endswith("~") or name.endswith(TEMP_SUFFIX):
        return False
    return path.is_file()


class AccountRegistry:
    """Maps addresses to keyfiles in a single directory."""

    def __init__(self, keydir: str | Path):
        self.keydir = Path(keydir)
        self._write_lock = _directory_lock(self.keydir)

    def __eq__(self, other):
        if not isinstance(other, AccountRegistry):
            return NotImplemented
        return self.keydir == other.keydir

    def __hash__(self):
        return hash(self.keydir)

    # ============================================
    # Read Operations
    # ============================================

    def list(self) -> list[Account]:
        """
        Enumerate accounts by scanning the directory.

        Returns an empty list if the directory is missing or unreadable.
        Order is by filename and must not be relied upon.
        """
        try:
            entries = sorted(self.keydir.iterdir())
        except OSError as e:
            logger.debug(f"Keystore directory not readable: {self.keydir} ({e})")
            return []

        accounts = []
        for path in entries:
            try:
                if not _is_candidate(path):
                    continue
                parsed = keyfile.decode(path.read_bytes())
            except (OSError, KeyStoreError) as e:
                logger.debug(f"Skipping {path.name}: {e}")
                continue
            accounts.append(Account(address=parsed.address, path=path))
        return accounts

    def find(self, address: Address) -> Optional[Account]:
        """Find the account for an address, or None."""
        matches = [a for a in self.list() if a.address == address]
        if not matches:
            return None
        if len(matches) > 1:
            logger.warning(
                f"Multiple keyfiles for {address}; using {matches[0].path.name}"
            )
        return matches[0]

    def has(self, address: Address) -> bool:
        return self.find(address) is not None

    def read(self, account: Account) -> EncryptedKeyFile:
        """
        Load and parse the keyfile behind an account.

        Raises:
            AccountNotFound: File no longer exists
            StorageError: File could not be read
            MalformedKeyFile: File does not parse
        """
        try:
            data = account.path.read_bytes()
        except FileNotFoundError as e:
            raise AccountNotFound(account.address) from e
        except OSError as e:
            raise StorageError(f"Could not read keyfile: {e.strerror}", account.path) from e

        parsed = keyfile.decode(data)
        if parsed.address != account.address:
            raise AccountNotFound(account.address)
        return parsed

    # ============================================
    # Write Operations
    # ============================================

    def create(self, address: Address, encrypted: EncryptedKeyFile) -> Account:
        """
        Persist a new keyfile and return its account.

        Raises:
            DuplicateAccount: Address already has a keyfile
            StorageError: Write failed; nothing is left on disk
        """
        with self._write_lock:
            if self.has(address):
                raise DuplicateAccount(address)
            path = self.keydir / keyfile.keyfile_name(address)
            self._write_atomic(path, keyfile.encode(encrypted))
        logger.debug(f"Wrote keyfile {path.name}")
        return Account(address=address, path=path)

    def replace(self, account: Account, encrypted: EncryptedKeyFile) -> None:
        """Atomically overwrite an existing keyfile."""
        with self._write_lock:
            if not account.path.exists():
                raise AccountNotFound(account.address)
            self._write_atomic(account.path, keyfile.encode(encrypted))

    def remove(self, account: Account) -> None:
        """
        Delete an account's keyfile.

        Raises:
            AccountNotFound: File does not exist
            StorageError: File could not be deleted
        """
        with self._write_lock:
            try:
                account.path.unlink()
            except FileNotFoundError as e:
                raise AccountNotFound(account.address) from e
            except OSError as e:
                raise StorageError(f"Could not delete keyfile: {e.strerror}", account.path) from e

    def _write_atomic(self, path: Path, data: bytes) -> None:
        temp_path = path.with_name(f".{path.name}{TEMP_SUFFIX}")
        try:
            self.keydir.mkdir(parents=True, exist_ok=True)
            set_secure_permissions(self.keydir, SECURE_DIR_MODE)
            with open(temp_path, 'wb') as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            set_secure_permissions(temp_path)
            temp_path.replace(path)
        except OSError as e:
            try:
                temp_path.unlink()
            except OSError:
                pass
            raise StorageError(f"Could not write keyfile: {e.strerror or e}", path) from e
