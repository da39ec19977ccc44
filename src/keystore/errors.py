"""
Keystore errors.

Every failure surfaced by the keystore derives from KeyStoreError.
Messages may name addresses and paths, never key material or passphrases.
"""


class KeyStoreError(Exception):
    """Base exception for keystore errors"""
    pass


class AuthenticationFailed(KeyStoreError):
    """
    Wrong passphrase or corrupted keyfile.

    The two causes are indistinguishable to the caller.
    """

    def __init__(self, message: str = "could not decrypt key with given passphrase"):
        super().__init__(message)


class MalformedKeyFile(KeyStoreError):
    """Keyfile is not valid JSON or has missing / mistyped fields"""
    pass


class UnsupportedVersion(MalformedKeyFile):
    """Keyfile version is not one this keystore understands"""

    def __init__(self, version):
        self.version = version
        super().__init__(f"Unsupported keyfile version: {version!r}")


class StorageError(KeyStoreError):
    """Reading or writing the keystore directory failed"""

    def __init__(self, message: str, path=None):
        self.path = path
        super().__init__(message)


class DuplicateAccount(KeyStoreError):
    """An account with this address is already registered"""

    def __init__(self, address):
        self.address = address
        super().__init__(f"Account already exists: {address}")


class AccountNotFound(KeyStoreError):
    """Operation referenced an address that has no keyfile"""

    def __init__(self, address):
        self.address = address
        super().__init__(f"No key for given address or file: {address}")


class AccountLocked(KeyStoreError):
    """Signing attempted without an active unlock and without a passphrase"""

    def __init__(self, address):
        self.address = address
        super().__init__(f"Account is locked: {address}")


class DerivationCancelled(KeyStoreError):
    """Key derivation was cancelled by the caller"""
    pass
