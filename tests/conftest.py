"""
Shared pytest fixtures for the keystore test suite.
"""

import pytest

from keystore import EncryptionN, EncryptionP, KeyStore


# Cheap scrypt cost so tests run quickly
TEST_N = EncryptionN.custom(1 << 10)
TEST_P = EncryptionP.custom(1)

# Well-known throwaway key (never use on-chain)
TEST_KEY = bytes.fromhex("4646464646464646464646464646464646464646464646464646464646464646")


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def keydir(tmp_path):
    """Keystore directory (not created yet)."""
    return tmp_path / "keystore"


@pytest.fixture
def keystore(keydir, clock):
    """Fresh keystore with cheap scrypt parameters."""
    ks = KeyStore(keydir, encryption_n=TEST_N, encryption_p=TEST_P, clock=clock)
    yield ks
    ks.close()


@pytest.fixture
def account(keystore):
    """Account created with passphrase "correct-horse"."""
    return keystore.new_account("correct-horse")
