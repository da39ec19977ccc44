"""
Tests for keystore.registry - directory-backed account index.
"""

import os
import threading

import pytest

from keystore import (
    AccountNotFound,
    AccountRegistry,
    DuplicateAccount,
    StorageError,
    encode,
    encrypt_key,
)
from keystore.keyfile import keyfile_name
from models import Account

from conftest import TEST_KEY


OTHER_KEY = bytes.fromhex("11" * 32)


@pytest.fixture(scope="module")
def encrypted():
    return encrypt_key(TEST_KEY, "pw", n=1 << 10, p=1)


@pytest.fixture(scope="module")
def other_encrypted():
    return encrypt_key(OTHER_KEY, "pw", n=1 << 10, p=1)


@pytest.fixture
def registry(keydir):
    return AccountRegistry(keydir)


class TestList:

    def test_missing_directory_is_empty(self, registry):
        assert registry.list() == []

    def test_empty_directory(self, registry, keydir):
        keydir.mkdir()
        assert registry.list() == []

    def test_created_account_listed(self, registry, encrypted):
        account = registry.create(encrypted.address, encrypted)
        assert registry.list() == [account]

    def test_picks_up_external_files(self, registry, keydir, encrypted):
        keydir.mkdir()
        path = keydir / "dropped-in-by-another-process"
        path.write_bytes(encode(encrypted))
        assert registry.list() == [Account(address=encrypted.address, path=path)]

    def test_skips_junk(self, registry, keydir, encrypted):
        keydir.mkdir()
        (keydir / "notes.txt").write_text("not a keyfile")
        (keydir / ".hidden").write_bytes(encode(encrypted))
        (keydir / "backup~").write_bytes(encode(encrypted))
        (keydir / "partial.tmp").write_bytes(encode(encrypted))
        (keydir / "subdir").mkdir()
        assert registry.list() == []

    def test_removed_externally(self, registry, encrypted):
        account = registry.create(encrypted.address, encrypted)
        account.path.unlink()
        assert registry.list() == []
        assert not registry.has(encrypted.address)


class TestFind:

    def test_find_missing(self, registry, encrypted):
        assert registry.find(encrypted.address) is None
        assert not registry.has(encrypted.address)

    def test_find(self, registry, encrypted, other_encrypted):
        account = registry.create(encrypted.address, encrypted)
        registry.create(other_encrypted.address, other_encrypted)
        assert registry.find(encrypted.address) == account
        assert registry.has(other_encrypted.address)

    def test_duplicate_files_resolve_to_first(self, registry, keydir, encrypted):
        keydir.mkdir()
        (keydir / "a-copy").write_bytes(encode(encrypted))
        (keydir / "b-copy").write_bytes(encode(encrypted))
        assert registry.find(encrypted.address).path.name == "a-copy"


class TestWrite:

    def test_create_uses_standard_filename(self, registry, encrypted):
        account = registry.create(encrypted.address, encrypted)
        assert account.path.parent == registry.keydir
        assert account.path.name.startswith("UTC--")
        assert account.path.name.endswith("--" + encrypted.address.hex())

    def test_create_writes_encoded_keyfile(self, registry, encrypted):
        account = registry.create(encrypted.address, encrypted)
        assert account.path.read_bytes() == encode(encrypted)
        assert registry.read(account) == encrypted

    def test_create_duplicate(self, registry, encrypted):
        registry.create(encrypted.address, encrypted)
        with pytest.raises(DuplicateAccount):
            registry.create(encrypted.address, encrypted)
        assert len(registry.list()) == 1

    def test_no_temp_files_left(self, registry, keydir, encrypted):
        registry.create(encrypted.address, encrypted)
        assert [p.name for p in keydir.iterdir() if p.name.startswith(".")] == []

    @pytest.mark.skipif(os.name != "posix", reason="Unix permissions only")
    def test_secure_permissions(self, registry, keydir, encrypted):
        account = registry.create(encrypted.address, encrypted)
        assert account.path.stat().st_mode & 0o777 == 0o600
        assert keydir.stat().st_mode & 0o777 == 0o700

    def test_write_failure_raises_storage_error(self, tmp_path, encrypted):
        blocker = tmp_path / "not-a-directory"
        blocker.write_text("")
        registry = AccountRegistry(blocker)
        with pytest.raises(StorageError):
            registry.create(encrypted.address, encrypted)

    def test_concurrent_create_same_address(self, keydir, encrypted):
        registries = [AccountRegistry(keydir) for _ in range(4)]
        barrier = threading.Barrier(len(registries))
        created, duplicates = [], []

        def worker(registry):
            barrier.wait()
            try:
                created.append(registry.create(encrypted.address, encrypted))
            except DuplicateAccount:
                duplicates.append(registry)

        threads = [threading.Thread(target=worker, args=(r,)) for r in registries]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(created) == 1
        assert len(duplicates) == 3
        assert AccountRegistry(keydir).list() == created

    def test_replace(self, registry, encrypted):
        account = registry.create(encrypted.address, encrypted)
        updated = encrypt_key(TEST_KEY, "new", n=1 << 10, p=1)
        registry.replace(account, updated)
        assert registry.read(account) == updated
        assert registry.list() == [account]

    def test_replace_missing(self, registry, keydir, encrypted):
        account = Account(address=encrypted.address, path=keydir / "gone")
        with pytest.raises(AccountNotFound):
            registry.replace(account, encrypted)

    def test_remove(self, registry, encrypted):
        account = registry.create(encrypted.address, encrypted)
        registry.remove(account)
        assert not account.path.exists()
        assert registry.find(encrypted.address) is None

    def test_remove_missing(self, registry, encrypted):
        account = registry.create(encrypted.address, encrypted)
        registry.remove(account)
        with pytest.raises(AccountNotFound):
            registry.remove(account)


class TestRead:

    def test_read_missing(self, registry, keydir, encrypted):
        account = Account(address=encrypted.address, path=keydir / keyfile_name(encrypted.address))
        with pytest.raises(AccountNotFound):
            registry.read(account)

    def test_read_address_mismatch(self, registry, encrypted, other_encrypted):
        account = registry.create(encrypted.address, encrypted)
        impostor = Account(address=other_encrypted.address, path=account.path)
        with pytest.raises(AccountNotFound):
            registry.read(impostor)


def test_shared_write_lock_per_directory(keydir, tmp_path):
    assert AccountRegistry(keydir)._write_lock is AccountRegistry(str(keydir))._write_lock
    assert AccountRegistry(keydir)._write_lock is not AccountRegistry(tmp_path / "other")._write_lock


def test_equality(keydir, tmp_path):
    assert AccountRegistry(keydir) == AccountRegistry(str(keydir))
    assert AccountRegistry(keydir) != AccountRegistry(tmp_path / "other")
