"""Tests for the credential store and its backends."""

import os
import stat
from datetime import timedelta

import pytest
from cryptography.fernet import Fernet

from tiktok_publisher.domain.models import TokenResponse
from tiktok_publisher.storage import (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    TOKEN_EXPIRY_KEY,
    CredentialStore,
    EncryptionError,
    FileStorage,
    MemoryStorage,
    generate_encryption_key,
)

from .conftest import FIXED_NOW


def make_token(**overrides) -> TokenResponse:
    values = {
        "access_token": "act.example",
        "expires_in": 86400,
        "refresh_token": "rft.example",
    }
    values.update(overrides)
    return TokenResponse(**values)


class TestCredentialStoreSave:
    def test_save_persists_three_named_values(self, credential_store, memory_storage) -> None:
        credential_store.save(make_token())

        assert memory_storage.values[ACCESS_TOKEN_KEY] == "act.example"
        assert memory_storage.values[REFRESH_TOKEN_KEY] == "rft.example"
        expected_ms = int((FIXED_NOW + timedelta(seconds=86400)).timestamp() * 1000)
        assert memory_storage.values[TOKEN_EXPIRY_KEY] == str(expected_ms)
        assert set(memory_storage.values) == {ACCESS_TOKEN_KEY, TOKEN_EXPIRY_KEY, REFRESH_TOKEN_KEY}

    def test_save_returns_credential(self, credential_store) -> None:
        credential = credential_store.save(make_token(expires_in=3600))

        assert credential.access_token == "act.example"
        assert credential.expires_at == FIXED_NOW + timedelta(hours=1)
        assert credential.refresh_token == "rft.example"

    def test_save_without_refresh_token_keeps_previous(self, credential_store) -> None:
        credential_store.save(make_token())
        credential_store.save(make_token(access_token="act.second", refresh_token=None))

        assert credential_store.refresh_token == "rft.example"
        assert credential_store.get_access_token() == "act.second"

    def test_save_with_rotated_refresh_token(self, credential_store) -> None:
        credential_store.save(make_token())
        credential_store.save(make_token(refresh_token="rft.rotated"))

        assert credential_store.refresh_token == "rft.rotated"


class TestCredentialStoreValidity:
    def test_valid_when_expiry_in_future(self, credential_store, memory_storage) -> None:
        credential_store.save(make_token(expires_in=60))
        before = dict(memory_storage.values)

        assert credential_store.is_valid() is True
        assert memory_storage.values == before

    @pytest.mark.parametrize("elapsed", [60, 61, 86400])
    def test_invalid_and_cleared_when_expired(
        self, credential_store, memory_storage, clock, elapsed
    ) -> None:
        credential_store.save(make_token(expires_in=60))
        clock.now = FIXED_NOW + timedelta(seconds=elapsed)

        assert credential_store.is_valid() is False
        assert memory_storage.values == {}
        assert credential_store.get_access_token() is None

    def test_invalid_when_nothing_stored(self, credential_store) -> None:
        assert credential_store.is_valid() is False
        assert credential_store.get_credential() is None

    def test_partial_credential_is_cleared(self, memory_storage, clock) -> None:
        memory_storage.set(ACCESS_TOKEN_KEY, "act.orphan")
        memory_storage.set(REFRESH_TOKEN_KEY, "rft.orphan")
        store = CredentialStore(memory_storage, clock=clock)

        assert store.is_valid() is False
        assert memory_storage.values == {}

    def test_unparseable_expiry_is_cleared(self, memory_storage, clock) -> None:
        memory_storage.set(ACCESS_TOKEN_KEY, "act.example")
        memory_storage.set(TOKEN_EXPIRY_KEY, "not-a-number")
        store = CredentialStore(memory_storage, clock=clock)

        assert store.is_valid() is False
        assert memory_storage.values == {}

    def test_clear_removes_everything(self, credential_store, memory_storage) -> None:
        credential_store.save(make_token())
        credential_store.clear()

        assert memory_storage.values == {}

    def test_get_credential(self, credential_store) -> None:
        credential_store.save(make_token(expires_in=120))
        credential = credential_store.get_credential()

        assert credential is not None
        assert credential.access_token == "act.example"
        assert credential.expires_at == FIXED_NOW + timedelta(seconds=120)


class TestMemoryStorage:
    def test_delete_missing_key_is_noop(self) -> None:
        storage = MemoryStorage({"a": "1"})
        storage.delete("b")
        assert storage.get("a") == "1"


class TestFileStorage:
    def test_roundtrip_plaintext(self, tmp_path) -> None:
        path = tmp_path / "creds" / "credentials.json"
        storage = FileStorage(path)

        storage.set(ACCESS_TOKEN_KEY, "act.example")

        assert FileStorage(path).get(ACCESS_TOKEN_KEY) == "act.example"
        assert "act.example" in path.read_text()

    def test_encrypted_values_not_stored_in_plaintext(self, tmp_path) -> None:
        path = tmp_path / "credentials.json"
        key = generate_encryption_key()
        storage = FileStorage(path, encryption_key=key)

        storage.set(ACCESS_TOKEN_KEY, "act.secret")

        assert "act.secret" not in path.read_text()
        assert FileStorage(path, encryption_key=key).get(ACCESS_TOKEN_KEY) == "act.secret"

    @pytest.mark.skipif(os.name != "posix", reason="POSIX file modes")
    def test_file_is_private_and_replaced_whole(self, tmp_path) -> None:
        old_umask = os.umask(0o022)
        try:
            path = tmp_path / "credentials.json"
            path.write_text("{}")
            path.chmod(0o644)

            FileStorage(path).set(ACCESS_TOKEN_KEY, "act.example")
        finally:
            os.umask(old_umask)

        assert stat.S_IMODE(path.stat().st_mode) == 0o600
        assert [p.name for p in tmp_path.iterdir()] == ["credentials.json"]

    def test_failed_write_leaves_previous_file(self, tmp_path, monkeypatch) -> None:
        path = tmp_path / "credentials.json"
        storage = FileStorage(path)
        storage.set(ACCESS_TOKEN_KEY, "act.first")

        def broken_dump(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr("tiktok_publisher.storage.json.dump", broken_dump)
        with pytest.raises(OSError):
            storage.set(ACCESS_TOKEN_KEY, "act.second")
        monkeypatch.undo()

        assert FileStorage(path).get(ACCESS_TOKEN_KEY) == "act.first"
        assert [p.name for p in tmp_path.iterdir()] == ["credentials.json"]

    def test_wrong_key_raises(self, tmp_path) -> None:
        path = tmp_path / "credentials.json"
        FileStorage(path, encryption_key=generate_encryption_key()).set(ACCESS_TOKEN_KEY, "x")

        other = FileStorage(path, encryption_key=Fernet.generate_key().decode())
        with pytest.raises(EncryptionError, match="Failed to decrypt"):
            other.get(ACCESS_TOKEN_KEY)

    def test_invalid_key_rejected(self, tmp_path) -> None:
        with pytest.raises(EncryptionError, match="Invalid token encryption key"):
            FileStorage(tmp_path / "c.json", encryption_key="not-a-fernet-key")

    def test_corrupt_file_reads_as_empty(self, tmp_path) -> None:
        path = tmp_path / "credentials.json"
        path.write_text("{not json")

        assert FileStorage(path).get(ACCESS_TOKEN_KEY) is None

    def test_credential_store_over_file(self, tmp_path, clock) -> None:
        path = tmp_path / "credentials.json"
        store = CredentialStore(FileStorage(path), clock=clock)
        store.save(make_token())

        reopened = CredentialStore(FileStorage(path), clock=clock)
        assert reopened.get_access_token() == "act.example"

        clock.now = FIXED_NOW + timedelta(days=2)
        assert reopened.is_valid() is False
        assert FileStorage(path).get(REFRESH_TOKEN_KEY) is None
