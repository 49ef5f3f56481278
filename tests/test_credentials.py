"""Tests for the credential cache and secure stores."""

from datetime import timedelta

from cryptography.fernet import Fernet
from sqlalchemy import select

from conftest import NOW, fixed_clock
from instafeed.models.data_models import Credential
from instafeed.models.schema import KeychainItem
from instafeed.storage.credentials import CredentialStore
from instafeed.storage.keychain import EncryptedStore


class FailingStore:
    def save(self, key, data):
        raise OSError("disk full")

    def load(self, key):
        raise OSError("locked")

    def delete(self, key):
        raise OSError("locked")


def test_save_and_load(memory_store, valid_credential):
    store = CredentialStore(memory_store, clock=fixed_clock)
    store.save(valid_credential, "credentials")
    assert store.load("credentials") == valid_credential


def test_load_missing_key(memory_store):
    assert CredentialStore(memory_store, clock=fixed_clock).load("credentials") is None


def test_expired_credential_is_purged(memory_store):
    store = CredentialStore(memory_store, clock=fixed_clock)
    expired = Credential(access_token="t", expires_at=NOW - timedelta(seconds=1))
    store.save(expired, "credentials")

    assert store.load("credentials") is None
    assert "credentials" not in memory_store


def test_credential_expiring_now_is_purged(memory_store):
    store = CredentialStore(memory_store, clock=fixed_clock)
    store.save(Credential(access_token="t", expires_at=NOW), "credentials")

    assert store.load("credentials") is None
    assert "credentials" not in memory_store


def test_undecodable_record_is_absent(memory_store):
    memory_store.save("credentials", b"\x00garbage")
    assert CredentialStore(memory_store, clock=fixed_clock).load("credentials") is None


def test_delete_is_idempotent(memory_store, valid_credential):
    store = CredentialStore(memory_store, clock=fixed_clock)
    store.save(valid_credential, "credentials")
    store.delete("credentials")
    store.delete("credentials")
    assert store.load("credentials") is None


def test_store_failures_are_swallowed(valid_credential):
    store = CredentialStore(FailingStore(), clock=fixed_clock)
    store.save(valid_credential, "credentials")
    store.delete("credentials")
    assert store.load("credentials") is None


def test_encrypted_store_round_trip(tmp_path):
    key = Fernet.generate_key()
    db_url = f"sqlite:///{tmp_path / 'keychain.db'}"
    store = EncryptedStore("com.example.app", db_url=db_url, encryption_key=key)

    store.save("credentials", b"secret")
    store.save("credentials", b"secret-2")
    assert store.load("credentials") == b"secret-2"

    # Same database, other service: separate namespace
    other = EncryptedStore("com.example.other", db_url=db_url, encryption_key=key)
    assert other.load("credentials") is None

    store.delete("credentials")
    assert store.load("credentials") is None
    store.close()
    other.close()


def test_encrypted_store_encrypts_at_rest(tmp_path):
    key = Fernet.generate_key()
    db_path = tmp_path / "keychain.db"
    store = EncryptedStore("svc", db_url=f"sqlite:///{db_path}", encryption_key=key)
    store.save("credentials", b"plain-token-value")
    store.close()

    assert b"plain-token-value" not in db_path.read_bytes()


def test_encrypted_store_wrong_key_reads_nothing(tmp_path):
    db_url = f"sqlite:///{tmp_path / 'keychain.db'}"
    EncryptedStore("svc", db_url=db_url, encryption_key=Fernet.generate_key()).save("k", b"v")
    assert EncryptedStore("svc", db_url=db_url, encryption_key=Fernet.generate_key()).load("k") is None


def test_encrypted_store_stamps_updates(tmp_path):
    store = EncryptedStore("svc", db_url=f"sqlite:///{tmp_path / 'keychain.db'}", encryption_key=Fernet.generate_key())
    store.save("credentials", b"v1")

    with store._session_factory() as session:
        item = session.execute(select(KeychainItem)).scalar_one()
    assert item.updated_at is not None
    store.close()
