"""Secure keyed byte stores backing the credential cache."""

import base64
import os
import platform
from pathlib import Path
from typing import Dict, Optional, Protocol

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from sqlalchemy import create_engine, delete, select
from sqlalchemy.orm import sessionmaker

from instafeed.models.schema import Base, KeychainItem
from instafeed.utils.config import KEYCHAIN_DB_URL, SECRETS_DIR
from instafeed.utils.logging import get_logger

logger = get_logger(__name__)


class SecureStore(Protocol):
    """Opaque keyed byte store."""

    def save(self, key: str, data: bytes) -> None: ...

    def load(self, key: str) -> Optional[bytes]: ...

    def delete(self, key: str) -> None: ...

    def close(self) -> None: ...


class MemoryStore:
    """In-process store, used for previews and tests."""

    def __init__(self, service: str = "memory"):
        self.service = service
        self._items: Dict[str, bytes] = {}

    def save(self, key: str, data: bytes) -> None:
        self._items[key] = bytes(data)

    def load(self, key: str) -> Optional[bytes]:
        return self._items.get(key)

    def delete(self, key: str) -> None:
        self._items.pop(key, None)

    def close(self) -> None:
        pass

    def __contains__(self, key: str) -> bool:
        return key in self._items


def _get_encryption_key(secrets_dir: Path = SECRETS_DIR) -> bytes:
    """
    Get or create the Fernet key for the keychain database.

    The key is derived once from machine identifiers and a random salt,
    then kept in ``secrets_dir/.key`` with owner-only permissions.

    Returns:
        Encryption key bytes
    """
    key_file = secrets_dir / ".key"

    if key_file.exists():
        return key_file.read_bytes()

    secrets_dir.mkdir(parents=True, exist_ok=True)

    salt = os.urandom(16)
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=100000,
    )
    machine_id = f"{platform.node()}{platform.machine()}{platform.system()}".encode()
    key = base64.urlsafe_b64encode(kdf.derive(machine_id))

    key_file.write_bytes(key)
    try:
        key_file.chmod(0o600)
    except OSError:
        logger.debug(f"Could not restrict permissions on {key_file}")

    logger.info(f"Created keychain encryption key at {key_file}")
    return key


class EncryptedStore:
    """
    Fernet-encrypted key/value rows in a SQLite database.

    Each store is bound to one service name; keys from different services
    never collide.
    """

    def __init__(
        self,
        service: str,
        db_url: str = KEYCHAIN_DB_URL,
        encryption_key: Optional[bytes] = None,
    ):
        """
        Initialize store.

        Args:
            service: Namespace for all keys written through this store
            db_url: SQLAlchemy database URL
            encryption_key: Fernet key (default: machine key from SECRETS_DIR)
        """
        self.service = service

        if db_url == KEYCHAIN_DB_URL:
            SECRETS_DIR.mkdir(parents=True, exist_ok=True)

        self.engine = create_engine(
            db_url,
            echo=False,
            connect_args={"check_same_thread": False},  # Required for SQLite
        )
        Base.metadata.create_all(bind=self.engine)
        self._session_factory = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)
        self._fernet = Fernet(encryption_key or _get_encryption_key())

    def save(self, key: str, data: bytes) -> None:
        token = self._fernet.encrypt(data)
        with self._session_factory.begin() as session:
            item = session.execute(
                select(KeychainItem).where(KeychainItem.service == self.service, KeychainItem.key == key)
            ).scalar_one_or_none()
            if item:
                item.value = token
            else:
                session.add(KeychainItem(service=self.service, key=key, value=token))
        logger.debug(f"Keychain item saved: {self.service}/{key}")

    def load(self, key: str) -> Optional[bytes]:
        with self._session_factory() as session:
            token = session.execute(
                select(KeychainItem.value).where(KeychainItem.service == self.service, KeychainItem.key == key)
            ).scalar_one_or_none()
        if token is None:
            return None
        try:
            return self._fernet.decrypt(token)
        except InvalidToken:
            logger.warning(f"Keychain item {self.service}/{key} could not be decrypted")
            return None

    def delete(self, key: str) -> None:
        with self._session_factory.begin() as session:
            session.execute(
                delete(KeychainItem).where(KeychainItem.service == self.service, KeychainItem.key == key)
            )
        logger.debug(f"Keychain item deleted: {self.service}/{key}")

    def close(self) -> None:
        self.engine.dispose()
