"""Credential cache with lazy expiry enforcement."""

from datetime import datetime
from typing import Callable, Optional

from instafeed.core.exceptions import DecodeError
from instafeed.models.data_models import Credential, utc_now
from instafeed.storage.keychain import SecureStore
from instafeed.utils.logging import get_logger

logger = get_logger(__name__)


class CredentialStore:
    """
    Persists the session credential in a secure byte store.

    Writes and deletes are best-effort: failures are logged and never
    reach the caller. Expired records are purged when they are loaded.
    """

    def __init__(self, store: SecureStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    def save(self, credential: Credential, key: str) -> None:
        try:
            self.store.save(key, credential.to_json())
            logger.debug(f"Credential saved under '{key}'")
        except Exception as e:
            logger.error(f"Failed to save credential under '{key}': {e}")

    def load(self, key: str) -> Optional[Credential]:
        """
        Load the credential stored under ``key``.

        Returns:
            Credential, or None if missing, undecodable or expired
        """
        try:
            raw = self.store.load(key)
        except Exception as e:
            logger.error(f"Failed to read credential under '{key}': {e}")
            return None

        if raw is None:
            return None

        try:
            credential = Credential.from_json(raw)
        except DecodeError as e:
            logger.warning(f"Discarding unreadable credential under '{key}': {e}")
            return None

        if credential.is_expired(self.clock()):
            logger.info(f"Stored credential expired at {credential.expires_at.isoformat()}, removing it")
            self.delete(key)
            return None

        return credential

    def delete(self, key: str) -> None:
        try:
            self.store.delete(key)
        except Exception as e:
            logger.error(f"Failed to delete credential under '{key}': {e}")
