"""Instagram client orchestrating login, credential caching and feed fetching."""

import asyncio
from datetime import datetime
from typing import Callable, List, Optional, Set

import httpx

from instafeed.core.auth import AuthorizationFlow, AuthSession
from instafeed.core.exceptions import MissingConfigError
from instafeed.core.media import MediaFetchPipeline
from instafeed.core.observable import StateHolder
from instafeed.core.scheduler import FetchScheduler, IntervalPolicy
from instafeed.models.data_models import Config, Credential, Media, utc_now
from instafeed.storage.credentials import CredentialStore
from instafeed.storage.keychain import EncryptedStore, MemoryStore, SecureStore
from instafeed.utils.config import (
    CONNECT_TIMEOUT,
    MAX_MEDIA_PAGES,
    PREVIEW_MEDIA_URLS,
    READ_TIMEOUT,
    TRIGGER_POLL_INTERVAL,
)
from instafeed.utils.logging import get_logger

logger = get_logger(__name__)

# Builds the secure store for a keychain service name
StoreFactory = Callable[[str], SecureStore]

PREVIEW_MEDIA: List[Media] = [Media.preview(url) for url in PREVIEW_MEDIA_URLS]


class InstagramClient:
    """
    Public entry point: configure, authorize, fetch and logout.

    The current feed is published through ``latest``. Changing the
    configuration rebinds the credential store; replacing an existing
    configuration clears the published media.

    Usage:
        async with InstagramClient(config) as client:
            await client.authorize(ConsoleAuthSession())
            client.latest.subscribe(print)
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        fetch_automatically: bool = True,
        preview_data: bool = False,
        store_factory: StoreFactory = EncryptedStore,
        http_client: Optional[httpx.AsyncClient] = None,
        scheduler_policy: Optional[IntervalPolicy] = None,
        poll_interval: float = TRIGGER_POLL_INTERVAL,
        max_pages: int = MAX_MEDIA_PAGES,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize client.

        Args:
            config: Session configuration (may be supplied later via configure)
            fetch_automatically: Refetch on a timer while authenticated
            preview_data: Serve canned media without touching the network
            store_factory: Builds the secure store for a keychain service name
            http_client: Shared HTTP client (default: one owned by this client)
            scheduler_policy: Interval policy for automatic fetches
            poll_interval: Seconds between automatic trigger checks
            max_pages: Root media pages to follow per fetch
            clock: Source of the current time
        """
        self.preview_data = preview_data
        self.store_factory = store_factory
        self.clock = clock
        self.latest: StateHolder[List[Media]] = StateHolder([])

        self._owns_http_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(CONNECT_TIMEOUT, read=READ_TIMEOUT),
            follow_redirects=True,
        )

        self.flow = AuthorizationFlow(self.http_client, clock=clock)
        self.pipeline = MediaFetchPipeline(self.http_client, max_pages=max_pages, clock=clock)
        self.scheduler = FetchScheduler(self._on_trigger, policy=scheduler_policy, poll_interval=poll_interval)

        self._fetch_automatically = fetch_automatically
        self._is_authenticated = False
        self._config: Optional[Config] = None
        self._store: Optional[SecureStore] = None
        self._credential_store: Optional[CredentialStore] = None
        self._credential: Optional[Credential] = None
        self._inflight: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Future] = set()
        self._closed = False

        self._bind_config(config)
        self._is_authenticated = preview_data or self._credential is not None

    @classmethod
    def preview(cls) -> "InstagramClient":
        """Client that serves the canned preview feed."""
        config = Config(
            server_url="",
            callback_scheme="",
            client_id="",
            keychain_service_name="myapp",
            keychain_credentials_key="mycredentials",
        )
        return cls(config=config, fetch_automatically=True, preview_data=True, store_factory=MemoryStore)

    async def __aenter__(self) -> "InstagramClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    @property
    def config(self) -> Optional[Config]:
        return self._config

    @property
    def credential(self) -> Optional[Credential]:
        return self._credential

    @property
    def is_authenticated(self) -> bool:
        return self._is_authenticated

    @property
    def fetch_automatically(self) -> bool:
        return self._fetch_automatically

    @fetch_automatically.setter
    def fetch_automatically(self, value: bool) -> None:
        self._fetch_automatically = value
        self.scheduler.is_on = value and self._credential is not None and not self._closed

    async def start(self) -> None:
        """Arm the automatic trigger and run the initial fetch."""
        if self._closed:
            return
        self.scheduler.arm()
        if self._fetch_automatically:
            await self.fetch()

    async def configure(self, config: Optional[Config]) -> None:
        """
        Replace the configuration.

        Rebinds the credential store and reloads the stored credential.
        Replacing an existing configuration clears the published media;
        setting the first one runs the initial fetch.
        """
        if config == self._config:
            return

        previous = self._config
        if previous is not None:
            self._cancel_inflight()
            self.scheduler.policy.reset()
        wants_fetch = self._bind_config(config)

        if previous is not None:
            logger.info("Configuration changed, clearing media")
            self.latest.publish([])

        if wants_fetch or previous is None:
            await self.fetch()

    async def authorize(self, session: AuthSession) -> None:
        """
        Log in interactively through ``session``.

        Raises:
            MissingConfigError: If no configuration is set
            InstafeedError: If the flow fails; no credential is stored
            httpx.HTTPError: If the token exchange fails
        """
        if self._config is None:
            raise MissingConfigError("Configure the client before authorizing")

        credential = await self.flow.authorize(self._config, session)
        logger.info("Instagram authorization successful")

        if self._set_credential(credential):
            await self.fetch()

    async def fetch(self, force: bool = False) -> Optional[List[Media]]:
        """
        Fetch the media feed if one is due and publish it.

        Failures are logged and leave the published media untouched.

        Args:
            force: Fetch even if the interval policy says it is not due

        Returns:
            The fetched media, or None if nothing was fetched
        """
        if self._closed or not self._is_authenticated:
            return None

        if self.preview_data:
            self.latest.publish(list(PREVIEW_MEDIA))
            return self.latest.value

        if self._config is None:
            return None

        if self._inflight is None or self._inflight.done():
            if not self.scheduler.should_fetch(force=force, cache_empty=not self.latest.value):
                logger.debug("Fetch not due, skipping")
                return None
            self.scheduler.started()
            self._inflight = asyncio.ensure_future(self._run_fetch())
        else:
            logger.debug("Fetch already in progress, joining it")

        task = self._inflight
        await asyncio.wait({task})
        if task.cancelled():
            return None
        return task.result()

    def logout(self) -> None:
        """Forget the credential locally. No server-side revocation."""
        logger.info("Logging out")
        self._set_credential(None)

    async def close(self) -> None:
        """Stop background work, release the keychain and the HTTP client."""
        self._closed = True
        self.scheduler.stop()
        self.flow.close()
        self._cancel_inflight()
        for future in list(self._background):
            future.cancel()
        self._release_store()
        self.latest.clear_observers()
        if self._owns_http_client:
            await self.http_client.aclose()
        logger.debug("Client closed")

    async def _run_fetch(self) -> Optional[List[Media]]:
        try:
            media = await self.pipeline.fetch_media(self._credential)
        except Exception as e:
            logger.error(f"Fetch failed: {type(e).__name__}: {e}")
            self.scheduler.failed()
            return None

        self.latest.publish(media)
        self.scheduler.completed()
        return media

    def _on_trigger(self) -> None:
        future = asyncio.ensure_future(self.fetch())
        self._background.add(future)
        future.add_done_callback(self._background.discard)

    def _cancel_inflight(self) -> None:
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
            self.scheduler.failed()
        self._inflight = None

    def _release_store(self) -> None:
        if self._store is not None:
            try:
                self._store.close()
            except Exception as e:
                logger.warning(f"Could not close keychain: {e}")
        self._store = None
        self._credential_store = None

    def _bind_config(self, config: Optional[Config]) -> bool:
        """Bind the store for ``config`` and load its credential."""
        self._config = config
        self._release_store()

        if config is not None:
            try:
                self._store = self.store_factory(config.keychain_service_name)
                self._credential_store = CredentialStore(self._store, clock=self.clock)
            except Exception as e:
                logger.error(f"Could not open keychain '{config.keychain_service_name}': {e}")

        credential = None
        if self._credential_store is not None:
            credential = self._credential_store.load(config.keychain_credentials_key)

        return self._set_credential(credential)

    def _set_credential(self, credential: Optional[Credential]) -> bool:
        """
        Make ``credential`` the active one, or clear the session when None.

        Returns:
            True if an immediate fetch should follow
        """
        self._credential = credential
        key = self._config.keychain_credentials_key if self._config else None

        if credential is not None:
            self._is_authenticated = True
            if self._credential_store is not None and key:
                self._credential_store.save(credential, key)
            self.scheduler.is_on = self._fetch_automatically and not self._closed
            return self._fetch_automatically

        self._cancel_inflight()
        self.scheduler.is_on = False
        self._is_authenticated = False
        if self._credential_store is not None and key:
            self._credential_store.delete(key)
        self.latest.publish([])
        return False
