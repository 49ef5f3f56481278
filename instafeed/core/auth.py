"""OAuth2 authorization-code flow against the Instagram Basic Display API."""

import asyncio
import uuid
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Protocol
from urllib.parse import parse_qs, urlencode, urlsplit

import httpx

from instafeed.core.exceptions import (
    ContextDiedError,
    DecodeError,
    InvalidAuthorizationURLError,
    MissingCodeError,
    StateMismatchError,
    UnableToProcessURLError,
)
from instafeed.models.data_models import Config, Credential, TemporaryCredential, utc_now
from instafeed.utils.config import (
    INSTAGRAM_AUTHORIZE_URL,
    OAUTH_RESPONSE_TYPE,
    OAUTH_SCOPES,
    REDIRECT_PATH,
    TOKEN_EXCHANGE_PATH,
)
from instafeed.utils.logging import get_logger

logger = get_logger(__name__)


class AuthSession(Protocol):
    """Interactive surface that shows the login page and captures the redirect."""

    async def present(self, url: str, callback_scheme: str) -> str:
        """
        Show ``url`` and wait for the redirect to ``callback_scheme``.

        Returns:
            The full callback URL

        Raises:
            AuthorizationCancelledError: If the user dismissed the login
        """
        ...


class AuthState(Enum):
    """Authorization flow state."""
    IDLE = "idle"
    AWAITING_CALLBACK = "awaiting_callback"
    EXCHANGING = "exchanging"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


def _server_base(config: Config) -> str:
    parts = urlsplit(config.server_url)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise InvalidAuthorizationURLError(f"Invalid server URL: {config.server_url!r}")
    return config.server_url.rstrip("/")


class AuthorizationFlow:
    """
    Drives one authorization attempt at a time.

    A fresh ``state`` nonce is generated each time the authorization URL is
    built; the callback must echo the latest one back.
    """

    def __init__(self, http_client: httpx.AsyncClient, clock: Callable[[], datetime] = utc_now):
        self.http_client = http_client
        self.clock = clock
        self.state = AuthState.IDLE
        self._nonce: Optional[str] = None
        self._pending: Optional[asyncio.Future] = None
        self._closed = False

    @property
    def nonce(self) -> Optional[str]:
        """The nonce sent with the most recent authorization URL."""
        return self._nonce

    def build_authorization_url(self, config: Config) -> str:
        """
        Compose the authorization URL with a new state nonce.

        Raises:
            InvalidAuthorizationURLError: If the server URL is unusable
        """
        redirect_uri = f"{_server_base(config)}{REDIRECT_PATH}"
        self._nonce = str(uuid.uuid4()).upper()
        query = urlencode(
            {
                "client_id": config.client_id,
                "redirect_uri": redirect_uri,
                "scope": ",".join(OAUTH_SCOPES),
                "response_type": OAUTH_RESPONSE_TYPE,
                "state": self._nonce,
            },
            safe=",",
        )
        return f"{INSTAGRAM_AUTHORIZE_URL}?{query}"

    def validate_callback(self, url: Optional[str]) -> str:
        """
        Extract the authorization code from the callback URL.

        Returns:
            The authorization code

        Raises:
            UnableToProcessURLError: If the URL cannot be parsed
            MissingCodeError: If the URL has no ``code`` parameter
            StateMismatchError: If ``state`` differs from the pending nonce
        """
        if not url:
            raise UnableToProcessURLError("No callback URL received")
        try:
            parts = urlsplit(url)
        except ValueError as e:
            raise UnableToProcessURLError(f"Unable to parse callback URL: {e}")
        if not parts.scheme:
            raise UnableToProcessURLError(f"Callback URL has no scheme: {url!r}")

        params = parse_qs(parts.query)
        codes = params.get("code")
        if not codes or not codes[0]:
            raise MissingCodeError("Callback URL carried no authorization code")

        returned_state = (params.get("state") or [None])[0]
        if self._nonce is None or returned_state != self._nonce:
            raise StateMismatchError("Callback state does not match the authorization request")

        return codes[0]

    async def exchange_code(self, config: Config, code: str) -> Credential:
        """
        Exchange an authorization code for a short-lived access token.

        Raises:
            httpx.HTTPError: On network failure or non-2xx status
            DecodeError: If the response body is not a token payload
        """
        url = f"{_server_base(config)}{TOKEN_EXCHANGE_PATH}/{code}"
        response = await self.http_client.get(url)
        response.raise_for_status()

        try:
            payload = response.json()
        except ValueError as e:
            raise DecodeError(f"Invalid JSON from token exchange: {e}")

        temporary = TemporaryCredential.from_api(payload)
        credential = temporary.to_credential(self.clock())
        logger.info(f"Access token obtained, expires at {credential.expires_at.isoformat()}")
        return credential

    async def authorize(self, config: Config, session: AuthSession) -> Credential:
        """
        Run the complete flow: present, validate the callback and exchange the code.

        Returns:
            The new credential

        Raises:
            ContextDiedError: If the flow is closed before completion
        """
        if self._closed:
            raise ContextDiedError("Authorization flow is closed")

        url = self.build_authorization_url(config)
        self.state = AuthState.AWAITING_CALLBACK
        logger.info("Presenting Instagram login")

        try:
            callback_url = await self._present(session, url, config.callback_scheme)
            code = self.validate_callback(callback_url)

            self.state = AuthState.EXCHANGING
            credential = await self.exchange_code(config, code)
        except BaseException as e:
            self.state = AuthState.FAILED
            logger.warning(f"Authorization failed: {type(e).__name__}: {e}")
            raise

        self.state = AuthState.AUTHENTICATED
        return credential

    async def _present(self, session: AuthSession, url: str, callback_scheme: str) -> str:
        self._pending = asyncio.ensure_future(session.present(url, callback_scheme))
        try:
            callback_url = await self._pending
        except asyncio.CancelledError:
            if self._closed:
                raise ContextDiedError("Client closed during authorization")
            raise
        finally:
            self._pending = None

        if self._closed:
            raise ContextDiedError("Client closed during authorization")
        return callback_url

    def close(self) -> None:
        """Abort any outstanding login; later calls fail with ContextDiedError."""
        self._closed = True
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
