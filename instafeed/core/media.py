"""Media feed fetching with concurrent album expansion."""

import asyncio
from dataclasses import replace
from datetime import datetime
from typing import Callable, List, Optional

import httpx

from instafeed.core.exceptions import DecodeError, FetchError, MissingCredentialsError, ServerResponseError
from instafeed.models.data_models import Credential, Media, MediaListResult, utc_now
from instafeed.utils.config import CHILDREN_FIELDS, INSTAGRAM_GRAPH_URL, INSTAGRAM_MEDIA_URL, MAX_MEDIA_PAGES, MEDIA_FIELDS
from instafeed.utils.logging import get_logger, redact_token

logger = get_logger(__name__)


class MediaFetchPipeline:
    """
    Fetches the user's media list and expands carousel albums.

    Album children are requested concurrently, one request per album. The
    result keeps the order of the root list, and every child takes over its
    album's caption. A single failed request fails the whole fetch.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        max_pages: int = MAX_MEDIA_PAGES,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize pipeline.

        Args:
            http_client: Client used for all Graph API requests
            max_pages: Upper bound on root pages to follow via ``paging.next``
            clock: Source of the current time for expiry checks
        """
        self.http_client = http_client
        self.max_pages = max(1, max_pages)
        self.clock = clock

    async def fetch_media(self, credential: Optional[Credential]) -> List[Media]:
        """
        Fetch the media feed for ``credential``.

        Returns:
            Media in feed order, albums with their children filled in

        Raises:
            MissingCredentialsError: If there is no usable access token
            FetchError: If the Graph API returned a structured error
            ServerResponseError: On any other non-2xx response
            DecodeError: If a response body cannot be decoded
            httpx.HTTPError: On network failure
        """
        if credential is None or credential.is_expired(self.clock()):
            raise MissingCredentialsError("No valid access token")

        token = credential.access_token
        root = await self._fetch_root(token)
        logger.debug(f"Root list has {len(root)} items")

        media = await self._expand_all(root, token)
        logger.info(f"Fetched {len(media)} media items")
        return media

    async def _fetch_root(self, token: str) -> List[Media]:
        params = {"fields": ",".join(MEDIA_FIELDS), "access_token": token}
        page = await self._get_list(INSTAGRAM_MEDIA_URL, token, params)
        items = list(page.data)

        pages = 1
        while pages < self.max_pages and page.paging and page.paging.next:
            page = await self._get_list(page.paging.next, token)
            items.extend(page.data)
            pages += 1

        return items

    async def _fetch_children(self, album: Media, token: str) -> Media:
        url = f"{INSTAGRAM_GRAPH_URL}/{album.id}/children"
        params = {"fields": ",".join(CHILDREN_FIELDS), "access_token": token}
        page = await self._get_list(url, token, params)
        children = [replace(child, caption=album.caption) for child in page.data]
        return replace(album, children=children)

    async def _resolved(self, media: Media) -> Media:
        return media

    async def _expand_all(self, root: List[Media], token: str) -> List[Media]:
        tasks = [
            asyncio.ensure_future(
                self._fetch_children(item, token) if item.is_album else self._resolved(item)
            )
            for item in root
        ]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

    async def _get_list(self, url: str, token: str, params: Optional[dict] = None) -> MediaListResult:
        response = await self.http_client.get(url, params=params)
        logger.debug(f"GET {redact_token(str(response.request.url), token)} -> {response.status_code}")

        if not response.is_success:
            try:
                body = response.json()
            except ValueError:
                body = None
            error = FetchError.from_body(body, response.status_code)
            if error is not None:
                logger.warning(f"Graph API error: {error}")
                raise error
            logger.warning(f"Unexpected status code {response.status_code} from Graph API")
            raise ServerResponseError(response.status_code)

        try:
            payload = response.json()
        except ValueError as e:
            raise DecodeError(f"Invalid JSON from Graph API: {e}")

        return MediaListResult.from_api(payload)
