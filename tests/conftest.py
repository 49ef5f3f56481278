"""Shared fixtures for the Instafeed test suite."""

from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import httpx
import pytest

from instafeed.models.data_models import Config, Credential
from instafeed.storage.keychain import MemoryStore

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return NOW


def media_item(media_id: str, media_type: str = "IMAGE", caption: Optional[str] = None) -> dict:
    item = {
        "id": media_id,
        "media_url": f"https://cdn.example.com/{media_id}.jpg",
        "media_type": media_type,
        "timestamp": "2024-04-30T09:14:56+0000",
    }
    if caption is not None:
        item["caption"] = caption
    return item


def media_page(items: List[dict], next_url: Optional[str] = None) -> dict:
    paging = {"cursors": {"after": "AFTER", "before": "BEFORE"}}
    if next_url:
        paging["next"] = next_url
    return {"data": items, "paging": paging}


def make_http_client(handler: Callable) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class FakeAuthSession:
    """Returns a canned callback URL, echoing back the state it was given."""

    def __init__(self, code: Optional[str] = "CODE", state: Optional[str] = None, error: Optional[Exception] = None):
        self.code = code
        self.state = state
        self.error = error
        self.presented: List[tuple] = []

    async def present(self, url: str, callback_scheme: str) -> str:
        self.presented.append((url, callback_scheme))
        if self.error is not None:
            raise self.error
        state = self.state
        if state is None:
            state = httpx.URL(url).params["state"]
        query = f"state={state}"
        if self.code is not None:
            query = f"code={self.code}&{query}"
        return f"https://example.com/authenticated?{query}"


@pytest.fixture
def config() -> Config:
    return Config(
        server_url="https://auth.example.com",
        callback_scheme="myapp",
        client_id="x",
        keychain_service_name="com.example.instafeed",
        keychain_credentials_key="credentials",
    )


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def valid_credential() -> Credential:
    return Credential(access_token="token-123", expires_at=NOW + timedelta(hours=1))
