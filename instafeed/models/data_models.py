"""Data models for Instagram sessions and media."""

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, List, Optional

from instafeed.core.exceptions import DecodeError
from instafeed.utils.config import PREVIEW_CAPTION, TIMESTAMP_FORMAT


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Config:
    """Per-app settings for one Instagram session."""
    server_url: str
    callback_scheme: str
    client_id: str
    keychain_service_name: str
    keychain_credentials_key: str

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        """Build from the camelCase record hosts keep in their settings."""
        try:
            return cls(
                server_url=data["serverURL"],
                callback_scheme=data["callbackScheme"],
                client_id=data["clientId"],
                keychain_service_name=data["keychainServiceName"],
                keychain_credentials_key=data["keychainCredentialsKey"],
            )
        except KeyError as e:
            raise DecodeError(f"Missing config field: {e.args[0]}")

    def to_dict(self) -> dict:
        return {
            "serverURL": self.server_url,
            "callbackScheme": self.callback_scheme,
            "clientId": self.client_id,
            "keychainServiceName": self.keychain_service_name,
            "keychainCredentialsKey": self.keychain_credentials_key,
        }


@dataclass
class Credential:
    """Access token with its absolute expiry time."""
    access_token: str
    expires_at: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if now is None:
            now = utc_now()
        return self.expires_at <= now

    def to_json(self) -> bytes:
        record = {"accessToken": self.access_token, "expires": self.expires_at.isoformat()}
        return json.dumps(record).encode("utf-8")

    @classmethod
    def from_json(cls, raw: bytes) -> "Credential":
        try:
            record = json.loads(raw)
            expires_at = datetime.fromisoformat(record["expires"])
            access_token = record["accessToken"]
        except (ValueError, KeyError, TypeError) as e:
            raise DecodeError(f"Invalid credential record: {e}")
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return cls(access_token=str(access_token), expires_at=expires_at)


@dataclass
class TemporaryCredential:
    """Short-lived token as returned by the token exchange endpoint."""
    access_token: str
    token_type: str
    expires_in: int

    @classmethod
    def from_api(cls, data: Any) -> "TemporaryCredential":
        try:
            return cls(
                access_token=str(data["access_token"]),
                token_type=str(data["token_type"]),
                expires_in=int(data["expires_in"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise DecodeError(f"Invalid token exchange payload: {e}")

    def to_credential(self, now: Optional[datetime] = None) -> Credential:
        if now is None:
            now = utc_now()
        return Credential(
            access_token=self.access_token,
            expires_at=now + timedelta(seconds=self.expires_in),
        )


class MediaType(Enum):
    """Graph API media types."""
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    ALBUM = "CAROUSEL_ALBUM"


def parse_timestamp(value: str) -> datetime:
    """Parse a Graph API timestamp such as ``2021-08-20T09:14:56+0000``."""
    try:
        return datetime.strptime(value, TIMESTAMP_FORMAT)
    except (TypeError, ValueError):
        raise DecodeError(f"Invalid timestamp: {value!r}")


@dataclass
class Media:
    """A single Instagram media item; albums carry their children."""
    id: str
    media_url: str
    media_type: MediaType
    timestamp: datetime
    caption: Optional[str] = None
    thumbnail_url: Optional[str] = None
    children: List["Media"] = field(default_factory=list)

    @property
    def is_album(self) -> bool:
        return self.media_type is MediaType.ALBUM

    @classmethod
    def from_api(cls, data: Any) -> "Media":
        """
        Decode one media object from a Graph API response.

        Raises:
            DecodeError: If a required field is missing or malformed
        """
        if not isinstance(data, dict):
            raise DecodeError(f"Expected media object, got {type(data).__name__}")
        try:
            media_id = str(data["id"])
            media_url = str(data["media_url"])
            media_type = MediaType(data["media_type"])
            timestamp = parse_timestamp(data["timestamp"])
        except KeyError as e:
            raise DecodeError(f"Media is missing field: {e.args[0]}")
        except ValueError as e:
            raise DecodeError(str(e))

        caption = data.get("caption")
        thumbnail_url = data.get("thumbnail_url")

        children: List[Media] = []
        raw_children = data.get("children")
        if isinstance(raw_children, dict):
            raw_children = raw_children.get("data")
        if isinstance(raw_children, list):
            children = [cls.from_api(child) for child in raw_children]

        return cls(
            id=media_id,
            media_url=media_url,
            media_type=media_type,
            timestamp=timestamp,
            caption=caption if isinstance(caption, str) else None,
            thumbnail_url=thumbnail_url if isinstance(thumbnail_url, str) else None,
            children=children,
        )

    @classmethod
    def preview(cls, media_url: str, media_type: MediaType = MediaType.IMAGE) -> "Media":
        """Synthetic item with a locally generated id, used in preview mode."""
        return cls(
            id=str(uuid.uuid4()).upper(),
            media_url=media_url,
            media_type=media_type,
            timestamp=utc_now(),
            caption=PREVIEW_CAPTION,
        )


@dataclass
class Cursors:
    after: str
    before: str


@dataclass
class Paging:
    cursors: Cursors
    previous: Optional[str] = None
    next: Optional[str] = None

    @classmethod
    def from_api(cls, data: Any) -> Optional["Paging"]:
        """Best-effort parse; a malformed block yields None."""
        if not isinstance(data, dict):
            return None
        cursors = data.get("cursors")
        if not isinstance(cursors, dict):
            return None
        after = cursors.get("after")
        before = cursors.get("before")
        if not isinstance(after, str) or not isinstance(before, str):
            return None
        previous = data.get("previous")
        next_url = data.get("next")
        return cls(
            cursors=Cursors(after=after, before=before),
            previous=previous if isinstance(previous, str) else None,
            next=next_url if isinstance(next_url, str) else None,
        )


@dataclass
class MediaListResult:
    """One page of a media listing."""
    data: List[Media] = field(default_factory=list)
    paging: Optional[Paging] = None

    @classmethod
    def from_api(cls, payload: Any) -> "MediaListResult":
        if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
            raise DecodeError("Media list response has no 'data' array")
        return cls(
            data=[Media.from_api(item) for item in payload["data"]],
            paging=Paging.from_api(payload.get("paging")),
        )
