"""Tests for data model decoding."""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import NOW, media_item, media_page
from instafeed.core.exceptions import DecodeError, FetchError
from instafeed.models.data_models import (
    Config,
    Credential,
    Media,
    MediaListResult,
    MediaType,
    Paging,
    TemporaryCredential,
)


def test_config_equality_and_round_trip(config):
    same = Config.from_dict(config.to_dict())
    assert same == config
    assert Config.from_dict({**config.to_dict(), "clientId": "y"}) != config


def test_config_from_dict_missing_field():
    with pytest.raises(DecodeError, match="serverURL"):
        Config.from_dict({"callbackScheme": "myapp"})


def test_temporary_credential_computes_expiry():
    temporary = TemporaryCredential.from_api({"access_token": "t", "token_type": "bearer", "expires_in": 3600})
    credential = temporary.to_credential(NOW)
    assert credential.access_token == "t"
    assert credential.expires_at == NOW + timedelta(seconds=3600)


def test_temporary_credential_rejects_bad_payload():
    with pytest.raises(DecodeError):
        TemporaryCredential.from_api({"access_token": "t"})


def test_credential_record_shape():
    credential = Credential(access_token="t", expires_at=NOW)
    restored = Credential.from_json(credential.to_json())
    assert restored == credential
    assert b'"accessToken"' in credential.to_json()
    assert b'"expires"' in credential.to_json()


def test_credential_from_garbage():
    with pytest.raises(DecodeError):
        Credential.from_json(b"not json")


def test_credential_expiry_boundary():
    credential = Credential(access_token="t", expires_at=NOW)
    assert credential.is_expired(NOW)
    assert not credential.is_expired(NOW - timedelta(seconds=1))


def test_media_from_api():
    media = Media.from_api({**media_item("1", caption="hello"), "thumbnail_url": "https://cdn.example.com/t.jpg"})
    assert media.id == "1"
    assert media.media_type is MediaType.IMAGE
    assert media.caption == "hello"
    assert media.thumbnail_url == "https://cdn.example.com/t.jpg"
    assert media.timestamp == datetime(2024, 4, 30, 9, 14, 56, tzinfo=timezone.utc)
    assert media.children == []


def test_media_album_type_and_embedded_children():
    payload = {**media_item("2", "CAROUSEL_ALBUM"), "children": {"data": [media_item("2a")]}}
    media = Media.from_api(payload)
    assert media.is_album
    assert [child.id for child in media.children] == ["2a"]


@pytest.mark.parametrize(
    "payload",
    [
        {"id": "1", "media_type": "IMAGE", "timestamp": "2024-04-30T09:14:56+0000"},
        {**media_item("1"), "media_type": "STORY"},
        {**media_item("1"), "timestamp": "yesterday"},
    ],
)
def test_media_rejects_invalid_payload(payload):
    with pytest.raises(DecodeError):
        Media.from_api(payload)


def test_preview_media_has_local_id():
    first = Media.preview("https://example.com/a.jpg")
    second = Media.preview("https://example.com/a.jpg")
    assert first.id != second.id
    assert first.caption == "Preview image comment"
    assert first.thumbnail_url is None


def test_media_list_result_with_paging():
    result = MediaListResult.from_api(media_page([media_item("1")], next_url="https://graph.instagram.com/next"))
    assert [m.id for m in result.data] == ["1"]
    assert result.paging.cursors.after == "AFTER"
    assert result.paging.next == "https://graph.instagram.com/next"
    assert result.paging.previous is None


def test_paging_is_best_effort():
    assert Paging.from_api({"cursors": "broken"}) is None
    result = MediaListResult.from_api({"data": [], "paging": {"next": 5}})
    assert result.paging is None


def test_media_list_requires_data():
    with pytest.raises(DecodeError):
        MediaListResult.from_api({"paging": {}})


def test_fetch_error_from_body_shapes():
    body = {"message": "Invalid token", "type": "OAuthException", "code": 190, "fbtrace_id": "abc"}
    error = FetchError.from_body(body, 400)
    assert (error.message, error.type, error.code, error.trace_id, error.status_code) == (
        "Invalid token", "OAuthException", 190, "abc", 400,
    )
    assert FetchError.from_body({"error": body}).code == 190
    assert FetchError.from_body({"detail": "nope"}) is None
    assert FetchError.from_body(None) is None
