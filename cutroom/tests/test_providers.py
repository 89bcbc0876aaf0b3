"""Tests for the Mux client and object store wrapper."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import httpx
import pytest

from cutroom.config import settings
from cutroom.providers.mux import (
    MuxClient,
    ProviderError,
    ProviderNotConfigured,
    hls_url,
    pick_thumbnail_time,
    thumbnail_url,
)
from cutroom.providers.object_store import ObjectStore, make_original_key


@pytest.mark.parametrize(
    "duration,expected",
    [(None, 1), (0, 1), (2, 0.5), (6, 1.5), (10, 2.5), (10.5, 5), (120, 5)],
)
def test_pick_thumbnail_time(duration, expected):
    assert pick_thumbnail_time(duration) == expected


def test_derived_urls():
    assert hls_url("pb") == "https://stream.mux.com/pb.m3u8"
    assert hls_url(None) is None
    assert thumbnail_url("pb", 1.5) == "https://image.mux.com/pb/thumbnail.jpg?time=1.5"
    assert thumbnail_url("pb", 1 / 3) == "https://image.mux.com/pb/thumbnail.jpg?time=0.33"


def test_original_key_is_deterministic():
    key = make_original_key("org-1", "vid-1", "My Film (final).mp4")
    assert key == "originals/org-1/vid-1/My-Film-final.mp4"
    assert make_original_key("org-1", "vid-1", "My Film (final).mp4") == key
    assert make_original_key("o", "v", "???") == "originals/o/v/upload"


@pytest.mark.asyncio
async def test_create_asset_posts_source_url():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        seen["auth"] = request.headers.get("authorization")
        return httpx.Response(201, json={"data": {"id": "asset-1", "playback_ids": [{"id": "pb"}]}})

    async with MuxClient("id", "secret", transport=httpx.MockTransport(handler)) as mux:
        asset = await mux.create_asset("https://r2.test/get")

    assert asset["id"] == "asset-1"
    assert seen["path"] == "/video/v1/assets"
    assert seen["body"] == {"inputs": [{"url": "https://r2.test/get"}], "playback_policy": ["public"]}
    assert seen["auth"].startswith("Basic ")


@pytest.mark.asyncio
async def test_create_asset_error_raises():
    transport = httpx.MockTransport(lambda request: httpx.Response(400, text="bad input"))
    async with MuxClient("id", "secret", transport=transport) as mux:
        with pytest.raises(ProviderError, match="400"):
            await mux.create_asset("https://r2.test/get")


@pytest.mark.asyncio
async def test_delete_asset_treats_404_as_done():
    transport = httpx.MockTransport(lambda request: httpx.Response(404))
    async with MuxClient("id", "secret", transport=transport) as mux:
        await mux.delete_asset("gone")

    transport = httpx.MockTransport(lambda request: httpx.Response(500))
    async with MuxClient("id", "secret", transport=transport) as mux:
        with pytest.raises(ProviderError):
            await mux.delete_asset("asset-1")


def test_from_settings_requires_credentials(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(settings, "mux_token_id", None)
    with pytest.raises(ProviderNotConfigured):
        MuxClient.from_settings()

    monkeypatch.setattr(settings, "object_store_bucket", None)
    with pytest.raises(ProviderNotConfigured):
        ObjectStore.from_settings()


def test_object_store_presigns_with_ttl():
    client = MagicMock()
    client.generate_presigned_url.return_value = "https://signed"
    store = ObjectStore(client, "bucket", signed_url_ttl=120)

    assert store.presign_put("k", "video/mp4", metadata={"orgId": "o"}) == "https://signed"
    client.generate_presigned_url.assert_called_with(
        "put_object",
        Params={"Bucket": "bucket", "Key": "k", "ContentType": "video/mp4", "Metadata": {"orgId": "o"}},
        ExpiresIn=120,
    )

    store.presign_get("k", expires_in=3600)
    client.generate_presigned_url.assert_called_with(
        "get_object", Params={"Bucket": "bucket", "Key": "k"}, ExpiresIn=3600
    )


@pytest.mark.asyncio
async def test_object_store_delete_runs_in_thread():
    client = MagicMock()
    store = ObjectStore(client, "bucket")
    await store.delete_object("k")
    client.delete_object.assert_called_once_with(Bucket="bucket", Key="k")
