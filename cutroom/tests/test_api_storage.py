"""Test storage API routes."""

from __future__ import annotations

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from cutroom.models.gallery import Gallery
from cutroom.models.org import Org


@pytest.mark.asyncio
async def test_usage_and_reconcile(client: AsyncClient, db: AsyncSession, org: Org, add_video):
    await add_video(size=1000)
    await add_video(size=500)
    org.storage_used_bytes = 4000
    await db.commit()

    usage = (await client.get(f"/orgs/{org.slug}/storage/")).json()
    assert usage["usedBytes"] == "4000"
    assert usage["liveBytes"] == "1500"

    resp = await client.post(f"/orgs/{org.slug}/storage/reconcile")
    assert resp.status_code == 200
    data = resp.json()
    assert data["beforeBytes"] == "4000"
    assert data["usedBytes"] == "1500"
    assert data["driftExceeded"] is True

    usage = (await client.get(f"/orgs/{org.slug}/storage/")).json()
    assert usage["usedBytes"] == "1500"


@pytest.mark.asyncio
async def test_breakdown_splits_active_and_archived(
    client: AsyncClient, org: Org, gallery: Gallery, add_video
):
    await add_video(gallery, size=1000, title="big")
    await add_video(gallery, size=200, archived=True, title="old")
    await add_video(size=50, title="loose")

    data = (await client.get(f"/orgs/{org.slug}/storage/breakdown")).json()
    assert data["usedBytes"] == "1250"
    assert data["activeBytes"] == "1050"
    assert data["archivedBytes"] == "200"
    assert data["topGalleries"][0]["galleryId"] == str(gallery.id)
    assert data["topGalleries"][0]["bytes"] == "1200"
    assert [v["title"] for v in data["largestVideos"]] == ["big", "old", "loose"]


@pytest.mark.asyncio
async def test_largest_videos_limit(client: AsyncClient, org: Org, add_video):
    for size in (10, 30, 20):
        await add_video(size=size)

    data = (await client.get(f"/orgs/{org.slug}/storage/largest", params={"limit": 2})).json()
    assert [v["sizeBytes"] for v in data["videos"]] == ["30", "20"]
