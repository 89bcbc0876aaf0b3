"""Tests for gallery grid and stacks persistence."""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cutroom.models.collaboration import Comment, ShareLink
from cutroom.models.gallery import Gallery, GalleryVideo
from cutroom.models.org import Org
from cutroom.models.video import Video, VideoStatus
from cutroom.services import gallery_svc
from cutroom.services.quota_svc import QuotaLedger
from cutroom.stacks.index import dump_stacks, parse_stacks


@pytest.mark.asyncio
async def test_create_and_list_galleries(db: AsyncSession, org: Org):
    created = await gallery_svc.create_gallery(db, org.id, "  ")
    assert created.title == "Untitled gallery"
    assert created.stacks_json == "{}"

    galleries = await gallery_svc.list_galleries(db, org.id)
    assert [g.id for g in galleries] == [created.id]
    assert await gallery_svc.get_gallery(db, uuid.uuid4(), created.id) is None


@pytest.mark.asyncio
async def test_stack_videos_persists_first_as_parent(
    db: AsyncSession, org: Org, gallery: Gallery, add_video
):
    a = await add_video(gallery)
    b = await add_video(gallery)

    stacks = await gallery_svc.stack_videos(db, gallery, [str(a.id), str(b.id)])

    assert stacks == {str(a.id): [str(a.id), str(b.id)]}
    await db.refresh(gallery)
    assert parse_stacks(gallery.stacks_json) == stacks


@pytest.mark.asyncio
async def test_stack_videos_refuses_unready(db: AsyncSession, org: Org, gallery: Gallery, add_video):
    a = await add_video(gallery)
    b = await add_video(gallery, status=VideoStatus.PROCESSING.value)

    assert await gallery_svc.stack_videos(db, gallery, [str(a.id), str(b.id)]) is None
    await db.refresh(gallery)
    assert gallery.stacks_json == "{}"


@pytest.mark.asyncio
async def test_stack_videos_refuses_videos_from_other_gallery(
    db: AsyncSession, org: Org, gallery: Gallery, add_video
):
    a = await add_video(gallery)
    stray = await add_video()
    assert await gallery_svc.stack_videos(db, gallery, [str(a.id), str(stray.id)]) is None


@pytest.mark.asyncio
async def test_merge_videos_target_first(db: AsyncSession, org: Org, gallery: Gallery, add_video):
    x = await add_video(gallery)
    y = await add_video(gallery)

    stacks = await gallery_svc.merge_videos(db, gallery, str(x.id), str(y.id))

    assert stacks == {str(y.id): [str(y.id), str(x.id)]}


@pytest.mark.asyncio
async def test_unstack_reinserts_after_parent(db: AsyncSession, org: Org, gallery: Gallery, add_video):
    b = await add_video(gallery)
    x = await add_video(gallery)
    a = await add_video(gallery)
    y = await add_video(gallery)
    c = await add_video(gallery)
    gallery.stacks_json = dump_stacks({str(a.id): [str(a.id), str(b.id), str(c.id)]})
    await db.commit()

    stacks = await gallery_svc.unstack_videos(db, gallery, str(a.id))

    assert stacks == {}
    ordered = await gallery_svc.list_gallery_videos(db, gallery.id)
    assert [v.id for v in ordered] == [x.id, a.id, b.id, c.id, y.id]


@pytest.mark.asyncio
async def test_unstack_non_parent_is_noop(db: AsyncSession, org: Org, gallery: Gallery, add_video):
    a = await add_video(gallery)
    assert await gallery_svc.unstack_videos(db, gallery, str(a.id)) is None


@pytest.mark.asyncio
async def test_update_stacks_validates_membership(
    db: AsyncSession, org: Org, gallery: Gallery, add_video
):
    a = await add_video(gallery)
    b = await add_video(gallery)
    outsider = await add_video()

    with pytest.raises(gallery_svc.StackValidationError):
        await gallery_svc.update_stacks(db, gallery, {str(a.id): [str(a.id), str(outsider.id)]})
    with pytest.raises(gallery_svc.StackValidationError):
        await gallery_svc.update_stacks(db, gallery, {}, [str(outsider.id)])
    with pytest.raises(gallery_svc.StackValidationError):
        await gallery_svc.update_stacks(db, gallery, ["not", "a", "map"])
    with pytest.raises(gallery_svc.StackValidationError):
        await gallery_svc.update_stacks(db, gallery, {str(a.id): str(b.id)})

    await db.refresh(gallery)
    assert gallery.stacks_json == "{}"


@pytest.mark.asyncio
async def test_update_stacks_persists_order_and_map(
    db: AsyncSession, org: Org, gallery: Gallery, add_video
):
    a = await add_video(gallery)
    b = await add_video(gallery)
    c = await add_video(gallery)

    stacks = await gallery_svc.update_stacks(
        db,
        gallery,
        {str(c.id): [str(c.id), str(a.id), str(a.id)]},
        [str(c.id), str(b.id), str(a.id)],
    )

    assert stacks == {str(c.id): [str(c.id), str(a.id)]}
    ordered = await gallery_svc.list_gallery_videos(db, gallery.id)
    assert [v.id for v in ordered] == [c.id, b.id, a.id]


@pytest.mark.asyncio
async def test_grid_shows_parents_with_latest_version(
    db: AsyncSession, org: Org, gallery: Gallery, add_video
):
    a = await add_video(gallery)
    b = await add_video(gallery)
    c = await add_video(gallery)
    solo = await add_video(gallery)
    hidden = await add_video(gallery, archived=True)
    gallery.stacks_json = dump_stacks({str(a.id): [str(a.id), str(b.id), str(c.id)]})
    await db.commit()

    cards = await gallery_svc.gallery_grid(db, gallery)

    assert [card.video.id for card in cards] == [a.id, solo.id]
    assert cards[0].latest_id == str(c.id)
    assert cards[0].is_stack
    assert cards[0].version_ids == [str(a.id), str(b.id), str(c.id)]
    assert not cards[1].is_stack

    with_archived = await gallery_svc.gallery_grid(db, gallery, include_archived=True)
    assert hidden.id in [card.video.id for card in with_archived]


@pytest.mark.asyncio
async def test_resolve_card_redirects_hidden_members(
    db: AsyncSession, org: Org, gallery: Gallery, add_video
):
    a = await add_video(gallery)
    b = await add_video(gallery)
    gallery.stacks_json = dump_stacks({str(a.id): [str(a.id), str(b.id)]})

    assert gallery_svc.resolve_card(gallery, str(a.id)) == str(b.id)
    assert gallery_svc.resolve_card(gallery, str(b.id)) == str(b.id)
    assert gallery_svc.resolve_card(gallery, "elsewhere") == "elsewhere"


async def count(db: AsyncSession, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


async def second_gallery(db: AsyncSession, org: Org, title: str = "Outtakes") -> Gallery:
    other = Gallery(id=uuid.uuid4(), org_id=org.id, title=title, stacks_json="{}")
    db.add(other)
    await db.commit()
    return other


@pytest.mark.asyncio
async def test_delete_gallery_retires_videos_and_releases_bytes(
    db: AsyncSession, org: Org, gallery: Gallery, add_video, cleanup, fake_mux, fake_store
):
    other = await second_gallery(db, org)
    first = await add_video(gallery, size=300, mux_asset_id="asset-1")
    second = await add_video(gallery, size=500)
    keeper = await add_video(other, size=100)
    gallery.stacks_json = dump_stacks({str(first.id): [str(first.id), str(second.id)]})
    db.add(Comment(org_id=org.id, video_id=first.id, body="color pass"))
    db.add(ShareLink(org_id=org.id, video_id=second.id, token="share-video"))
    db.add(ShareLink(org_id=org.id, gallery_id=gallery.id, token="share-gallery"))
    db.add(ShareLink(org_id=org.id, gallery_id=other.id, token="share-other"))
    org.storage_used_bytes = 900
    await db.commit()

    result = await gallery_svc.delete_galleries(
        db, org.id, [str(gallery.id)], cleanup=cleanup, quota=QuotaLedger(limit_bytes=10_000)
    )

    assert result.gallery_ids == [str(gallery.id)]
    assert result.video_ids == [str(first.id), str(second.id)]
    assert result.released_bytes == 800
    assert result.cleanup_failures == []

    await db.refresh(org)
    assert org.storage_used_bytes == 100
    await db.refresh(gallery)
    assert gallery.deleted_at is not None
    for video in (first, second):
        await db.refresh(video)
        assert video.deleted_at is not None
    await db.refresh(keeper)
    assert keeper.deleted_at is None

    assert await count(db, Comment) == 0
    tokens = (await db.execute(select(ShareLink.token))).scalars().all()
    assert tokens == ["share-other"]
    links = (await db.execute(select(GalleryVideo.video_id))).scalars().all()
    assert links == [keeper.id]

    fake_mux.delete_asset.assert_awaited_once_with("asset-1")
    assert fake_store.delete_object.await_count == 2
    assert await gallery_svc.get_gallery(db, org.id, gallery.id) is None


@pytest.mark.asyncio
async def test_delete_gallery_survives_provider_outage(
    db: AsyncSession, org: Org, gallery: Gallery, add_video, cleanup, fake_mux, fake_store
):
    fake_mux.delete_asset.side_effect = RuntimeError("mux down")
    fake_store.delete_object.side_effect = RuntimeError("r2 down")
    video = await add_video(gallery, size=400, mux_asset_id="asset-1")
    org.storage_used_bytes = 400
    await db.commit()

    result = await gallery_svc.delete_galleries(db, org.id, [gallery.id], cleanup=cleanup)

    assert len(result.cleanup_failures) == 2
    await db.refresh(video)
    assert video.deleted_at is not None
    await db.refresh(org)
    assert org.storage_used_bytes == 0


@pytest.mark.asyncio
async def test_shared_video_counts_once_across_galleries(
    db: AsyncSession, org: Org, gallery: Gallery, add_video, cleanup
):
    other = await second_gallery(db, org)
    shared = await add_video(gallery, size=700)
    db.add(GalleryVideo(gallery_id=other.id, video_id=shared.id, sort_order=1))
    await add_video(other, size=50)
    org.storage_used_bytes = 750
    await db.commit()

    preview = await gallery_svc.preview_gallery_delete(db, org.id, [gallery.id, other.id])
    assert preview.video_count == 2
    assert preview.total_bytes == 750

    result = await gallery_svc.apply_gallery_bulk_action(
        db, org.id, [gallery.id, other.id], "DELETE", cleanup=cleanup
    )
    assert result.released_bytes == 750
    await db.refresh(org)
    assert org.storage_used_bytes == 0


@pytest.mark.asyncio
async def test_archive_and_unarchive_gallery(db: AsyncSession, org: Org, gallery: Gallery, add_video):
    video = await add_video(gallery, archived=True)

    await gallery_svc.archive_galleries(db, org.id, [gallery.id])
    await db.refresh(gallery)
    assert gallery.archived_at is not None
    assert await gallery_svc.list_galleries(db, org.id, include_archived=False) == []
    assert [g.id for g in await gallery_svc.list_galleries(db, org.id)] == [gallery.id]

    result = await gallery_svc.unarchive_galleries(db, org.id, [gallery.id])
    assert result.video_ids == [str(video.id)]
    await db.refresh(gallery)
    assert gallery.archived_at is None
    refreshed = (await db.execute(select(Video).where(Video.id == video.id))).scalar_one()
    assert refreshed.archived_at is None


@pytest.mark.asyncio
async def test_gallery_lifecycle_rejects_unknown_or_deleted(
    db: AsyncSession, org: Org, gallery: Gallery, cleanup
):
    with pytest.raises(gallery_svc.GalleriesNotFound) as exc_info:
        await gallery_svc.archive_galleries(db, org.id, [gallery.id, uuid.uuid4(), "nope"])
    assert "nope" in exc_info.value.missing
    await db.refresh(gallery)
    assert gallery.archived_at is None

    await gallery_svc.delete_galleries(db, org.id, [gallery.id], cleanup=cleanup)
    with pytest.raises(gallery_svc.GalleriesNotFound):
        await gallery_svc.delete_galleries(db, org.id, [gallery.id], cleanup=cleanup)
    with pytest.raises(gallery_svc.GalleriesNotFound):
        await gallery_svc.preview_gallery_delete(db, org.id, [])
