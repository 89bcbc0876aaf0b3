"""Video lifecycle - archive, unarchive, delete (single and bulk).

Deletes run external cleanup best-effort first, then one local transaction
that prunes stacks, removes every record referencing the videos, marks them
deleted and releases their bytes. A crash can orphan remote objects but never
leaves the counter and the rows disagreeing.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.collaboration import Comment, ShareLink
from ..models.gallery import Gallery, GalleryVideo
from ..models.video import Video
from ..stacks.pruner import active_allowed_ids, prune_stacks_json, retained_allowed_ids
from .cleanup import EffectFailure, ExternalCleanup
from .quota_svc import QuotaLedger, ledger as default_ledger

log = logging.getLogger(__name__)


class BulkAction(str, Enum):
    ARCHIVE = "ARCHIVE"
    UNARCHIVE = "UNARCHIVE"
    DELETE = "DELETE"


class VideosNotFound(Exception):
    """Some requested ids are unknown, deleted, or belong to another org."""

    def __init__(self, missing: Sequence[str]):
        self.missing = list(missing)
        super().__init__(f"Some videoIds not found or not authorized: {', '.join(self.missing)}")


@dataclass
class BulkResult:
    action: BulkAction
    video_ids: list[str]
    released_bytes: int = 0
    cleanup_failures: list[EffectFailure] = field(default_factory=list)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_ids(raw_ids: Iterable[object]) -> tuple[list[uuid.UUID], list[str]]:
    parsed: list[uuid.UUID] = []
    invalid: list[str] = []
    for raw in raw_ids:
        text = str(raw or "").strip()
        if not text:
            continue
        try:
            value = uuid.UUID(text)
        except ValueError:
            invalid.append(text)
            continue
        if value not in parsed:
            parsed.append(value)
    return parsed, invalid


async def load_live_videos(
    db: AsyncSession, org_id: uuid.UUID, raw_ids: Iterable[object]
) -> list[Video]:
    """Org-scoped, non-deleted videos for ``raw_ids``; all must exist."""
    ids, invalid = _parse_ids(raw_ids)
    videos: list[Video] = []
    if ids:
        stmt = select(Video).where(
            Video.id.in_(ids), Video.org_id == org_id, Video.deleted_at.is_(None)
        )
        videos = list((await db.execute(stmt)).scalars().all())
        position = {vid: idx for idx, vid in enumerate(ids)}
        videos.sort(key=lambda v: position[v.id])

    found = {v.id for v in videos}
    missing = invalid + [str(i) for i in ids if i not in found]
    if missing:
        raise VideosNotFound(missing)
    return videos


async def _affected_gallery_ids(db: AsyncSession, video_ids: Sequence[uuid.UUID]) -> list[uuid.UUID]:
    if not video_ids:
        return []
    stmt = select(GalleryVideo.gallery_id).where(GalleryVideo.video_id.in_(video_ids)).distinct()
    return list((await db.execute(stmt)).scalars().all())


async def prune_gallery_stacks(
    db: AsyncSession,
    org_id: uuid.UUID,
    gallery_ids: Sequence[uuid.UUID],
    *,
    keep_archived: bool,
) -> list[uuid.UUID]:
    """Rewrite stacks_json of the given galleries against their current members.

    ``keep_archived=False`` prunes with active semantics (archive),
    ``keep_archived=True`` with retained semantics (delete/tombstone).
    Does not commit. Returns the ids of galleries whose stacks changed.
    """
    if not gallery_ids:
        return []

    galleries = (
        await db.execute(
            select(Gallery).where(
                Gallery.id.in_(gallery_ids),
                Gallery.org_id == org_id,
                Gallery.deleted_at.is_(None),
            )
        )
    ).scalars().all()

    changed: list[uuid.UUID] = []
    for gallery in galleries:
        members = (
            await db.execute(
                select(Video)
                .join(GalleryVideo, GalleryVideo.video_id == Video.id)
                .where(GalleryVideo.gallery_id == gallery.id)
            )
        ).scalars().all()
        allowed = retained_allowed_ids(members) if keep_archived else active_allowed_ids(members)

        next_json, is_changed = prune_stacks_json(gallery.stacks_json, allowed)
        if is_changed:
            gallery.stacks_json = next_json
            changed.append(gallery.id)
    return changed


async def purge_references(db: AsyncSession, video_ids: Sequence[uuid.UUID]) -> None:
    """Delete grouping links, comments and share links pointing at the videos."""
    if not video_ids:
        return
    await db.execute(delete(GalleryVideo).where(GalleryVideo.video_id.in_(video_ids)))
    await db.execute(delete(Comment).where(Comment.video_id.in_(video_ids)))
    await db.execute(delete(ShareLink).where(ShareLink.video_id.in_(video_ids)))


async def retire_videos(
    db: AsyncSession,
    org_id: uuid.UUID,
    videos: Sequence[Video],
    *,
    quota: QuotaLedger,
    now: datetime | None = None,
) -> int:
    """Local half of a delete: mark deleted, prune, purge, release. No commit.

    Callers set any extra fields (e.g. tombstone status) on the videos first
    and commit afterwards, so everything lands in one transaction.
    """
    now = now or _utcnow()
    video_ids = [v.id for v in videos]
    gallery_ids = await _affected_gallery_ids(db, video_ids)

    released = 0
    for video in videos:
        if video.deleted_at is None:
            video.deleted_at = now
        video.archived_at = None
        released += int(video.original_size or 0)
    await db.flush()

    await prune_gallery_stacks(db, org_id, gallery_ids, keep_archived=True)
    await purge_references(db, video_ids)
    await quota.release(db, org_id, released, commit=False)
    return released


async def delete_videos(
    db: AsyncSession,
    org_id: uuid.UUID,
    raw_ids: Iterable[object],
    *,
    cleanup: ExternalCleanup | None = None,
    quota: QuotaLedger | None = None,
) -> BulkResult:
    videos = await load_live_videos(db, org_id, raw_ids)
    cleanup = cleanup or ExternalCleanup()
    quota = quota or default_ledger

    failures = await cleanup.purge(videos)
    released = await retire_videos(db, org_id, videos, quota=quota)
    await db.commit()

    log.info("deleted %d videos org=%s released=%d", len(videos), org_id, released)
    return BulkResult(
        action=BulkAction.DELETE,
        video_ids=[str(v.id) for v in videos],
        released_bytes=released,
        cleanup_failures=failures,
    )


async def archive_videos(db: AsyncSession, org_id: uuid.UUID, raw_ids: Iterable[object]) -> BulkResult:
    videos = await load_live_videos(db, org_id, raw_ids)
    now = _utcnow()
    for video in videos:
        if video.archived_at is None:
            video.archived_at = now
    await db.flush()

    gallery_ids = await _affected_gallery_ids(db, [v.id for v in videos])
    await prune_gallery_stacks(db, org_id, gallery_ids, keep_archived=False)
    await db.commit()
    return BulkResult(action=BulkAction.ARCHIVE, video_ids=[str(v.id) for v in videos])


async def unarchive_videos(db: AsyncSession, org_id: uuid.UUID, raw_ids: Iterable[object]) -> BulkResult:
    """Restore archived videos to the active view. Stacks are not restored."""
    videos = await load_live_videos(db, org_id, raw_ids)
    for video in videos:
        video.archived_at = None
    await db.commit()
    return BulkResult(action=BulkAction.UNARCHIVE, video_ids=[str(v.id) for v in videos])


async def apply_bulk_action(
    db: AsyncSession,
    org_id: uuid.UUID,
    raw_ids: Iterable[object],
    action: BulkAction | str,
    *,
    cleanup: ExternalCleanup | None = None,
    quota: QuotaLedger | None = None,
) -> BulkResult:
    action = BulkAction(action)
    if action is BulkAction.ARCHIVE:
        return await archive_videos(db, org_id, raw_ids)
    if action is BulkAction.UNARCHIVE:
        return await unarchive_videos(db, org_id, raw_ids)
    return await delete_videos(db, org_id, raw_ids, cleanup=cleanup, quota=quota)


async def get_video(db: AsyncSession, org_id: uuid.UUID, video_id: uuid.UUID) -> Video | None:
    stmt = select(Video).where(
        Video.id == video_id, Video.org_id == org_id, Video.deleted_at.is_(None)
    )
    return (await db.execute(stmt)).scalar_one_or_none()
