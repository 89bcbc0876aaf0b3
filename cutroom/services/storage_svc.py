"""Storage reporting: usage, breakdown by gallery, largest videos."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.gallery import Gallery, GalleryVideo
from ..models.video import Video
from .quota_svc import QuotaLedger


@dataclass
class GalleryBucket:
    gallery_id: str
    gallery_name: str
    bytes: int = 0
    active_bytes: int = 0
    archived_bytes: int = 0
    video_count: int = 0

    def to_payload(self) -> dict[str, object]:
        return {
            "galleryId": self.gallery_id,
            "galleryName": self.gallery_name,
            "videoCount": self.video_count,
            "bytes": str(self.bytes),
            "activeBytes": str(self.active_bytes),
            "archivedBytes": str(self.archived_bytes),
        }


@dataclass
class StorageBreakdown:
    limit_bytes: int
    used_bytes: int
    active_bytes: int
    archived_bytes: int
    counter_used_bytes: int
    top_galleries: list[GalleryBucket] = field(default_factory=list)
    largest_videos: list[dict[str, object]] = field(default_factory=list)

    def to_payload(self) -> dict[str, object]:
        return {
            "ok": True,
            "limitBytes": str(self.limit_bytes),
            "usedBytes": str(self.used_bytes),
            "activeBytes": str(self.active_bytes),
            "archivedBytes": str(self.archived_bytes),
            "counterUsedBytes": str(self.counter_used_bytes),
            "topGalleries": [g.to_payload() for g in self.top_galleries],
            "largestVideos": self.largest_videos,
        }


def _video_row(video: Video, gallery: Gallery | None = None) -> dict[str, object]:
    return {
        "id": str(video.id),
        "title": video.title or "Untitled",
        "sizeBytes": str(int(video.original_size or 0)),
        "archivedAt": video.archived_at.isoformat() if video.archived_at else None,
        "createdAt": video.created_at.isoformat() if video.created_at else None,
        "galleryId": str(gallery.id) if gallery else None,
        "galleryName": gallery.title if gallery else None,
    }


async def usage(db: AsyncSession, org_id: uuid.UUID, quota: QuotaLedger) -> dict[str, str]:
    """Counter value plus summed ground truth."""
    snapshot = await quota.snapshot(db, org_id)
    live = await quota.live_bytes(db, org_id)
    return {
        "usedBytes": str(snapshot.used_bytes),
        "liveBytes": str(live),
        "remainingBytes": str(snapshot.remaining_bytes),
        "limitBytes": str(snapshot.limit_bytes),
    }


async def largest_videos(db: AsyncSession, org_id: uuid.UUID, limit: int = 5) -> list[dict[str, object]]:
    stmt = (
        select(Video)
        .where(
            Video.org_id == org_id,
            Video.deleted_at.is_(None),
            Video.original_size.is_not(None),
        )
        .order_by(Video.original_size.desc())
        .limit(limit)
    )
    return [_video_row(v) for v in (await db.execute(stmt)).scalars().all()]


async def breakdown(
    db: AsyncSession, org_id: uuid.UUID, quota: QuotaLedger, *, top: int = 10
) -> StorageBreakdown:
    snapshot = await quota.snapshot(db, org_id)

    videos = list(
        (
            await db.execute(
                select(Video).where(
                    Video.org_id == org_id,
                    Video.deleted_at.is_(None),
                    Video.original_size.is_not(None),
                )
            )
        ).scalars().all()
    )

    links = (
        await db.execute(
            select(GalleryVideo.video_id, Gallery)
            .join(Gallery, Gallery.id == GalleryVideo.gallery_id)
            .where(Gallery.org_id == org_id, Gallery.deleted_at.is_(None))
        )
    ).all()
    galleries_by_video: dict[uuid.UUID, list[Gallery]] = {}
    for video_id, gallery in links:
        galleries_by_video.setdefault(video_id, []).append(gallery)

    used = active = archived = 0
    buckets: dict[uuid.UUID, GalleryBucket] = {}
    for video in videos:
        size = int(video.original_size or 0)
        if size <= 0:
            continue
        used += size
        is_archived = video.archived_at is not None
        if is_archived:
            archived += size
        else:
            active += size

        # A video counts toward every gallery it sits in.
        for gallery in galleries_by_video.get(video.id, []):
            bucket = buckets.setdefault(
                gallery.id, GalleryBucket(str(gallery.id), gallery.title or f"Gallery {gallery.id}")
            )
            bucket.bytes += size
            bucket.video_count += 1
            if is_archived:
                bucket.archived_bytes += size
            else:
                bucket.active_bytes += size

    largest = sorted(videos, key=lambda v: int(v.original_size or 0), reverse=True)[:top]
    return StorageBreakdown(
        limit_bytes=snapshot.limit_bytes,
        used_bytes=used,
        active_bytes=active,
        archived_bytes=archived,
        counter_used_bytes=snapshot.used_bytes,
        top_galleries=sorted(buckets.values(), key=lambda b: b.bytes, reverse=True)[:top],
        largest_videos=[
            _video_row(v, (galleries_by_video.get(v.id) or [None])[0]) for v in largest
        ],
    )
