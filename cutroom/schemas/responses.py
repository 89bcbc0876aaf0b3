"""JSON renderers for API responses. Byte counts are decimal strings."""

from __future__ import annotations

from ..models.gallery import Gallery
from ..models.org import Org
from ..models.video import Video
from ..services.gallery_svc import GridCard
from ..stacks.index import parse_stacks


def _iso(value) -> str | None:
    return value.isoformat() if value else None


def org_payload(org: Org) -> dict[str, object]:
    return {
        "id": str(org.id),
        "name": org.name,
        "slug": org.slug,
        "storageUsedBytes": str(int(org.storage_used_bytes or 0)),
    }


def video_payload(video: Video) -> dict[str, object]:
    return {
        "id": str(video.id),
        "title": video.title,
        "description": video.description,
        "status": video.status,
        "failureReason": video.failure_reason,
        "originalName": video.original_name,
        "sizeBytes": str(int(video.original_size or 0)),
        "playbackUrl": video.playback_url,
        "thumbnailUrl": video.thumbnail_url,
        "archivedAt": _iso(video.archived_at),
        "createdAt": _iso(video.created_at),
    }


def gallery_payload(gallery: Gallery) -> dict[str, object]:
    return {
        "id": str(gallery.id),
        "title": gallery.title,
        "stacks": parse_stacks(gallery.stacks_json),
        "archivedAt": _iso(gallery.archived_at),
        "createdAt": _iso(gallery.created_at),
    }


def card_payload(card: GridCard) -> dict[str, object]:
    return {
        **video_payload(card.video),
        "latestId": card.latest_id,
        "versionIds": card.version_ids,
        "isStack": card.is_stack,
    }
