"""Gallery service - grid ordering, version stacks, and gallery archive/delete."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.collaboration import ShareLink
from ..models.gallery import Gallery, GalleryVideo
from ..models.video import Video
from ..stacks.index import (
    StackMap,
    build_child_to_parent,
    dump_stacks,
    is_hidden_member,
    latest_id_for_card,
    parse_stacks,
    sanitize_stacks,
    stack_ids,
)
from ..stacks.mutator import StackCandidate, create_or_replace_stack, merge_on_drop, unstack
from .cleanup import EffectFailure, ExternalCleanup
from .quota_svc import QuotaLedger, ledger as default_ledger
from .video_svc import BulkAction, retire_videos

log = logging.getLogger(__name__)


class StackValidationError(Exception):
    """Stacks/ordering input references ids outside the gallery."""


@dataclass(frozen=True)
class GridCard:
    """One visible card in a gallery grid."""

    video: Video
    latest_id: str
    version_ids: list[str]

    @property
    def is_stack(self) -> bool:
        return len(self.version_ids) >= 2


async def create_gallery(db: AsyncSession, org_id: uuid.UUID, title: str) -> Gallery:
    gallery = Gallery(org_id=org_id, title=title.strip() or "Untitled gallery", stacks_json="{}")
    db.add(gallery)
    await db.commit()
    await db.refresh(gallery)
    return gallery


async def get_gallery(db: AsyncSession, org_id: uuid.UUID, gallery_id: uuid.UUID) -> Gallery | None:
    stmt = select(Gallery).where(
        Gallery.id == gallery_id, Gallery.org_id == org_id, Gallery.deleted_at.is_(None)
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def list_galleries(
    db: AsyncSession, org_id: uuid.UUID, *, include_archived: bool = True
) -> list[Gallery]:
    stmt = (
        select(Gallery)
        .where(Gallery.org_id == org_id, Gallery.deleted_at.is_(None))
        .order_by(Gallery.created_at.desc())
    )
    if not include_archived:
        stmt = stmt.where(Gallery.archived_at.is_(None))
    return list((await db.execute(stmt)).scalars().all())


async def list_gallery_videos(
    db: AsyncSession, gallery_id: uuid.UUID, *, include_archived: bool = True
) -> list[Video]:
    """Live videos in grid order."""
    stmt = (
        select(Video)
        .join(GalleryVideo, GalleryVideo.video_id == Video.id)
        .where(GalleryVideo.gallery_id == gallery_id, Video.deleted_at.is_(None))
        .order_by(GalleryVideo.sort_order.asc(), GalleryVideo.created_at.asc())
    )
    if not include_archived:
        stmt = stmt.where(Video.archived_at.is_(None))
    return list((await db.execute(stmt)).scalars().all())


async def _persist(
    db: AsyncSession,
    gallery: Gallery,
    stacks: Mapping[str, Sequence[str]],
    ordered_ids: Sequence[str] | None = None,
) -> None:
    gallery.stacks_json = dump_stacks(stacks)
    if ordered_ids:
        positions = {vid: idx for idx, vid in enumerate(ordered_ids)}
        entries = (
            await db.execute(select(GalleryVideo).where(GalleryVideo.gallery_id == gallery.id))
        ).scalars().all()
        for entry in entries:
            idx = positions.get(str(entry.video_id))
            if idx is not None:
                entry.sort_order = idx
    await db.commit()


async def update_stacks(
    db: AsyncSession,
    gallery: Gallery,
    raw_stacks: object,
    ordered_ids: Sequence[object] | None = None,
) -> StackMap:
    """Replace a gallery's stacks map and (optionally) its grid order.

    Every parent, member and ordered id must belong to the gallery; nothing
    is written if any does not.
    """
    if raw_stacks is None:
        raw_stacks = {}
    if not isinstance(raw_stacks, Mapping):
        raise StackValidationError("stacks must be an object")

    allowed = {
        str(vid)
        for vid in (
            await db.execute(
                select(GalleryVideo.video_id).where(GalleryVideo.gallery_id == gallery.id)
            )
        ).scalars().all()
    }

    cleaned_order = [str(i).strip() for i in (ordered_ids or []) if str(i or "").strip()]
    for vid in cleaned_order:
        if vid not in allowed:
            raise StackValidationError(f"orderedIds contains a videoId not in this gallery: {vid}")

    for raw_parent, children in raw_stacks.items():
        parent_id = str(raw_parent or "").strip()
        if not parent_id:
            continue
        if parent_id not in allowed:
            raise StackValidationError(f"stacks contains a parentId not in this gallery: {parent_id}")
        if not isinstance(children, (list, tuple)):
            raise StackValidationError(f"stacks[{parent_id}] must be an array")
        for raw_child in children:
            child_id = str(raw_child or "").strip()
            if child_id and child_id not in allowed:
                raise StackValidationError(
                    f"stacks[{parent_id}] contains a videoId not in this gallery: {child_id}"
                )

    stacks = sanitize_stacks(raw_stacks)
    await _persist(db, gallery, stacks, cleaned_order)
    return stacks


async def _candidates(db: AsyncSession, gallery: Gallery) -> dict[str, StackCandidate]:
    videos = await list_gallery_videos(db, gallery.id)
    return {str(v.id): StackCandidate.from_video(v) for v in videos}


async def stack_videos(
    db: AsyncSession, gallery: Gallery, ordered_ids: Sequence[str]
) -> StackMap | None:
    """Group videos into one stack (first id is version 1). None = no-op."""
    change = create_or_replace_stack(
        ordered_ids, await _candidates(db, gallery), parse_stacks(gallery.stacks_json)
    )
    if change is None:
        return None
    await _persist(db, gallery, change.stacks)
    return change.stacks


async def merge_videos(
    db: AsyncSession, gallery: Gallery, source_id: str, target_id: str
) -> StackMap | None:
    """Drag-and-drop merge: source's stack joins target's. None = no-op."""
    candidates = await _candidates(db, gallery)
    stacks = parse_stacks(gallery.stacks_json)
    merged = merge_on_drop(source_id, target_id, stacks, candidates)
    if merged is None:
        return None
    change = create_or_replace_stack(merged, candidates, stacks)
    if change is None:
        return None
    await _persist(db, gallery, change.stacks)
    return change.stacks


async def unstack_videos(db: AsyncSession, gallery: Gallery, parent_id: str) -> StackMap | None:
    """Dissolve a stack; versions land right after the parent in the grid."""
    videos = await list_gallery_videos(db, gallery.id)
    result = unstack(parent_id, [str(v.id) for v in videos], parse_stacks(gallery.stacks_json))
    if result is None:
        return None
    await _persist(db, gallery, result.stacks, result.ordered_ids)
    return result.stacks


async def gallery_grid(
    db: AsyncSession, gallery: Gallery, *, include_archived: bool = False
) -> list[GridCard]:
    """Visible cards: stack parents and unstacked videos, in grid order."""
    videos = await list_gallery_videos(db, gallery.id, include_archived=include_archived)
    stacks = parse_stacks(gallery.stacks_json)
    child_to_parent = build_child_to_parent(stacks)

    cards: list[GridCard] = []
    for video in videos:
        vid = str(video.id)
        if is_hidden_member(vid, child_to_parent):
            continue
        cards.append(
            GridCard(
                video=video,
                latest_id=latest_id_for_card(vid, stacks, child_to_parent),
                version_ids=stack_ids(vid, stacks),
            )
        )
    return cards


def resolve_card(gallery: Gallery, video_id: str) -> str:
    """Where opening ``video_id`` should land: the newest version of its stack."""
    return latest_id_for_card(str(video_id), parse_stacks(gallery.stacks_json))


class GalleriesNotFound(Exception):
    """Some requested gallery ids are unknown, deleted, or belong to another org."""

    def __init__(self, missing: Sequence[str]):
        self.missing = list(missing)
        super().__init__(f"Some galleryIds not found or not authorized: {', '.join(self.missing)}")


@dataclass
class GalleryBulkResult:
    action: BulkAction
    gallery_ids: list[str]
    video_ids: list[str] = field(default_factory=list)
    released_bytes: int = 0
    cleanup_failures: list[EffectFailure] = field(default_factory=list)


@dataclass(frozen=True)
class DeletePreview:
    gallery_ids: list[str]
    video_count: int
    total_bytes: int


async def load_live_galleries(
    db: AsyncSession, org_id: uuid.UUID, raw_ids: Iterable[object]
) -> list[Gallery]:
    """Org-scoped, non-deleted galleries for ``raw_ids`` in request order; all must exist."""
    ids: list[uuid.UUID] = []
    missing: list[str] = []
    for raw in raw_ids:
        text = str(raw or "").strip()
        if not text:
            continue
        try:
            value = uuid.UUID(text)
        except ValueError:
            missing.append(text)
            continue
        if value not in ids:
            ids.append(value)

    galleries: list[Gallery] = []
    if ids:
        stmt = select(Gallery).where(
            Gallery.id.in_(ids), Gallery.org_id == org_id, Gallery.deleted_at.is_(None)
        )
        found = {g.id: g for g in (await db.execute(stmt)).scalars().all()}
        galleries = [found[i] for i in ids if i in found]
        missing += [str(i) for i in ids if i not in found]

    if missing or not galleries:
        raise GalleriesNotFound(missing)
    return galleries


async def _member_videos(db: AsyncSession, gallery_ids: Sequence[uuid.UUID]) -> list[Video]:
    """Live videos linked to any of the galleries, each once."""
    stmt = (
        select(Video)
        .join(GalleryVideo, GalleryVideo.video_id == Video.id)
        .where(GalleryVideo.gallery_id.in_(gallery_ids), Video.deleted_at.is_(None))
        .order_by(GalleryVideo.sort_order.asc())
    )
    return list((await db.execute(stmt)).scalars().unique().all())


async def archive_galleries(
    db: AsyncSession, org_id: uuid.UUID, raw_ids: Iterable[object]
) -> GalleryBulkResult:
    """Hide galleries from the active list. Their videos and stacks are untouched."""
    galleries = await load_live_galleries(db, org_id, raw_ids)
    now = datetime.now(timezone.utc)
    for gallery in galleries:
        if gallery.archived_at is None:
            gallery.archived_at = now
    await db.commit()
    return GalleryBulkResult(action=BulkAction.ARCHIVE, gallery_ids=[str(g.id) for g in galleries])


async def unarchive_galleries(
    db: AsyncSession, org_id: uuid.UUID, raw_ids: Iterable[object]
) -> GalleryBulkResult:
    """Restore galleries and bring their archived videos back to the active view."""
    galleries = await load_live_galleries(db, org_id, raw_ids)
    gallery_ids = [g.id for g in galleries]
    for gallery in galleries:
        gallery.archived_at = None

    videos = await _member_videos(db, gallery_ids)
    for video in videos:
        video.archived_at = None
    await db.commit()
    return GalleryBulkResult(
        action=BulkAction.UNARCHIVE,
        gallery_ids=[str(i) for i in gallery_ids],
        video_ids=[str(v.id) for v in videos],
    )


async def delete_galleries(
    db: AsyncSession,
    org_id: uuid.UUID,
    raw_ids: Iterable[object],
    *,
    cleanup: ExternalCleanup | None = None,
    quota: QuotaLedger | None = None,
) -> GalleryBulkResult:
    """Delete galleries together with every live video in them.

    External cleanup runs first and best-effort. Then one transaction retires
    the videos (stacks, links, comments, share links, bytes), drops the
    galleries' own share links and remaining links, and soft-deletes the
    galleries.
    """
    galleries = await load_live_galleries(db, org_id, raw_ids)
    gallery_ids = [g.id for g in galleries]
    videos = await _member_videos(db, gallery_ids)
    cleanup = cleanup or ExternalCleanup()
    quota = quota or default_ledger

    failures = await cleanup.purge(videos)

    now = datetime.now(timezone.utc)
    released = await retire_videos(db, org_id, videos, quota=quota, now=now)
    await db.execute(delete(ShareLink).where(ShareLink.gallery_id.in_(gallery_ids)))
    await db.execute(delete(GalleryVideo).where(GalleryVideo.gallery_id.in_(gallery_ids)))
    for gallery in galleries:
        gallery.deleted_at = now
        gallery.archived_at = None
    await db.commit()

    log.info(
        "deleted %d galleries org=%s videos=%d released=%d",
        len(galleries), org_id, len(videos), released,
    )
    return GalleryBulkResult(
        action=BulkAction.DELETE,
        gallery_ids=[str(i) for i in gallery_ids],
        video_ids=[str(v.id) for v in videos],
        released_bytes=released,
        cleanup_failures=failures,
    )


async def apply_gallery_bulk_action(
    db: AsyncSession,
    org_id: uuid.UUID,
    raw_ids: Iterable[object],
    action: BulkAction | str,
    *,
    cleanup: ExternalCleanup | None = None,
    quota: QuotaLedger | None = None,
) -> GalleryBulkResult:
    action = BulkAction(action)
    if action is BulkAction.ARCHIVE:
        return await archive_galleries(db, org_id, raw_ids)
    if action is BulkAction.UNARCHIVE:
        return await unarchive_galleries(db, org_id, raw_ids)
    return await delete_galleries(db, org_id, raw_ids, cleanup=cleanup, quota=quota)


async def preview_gallery_delete(
    db: AsyncSession, org_id: uuid.UUID, raw_ids: Iterable[object]
) -> DeletePreview:
    """Bytes a gallery delete would release; a video in several galleries counts once."""
    galleries = await load_live_galleries(db, org_id, raw_ids)
    videos = await _member_videos(db, [g.id for g in galleries])
    return DeletePreview(
        gallery_ids=[str(g.id) for g in galleries],
        video_count=len(videos),
        total_bytes=sum(int(v.original_size or 0) for v in videos),
    )
