"""Gallery routes - grid, stacks editing, card resolution, archive/delete."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..dependencies import get_cleanup, get_ledger
from ..models.gallery import Gallery
from ..models.org import Org
from ..schemas.requests import (
    BulkGalleries,
    GalleryCreate,
    StackCreate,
    StackMerge,
    StacksUpdate,
    Unstack,
)
from ..schemas.responses import card_payload, gallery_payload
from ..services import gallery_svc
from ..services.cleanup import ExternalCleanup
from ..services.quota_svc import QuotaLedger
from ..services.video_svc import BulkAction
from ..tenant.deps import get_current_org

router = APIRouter(prefix="/orgs/{slug}/galleries", tags=["galleries"])


async def _load_gallery(db: AsyncSession, org: Org, gallery_id: uuid.UUID) -> Gallery:
    gallery = await gallery_svc.get_gallery(db, org.id, gallery_id)
    if not gallery:
        raise HTTPException(status_code=404, detail="Gallery not found")
    return gallery


def _stacks_result(stacks) -> dict[str, object]:
    # Mutator refusals are a no-op, not an error.
    if stacks is None:
        return {"ok": False}
    return {"ok": True, "stacks": stacks}


def _bulk_payload(result: gallery_svc.GalleryBulkResult) -> dict[str, object]:
    return {
        "ok": True,
        "action": result.action.value,
        "galleryIds": result.gallery_ids,
        "videoIds": result.video_ids,
        "releasedBytes": str(result.released_bytes),
        "cleanupFailures": [f.name for f in result.cleanup_failures],
    }


@router.post("/", status_code=201)
async def create_gallery(
    body: GalleryCreate,
    org: Org = Depends(get_current_org),
    db: AsyncSession = Depends(get_db),
):
    gallery = await gallery_svc.create_gallery(db, org.id, body.title)
    return gallery_payload(gallery)


@router.get("/")
async def list_galleries(
    include_archived: bool = True,
    org: Org = Depends(get_current_org),
    db: AsyncSession = Depends(get_db),
):
    galleries = await gallery_svc.list_galleries(db, org.id, include_archived=include_archived)
    return {"ok": True, "galleries": [gallery_payload(g) for g in galleries]}


@router.get("/{gallery_id}")
async def gallery_grid(
    gallery_id: uuid.UUID,
    include_archived: bool = False,
    org: Org = Depends(get_current_org),
    db: AsyncSession = Depends(get_db),
):
    gallery = await _load_gallery(db, org, gallery_id)
    cards = await gallery_svc.gallery_grid(db, gallery, include_archived=include_archived)
    return {
        "ok": True,
        "gallery": gallery_payload(gallery),
        "cards": [card_payload(c) for c in cards],
    }


@router.put("/{gallery_id}/stacks")
async def update_stacks(
    gallery_id: uuid.UUID,
    body: StacksUpdate,
    org: Org = Depends(get_current_org),
    db: AsyncSession = Depends(get_db),
):
    gallery = await _load_gallery(db, org, gallery_id)
    try:
        stacks = await gallery_svc.update_stacks(db, gallery, body.stacks, body.ordered_ids)
    except gallery_svc.StackValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"ok": True, "stacks": stacks}


@router.post("/{gallery_id}/stacks")
async def create_stack(
    gallery_id: uuid.UUID,
    body: StackCreate,
    org: Org = Depends(get_current_org),
    db: AsyncSession = Depends(get_db),
):
    gallery = await _load_gallery(db, org, gallery_id)
    return _stacks_result(await gallery_svc.stack_videos(db, gallery, body.ordered_ids))


@router.post("/{gallery_id}/stacks/merge")
async def merge_stacks(
    gallery_id: uuid.UUID,
    body: StackMerge,
    org: Org = Depends(get_current_org),
    db: AsyncSession = Depends(get_db),
):
    gallery = await _load_gallery(db, org, gallery_id)
    return _stacks_result(
        await gallery_svc.merge_videos(db, gallery, body.source_id, body.target_id)
    )


@router.post("/{gallery_id}/stacks/unstack")
async def unstack(
    gallery_id: uuid.UUID,
    body: Unstack,
    org: Org = Depends(get_current_org),
    db: AsyncSession = Depends(get_db),
):
    gallery = await _load_gallery(db, org, gallery_id)
    return _stacks_result(await gallery_svc.unstack_videos(db, gallery, body.parent_id))


@router.get("/{gallery_id}/cards/{video_id}")
async def resolve_card(
    gallery_id: uuid.UUID,
    video_id: str,
    org: Org = Depends(get_current_org),
    db: AsyncSession = Depends(get_db),
):
    gallery = await _load_gallery(db, org, gallery_id)
    latest_id = gallery_svc.resolve_card(gallery, video_id)
    return {"ok": True, "videoId": video_id, "latestId": latest_id, "redirect": latest_id != video_id}


@router.post("/bulk")
async def bulk_action(
    body: BulkGalleries,
    org: Org = Depends(get_current_org),
    db: AsyncSession = Depends(get_db),
    quota: QuotaLedger = Depends(get_ledger),
    cleanup: ExternalCleanup = Depends(get_cleanup),
):
    if not body.gallery_ids:
        raise HTTPException(status_code=400, detail="Missing galleryIds")
    try:
        action = BulkAction((body.action or "").strip().upper())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid action") from exc

    try:
        result = await gallery_svc.apply_gallery_bulk_action(
            db, org.id, body.gallery_ids, action, cleanup=cleanup, quota=quota
        )
    except gallery_svc.GalleriesNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _bulk_payload(result)


@router.post("/bulk-delete-preview")
async def bulk_delete_preview(
    body: BulkGalleries,
    org: Org = Depends(get_current_org),
    db: AsyncSession = Depends(get_db),
):
    if not body.gallery_ids:
        raise HTTPException(status_code=400, detail="galleryIds required")
    try:
        preview = await gallery_svc.preview_gallery_delete(db, org.id, body.gallery_ids)
    except gallery_svc.GalleriesNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {
        "ok": True,
        "galleryIds": preview.gallery_ids,
        "videoCount": preview.video_count,
        "bytes": str(preview.total_bytes),
    }


@router.post("/{gallery_id}/archive")
async def archive_gallery(
    gallery_id: uuid.UUID,
    org: Org = Depends(get_current_org),
    db: AsyncSession = Depends(get_db),
):
    try:
        result = await gallery_svc.archive_galleries(db, org.id, [gallery_id])
    except gallery_svc.GalleriesNotFound as exc:
        raise HTTPException(status_code=404, detail="Gallery not found") from exc
    return _bulk_payload(result)


@router.post("/{gallery_id}/unarchive")
async def unarchive_gallery(
    gallery_id: uuid.UUID,
    org: Org = Depends(get_current_org),
    db: AsyncSession = Depends(get_db),
):
    try:
        result = await gallery_svc.unarchive_galleries(db, org.id, [gallery_id])
    except gallery_svc.GalleriesNotFound as exc:
        raise HTTPException(status_code=404, detail="Gallery not found") from exc
    return _bulk_payload(result)


@router.delete("/{gallery_id}")
async def delete_gallery(
    gallery_id: uuid.UUID,
    org: Org = Depends(get_current_org),
    db: AsyncSession = Depends(get_db),
    quota: QuotaLedger = Depends(get_ledger),
    cleanup: ExternalCleanup = Depends(get_cleanup),
):
    try:
        result = await gallery_svc.delete_galleries(
            db, org.id, [gallery_id], cleanup=cleanup, quota=quota
        )
    except gallery_svc.GalleriesNotFound as exc:
        raise HTTPException(status_code=404, detail="Gallery not found") from exc
    return _bulk_payload(result)
