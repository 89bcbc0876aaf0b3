"""Video routes - upload init, processing handoff, archive/delete (single + bulk)."""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..dependencies import get_cleanup, get_ingest, get_ledger
from ..models.org import Org
from ..providers.mux import ProviderError, ProviderNotConfigured
from ..schemas.requests import BulkVideos, UploadInit
from ..schemas.responses import video_payload
from ..services import video_svc
from ..services.cleanup import ExternalCleanup
from ..services.ingest_svc import IngestCoordinator, UploadRejected
from ..services.quota_svc import QuotaExceeded, QuotaLedger
from ..tenant.deps import get_current_org

log = logging.getLogger(__name__)

router = APIRouter(prefix="/orgs/{slug}/videos", tags=["videos"])


def quota_exceeded_response(exc: QuotaExceeded) -> JSONResponse:
    return JSONResponse(
        {"ok": False, "error": "Storage limit exceeded", **exc.reservation.to_payload()},
        status_code=402,
    )


def _bulk_payload(result: video_svc.BulkResult) -> dict[str, object]:
    return {
        "ok": True,
        "action": result.action.value,
        "videoIds": result.video_ids,
        "releasedBytes": str(result.released_bytes),
        "cleanupFailures": [f.name for f in result.cleanup_failures],
    }


@router.post("/uploads")
async def init_upload(
    body: UploadInit,
    org: Org = Depends(get_current_org),
    db: AsyncSession = Depends(get_db),
    ingest: IngestCoordinator = Depends(get_ingest),
):
    try:
        ticket = await ingest.init_upload(
            db,
            org.id,
            gallery_id=body.gallery_id,
            filename=body.filename,
            size=body.size,
            content_type=body.content_type,
            title=body.title,
            description=body.description,
        )
    except UploadRejected as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    except QuotaExceeded as exc:
        return quota_exceeded_response(exc)
    except ProviderNotConfigured as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return ticket.to_payload()


@router.post("/bulk")
async def bulk_action(
    body: BulkVideos,
    org: Org = Depends(get_current_org),
    db: AsyncSession = Depends(get_db),
    quota: QuotaLedger = Depends(get_ledger),
    cleanup: ExternalCleanup = Depends(get_cleanup),
):
    if not body.video_ids:
        raise HTTPException(status_code=400, detail="Missing videoIds")
    try:
        action = video_svc.BulkAction((body.action or "").strip().upper())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid action") from exc

    try:
        result = await video_svc.apply_bulk_action(
            db, org.id, body.video_ids, action, cleanup=cleanup, quota=quota
        )
    except video_svc.VideosNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _bulk_payload(result)


@router.get("/{video_id}")
async def get_video(
    video_id: uuid.UUID,
    org: Org = Depends(get_current_org),
    db: AsyncSession = Depends(get_db),
):
    video = await video_svc.get_video(db, org.id, video_id)
    if not video:
        raise HTTPException(status_code=404, detail="Video not found")
    return {"ok": True, "video": video_payload(video)}


@router.post("/{video_id}/process")
async def start_processing(
    video_id: uuid.UUID,
    org: Org = Depends(get_current_org),
    db: AsyncSession = Depends(get_db),
    ingest: IngestCoordinator = Depends(get_ingest),
):
    try:
        video = await ingest.start_processing(db, org.id, video_id)
    except UploadRejected as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    except ProviderNotConfigured as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except ProviderError as exc:
        log.warning("start processing failed video=%s: %s", video_id, exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    if not video:
        raise HTTPException(status_code=404, detail="Video not found")
    return {"ok": True, "video": video_payload(video), "muxAssetId": video.mux_asset_id}


@router.post("/{video_id}/archive")
async def archive_video(
    video_id: uuid.UUID,
    org: Org = Depends(get_current_org),
    db: AsyncSession = Depends(get_db),
):
    try:
        result = await video_svc.archive_videos(db, org.id, [video_id])
    except video_svc.VideosNotFound as exc:
        raise HTTPException(status_code=404, detail="Video not found") from exc
    return _bulk_payload(result)


@router.post("/{video_id}/unarchive")
async def unarchive_video(
    video_id: uuid.UUID,
    org: Org = Depends(get_current_org),
    db: AsyncSession = Depends(get_db),
):
    try:
        result = await video_svc.unarchive_videos(db, org.id, [video_id])
    except video_svc.VideosNotFound as exc:
        raise HTTPException(status_code=404, detail="Video not found") from exc
    return _bulk_payload(result)


@router.delete("/{video_id}")
async def delete_video(
    video_id: uuid.UUID,
    org: Org = Depends(get_current_org),
    db: AsyncSession = Depends(get_db),
    quota: QuotaLedger = Depends(get_ledger),
    cleanup: ExternalCleanup = Depends(get_cleanup),
):
    try:
        result = await video_svc.delete_videos(db, org.id, [video_id], cleanup=cleanup, quota=quota)
    except video_svc.VideosNotFound as exc:
        raise HTTPException(status_code=404, detail="Video not found") from exc
    return _bulk_payload(result)
