"""Upload ingest: reserve -> create record -> issue credential, with rollback.

Only the reservation needs atomicity. Record creation and credential
issuance are best-effort; if either fails the reservation is released so a
client only ever sees "reserved but failed" transiently.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.gallery import Gallery, GalleryVideo
from ..models.video import Video, VideoStatus
from ..providers.mux import MuxClient
from ..providers.object_store import ObjectStore, make_original_key
from .quota_svc import QuotaExceeded, QuotaLedger

log = logging.getLogger(__name__)


class UploadRejected(Exception):
    """Raised for invalid upload requests (caller error, nothing reserved)."""

    def __init__(self, message: str, status_code: int = 400):
        self.status_code = status_code
        super().__init__(message)


@dataclass(frozen=True)
class UploadTicket:
    video_id: uuid.UUID
    original_key: str
    upload_url: str
    expires_in: int
    reserved_bytes: int
    headers: dict[str, str] = field(default_factory=dict)

    def to_payload(self) -> dict[str, object]:
        return {
            "ok": True,
            "videoId": str(self.video_id),
            "originalKey": self.original_key,
            "uploadUrl": self.upload_url,
            "headers": self.headers,
            "expiresIn": self.expires_in,
            "usedReservationBytes": str(self.reserved_bytes),
        }


class IngestCoordinator:
    def __init__(self, ledger: QuotaLedger, store_factory=None, mux_factory=None):
        self.ledger = ledger
        self._store_factory = store_factory or ObjectStore.from_settings
        self._mux_factory = mux_factory or MuxClient.from_settings

    async def init_upload(
        self,
        db: AsyncSession,
        org_id: uuid.UUID,
        *,
        gallery_id: uuid.UUID | str | None,
        filename: str | None,
        size: int | float | str | None,
        content_type: str | None = None,
        title: str | None = None,
        description: str | None = None,
    ) -> UploadTicket:
        """Reserve storage for an upload and hand back a presigned PUT.

        Raises:
            UploadRejected: bad input or unknown gallery; nothing reserved.
            QuotaExceeded: the org has no room for ``size`` bytes.
        """
        incoming = _coerce_size(size)
        filename = (filename or "").strip()
        content_type = (content_type or "").strip() or "application/octet-stream"
        title = (title or "").strip() or "Untitled"
        description = (description or "").strip() or None

        if incoming is None:
            raise UploadRejected("Missing size")
        if not gallery_id:
            raise UploadRejected("Missing galleryId")
        if not filename:
            raise UploadRejected("Missing filename")
        try:
            gallery_uuid = gallery_id if isinstance(gallery_id, uuid.UUID) else uuid.UUID(str(gallery_id))
        except ValueError as exc:
            raise UploadRejected("Gallery not found", status_code=404) from exc

        gallery = (
            await db.execute(
                select(Gallery).where(
                    Gallery.id == gallery_uuid,
                    Gallery.org_id == org_id,
                    Gallery.deleted_at.is_(None),
                )
            )
        ).scalar_one_or_none()
        if not gallery:
            raise UploadRejected("Gallery not found", status_code=404)

        # RESERVE
        reservation = await self.ledger.reserve(db, org_id, incoming)
        if not reservation.ok:
            raise QuotaExceeded(reservation)

        try:
            # CREATE_RECORD
            # Append after the highest slot; link deletes leave gaps in the order.
            sort_order = (
                await db.execute(
                    select(func.coalesce(func.max(GalleryVideo.sort_order), -1) + 1).where(
                        GalleryVideo.gallery_id == gallery.id
                    )
                )
            ).scalar_one()

            video = Video(
                id=uuid.uuid4(),
                org_id=org_id,
                title=title,
                description=description,
                status=VideoStatus.UPLOADED.value,
                original_name=filename,
                original_mime=content_type,
                original_size=incoming,
            )
            video.original_key = make_original_key(org_id, video.id, filename)
            db.add(video)
            db.add(GalleryVideo(gallery_id=gallery.id, video_id=video.id, sort_order=sort_order))
            await db.flush()

            # ISSUE_CREDENTIAL
            store = self._store_factory()
            upload_url = store.presign_put(
                video.original_key,
                content_type,
                metadata={"orgId": str(org_id), "videoId": str(video.id)},
            )
            await db.commit()
        except Exception:
            await db.rollback()
            await self._rollback_reservation(db, org_id, incoming)
            raise

        return UploadTicket(
            video_id=video.id,
            original_key=video.original_key,
            upload_url=upload_url,
            expires_in=store.signed_url_ttl,
            reserved_bytes=incoming,
            headers={"content-type": content_type},
        )

    async def _rollback_reservation(self, db: AsyncSession, org_id: uuid.UUID, incoming: int) -> None:
        try:
            await self.ledger.release(db, org_id, incoming)
        except Exception:
            # Reconciliation will pick up the leaked bytes.
            log.exception("reservation rollback failed org=%s bytes=%d", org_id, incoming)
        else:
            log.warning("upload init failed; released reservation org=%s bytes=%d", org_id, incoming)

    async def start_processing(self, db: AsyncSession, org_id: uuid.UUID, video_id: uuid.UUID) -> Video | None:
        """Hand an uploaded original to Mux. Returns None if the video is unknown."""
        video = (
            await db.execute(
                select(Video).where(
                    Video.id == video_id,
                    Video.org_id == org_id,
                    Video.deleted_at.is_(None),
                )
            )
        ).scalar_one_or_none()
        if not video:
            return None
        if not video.original_key:
            raise UploadRejected("Video has no uploaded original")
        if video.mux_asset_id:
            return video

        store = self._store_factory()
        source_url = store.presign_get(video.original_key, expires_in=max(store.signed_url_ttl, 3600))
        async with self._mux_factory() as mux:
            asset = await mux.create_asset(source_url)

        playback_ids = asset.get("playback_ids") or []
        playback_id = playback_ids[0].get("id") if playback_ids else None

        video.mux_asset_id = asset.get("id")
        video.mux_playback_id = playback_id
        video.status = VideoStatus.PROCESSING.value
        await db.commit()
        await db.refresh(video)
        return video


def _coerce_size(raw: int | float | str | None) -> int | None:
    """Positive integer byte count, or None."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if value != value or value <= 0 or value == float("inf"):
        return None
    return int(value)
