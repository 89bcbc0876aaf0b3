"""Processing-completion guard for Mux webhook callbacks.

Guarantee: a READY (playable) video implies its org was within the storage
limit when it became ready. Callbacks can arrive late, out of order, or more
than once, so every path here is idempotent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.video import TERMINAL_STATUSES, Video, VideoStatus
from ..providers.mux import hls_url, pick_thumbnail_time, thumbnail_url
from .cleanup import ExternalCleanup
from .quota_svc import QuotaLedger
from .video_svc import retire_videos

log = logging.getLogger(__name__)

READY_EVENT = "video.asset.ready"
ERRORED_EVENT = "video.asset.errored"
ASSET_EVENT_PREFIX = "video.asset."


class CompletionOutcome(str, Enum):
    IGNORED = "ignored"      # unknown or already-deleted asset
    DUPLICATE = "duplicate"  # terminal status already applied
    BLOCKED = "blocked"      # over budget; tombstoned
    UPDATED = "updated"


@dataclass(frozen=True)
class ProcessingEvent:
    external_id: str | None
    type: str | None
    playback_id: str | None = None
    duration: float | None = None
    failure_reason: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "ProcessingEvent":
        """Read a Mux webhook body; tolerates missing/misshapen fields."""
        if not isinstance(payload, dict):
            return cls(external_id=None, type=None)

        data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
        obj = payload.get("object") if isinstance(payload.get("object"), dict) else {}

        external_id = data.get("id") or obj.get("id")
        playback_ids = data.get("playback_ids")
        playback_id = None
        if isinstance(playback_ids, list) and playback_ids and isinstance(playback_ids[0], dict):
            playback_id = playback_ids[0].get("id")

        duration = data.get("duration")
        if isinstance(duration, bool) or not isinstance(duration, (int, float)):
            duration = None

        reason = None
        errors = data.get("errors")
        if isinstance(errors, dict):
            messages = errors.get("messages")
            if isinstance(messages, list) and messages:
                reason = "; ".join(str(m) for m in messages)
            elif errors.get("type"):
                reason = str(errors["type"])

        event_type = payload.get("type")
        return cls(
            external_id=str(external_id) if external_id else None,
            type=str(event_type) if event_type else None,
            playback_id=str(playback_id) if playback_id else None,
            duration=float(duration) if duration is not None else None,
            failure_reason=reason,
        )

    @property
    def target_status(self) -> VideoStatus | None:
        if self.type == READY_EVENT:
            return VideoStatus.READY
        if self.type == ERRORED_EVENT:
            return VideoStatus.FAILED
        if self.type and self.type.startswith(ASSET_EVENT_PREFIX):
            return VideoStatus.PROCESSING
        return None


class CompletionGuard:
    def __init__(self, quota: QuotaLedger, cleanup: ExternalCleanup | None = None):
        self.quota = quota
        self.cleanup = cleanup or ExternalCleanup()

    async def handle(self, db: AsyncSession, event: ProcessingEvent) -> CompletionOutcome:
        if not event.external_id:
            return CompletionOutcome.IGNORED

        video = (
            await db.execute(select(Video).where(Video.mux_asset_id == event.external_id))
        ).scalar_one_or_none()
        if not video or video.deleted_at is not None:
            return CompletionOutcome.IGNORED

        # Over budget wins over every status, terminal ones included.
        snapshot = await self.quota.snapshot(db, video.org_id)
        if snapshot.over_limit and (video.original_size or 0) > 0:
            await self.tombstone(db, video)
            return CompletionOutcome.BLOCKED

        if video.status in TERMINAL_STATUSES:
            return CompletionOutcome.DUPLICATE

        self._apply(video, event)
        await db.commit()
        return CompletionOutcome.UPDATED

    def _apply(self, video: Video, event: ProcessingEvent) -> None:
        status = event.target_status

        if status is VideoStatus.READY:
            playback_id = event.playback_id or video.mux_playback_id
            video.status = VideoStatus.READY.value
            video.mux_playback_id = playback_id
            video.playback_url = hls_url(playback_id)
            video.thumbnail_url = (
                thumbnail_url(playback_id, pick_thumbnail_time(event.duration)) if playback_id else None
            )
            video.failure_reason = None
            return

        if status is not None:
            video.status = status.value
        if status is VideoStatus.FAILED:
            video.failure_reason = event.failure_reason or "Processing failed"
        if event.playback_id:
            video.mux_playback_id = event.playback_id
            video.playback_url = hls_url(event.playback_id)

    async def tombstone(self, db: AsyncSession, video: Video) -> None:
        """Irreversibly remove an over-budget video and give its bytes back."""
        failures = await self.cleanup.purge([video])

        video.status = VideoStatus.FAILED.value
        video.failure_reason = "Storage limit exceeded"
        video.thumbnail_url = None
        video.playback_url = None
        video.mux_playback_id = None
        video.mux_asset_id = None
        released = await retire_videos(db, video.org_id, [video], quota=self.quota)
        await db.commit()

        log.warning(
            "tombstoned over-budget video id=%s org=%s released=%d cleanup_failures=%d",
            video.id, video.org_id, released, len(failures),
        )
