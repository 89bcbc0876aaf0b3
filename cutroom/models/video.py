"""Video model - an uploaded original tracked through remote processing."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import BigInteger, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, UUIDMixin, TimestampMixin, TenantMixin, SoftDeleteMixin


class VideoStatus(str, Enum):
    UPLOADED = "UPLOADED"
    PROCESSING = "PROCESSING"
    READY = "READY"
    FAILED = "FAILED"


TERMINAL_STATUSES = frozenset({VideoStatus.READY.value, VideoStatus.FAILED.value})


class Video(UUIDMixin, TimestampMixin, TenantMixin, SoftDeleteMixin, Base):
    __tablename__ = "video"
    __table_args__ = (
        Index("ix_video_org_deleted", "org_id", "deleted_at"),
    )

    title: Mapped[str] = mapped_column(String(300), default="Untitled")
    description: Mapped[str | None] = mapped_column(Text, default=None)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=VideoStatus.UPLOADED.value, index=True
    )
    failure_reason: Mapped[str | None] = mapped_column(Text, default=None)

    original_name: Mapped[str | None] = mapped_column(String(500), default=None)
    original_mime: Mapped[str | None] = mapped_column(String(200), default=None)
    original_size: Mapped[int | None] = mapped_column(BigInteger, default=None)
    original_key: Mapped[str | None] = mapped_column(Text, default=None)

    # External processing ids + derived URLs (cleared on tombstone).
    mux_asset_id: Mapped[str | None] = mapped_column(String(200), default=None, index=True)
    mux_playback_id: Mapped[str | None] = mapped_column(String(200), default=None)
    playback_url: Mapped[str | None] = mapped_column(Text, default=None)
    thumbnail_url: Mapped[str | None] = mapped_column(Text, default=None)

    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    # Relationships
    org: Mapped["Org"] = relationship(back_populates="videos")  # noqa: F821

    @property
    def is_live(self) -> bool:
        return not self.is_deleted

    @property
    def is_stackable(self) -> bool:
        return (
            self.status == VideoStatus.READY.value
            and self.archived_at is None
            and self.deleted_at is None
        )

    def __repr__(self) -> str:
        return f"<Video {self.id} {self.status}>"
