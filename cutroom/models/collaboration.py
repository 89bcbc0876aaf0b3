"""Collaboration records that reference videos (comments, share links).

Only the columns the core needs are modelled here; deleting or tombstoning a
video removes every row that points at it.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, TimestampMixin, TenantMixin


class Comment(UUIDMixin, TimestampMixin, TenantMixin, Base):
    __tablename__ = "comment"

    video_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("video.id", ondelete="CASCADE"), index=True
    )
    author_name: Mapped[str | None] = mapped_column(String(200), default=None)
    body: Mapped[str] = mapped_column(Text)
    timecode_seconds: Mapped[float | None] = mapped_column(Float, default=None)
    resolved: Mapped[bool] = mapped_column(Boolean, default=False)


class ShareLink(UUIDMixin, TimestampMixin, TenantMixin, Base):
    __tablename__ = "share_link"

    token: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    video_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("video.id", ondelete="CASCADE"), index=True, default=None
    )
    gallery_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("gallery.id", ondelete="CASCADE"), index=True, default=None
    )
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
