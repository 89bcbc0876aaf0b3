"""Gallery + grouping link models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, UUIDMixin, TimestampMixin, TenantMixin, SoftDeleteMixin


class Gallery(UUIDMixin, TimestampMixin, TenantMixin, SoftDeleteMixin, Base):
    __tablename__ = "gallery"

    title: Mapped[str] = mapped_column(String(300))
    # Persisted stacks map; always read through stacks.index.parse_stacks.
    stacks_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    # Relationships
    org: Mapped["Org"] = relationship(back_populates="galleries")  # noqa: F821
    entries: Mapped[list["GalleryVideo"]] = relationship(
        back_populates="gallery",
        cascade="all, delete-orphan",
        order_by="GalleryVideo.sort_order",
    )

    def __repr__(self) -> str:
        return f"<Gallery {self.title!r}>"


class GalleryVideo(UUIDMixin, TimestampMixin, Base):
    """Grouping link: a video's slot in a gallery's flat grid."""

    __tablename__ = "gallery_video"
    __table_args__ = (
        UniqueConstraint("gallery_id", "video_id", name="uq_gallery_video"),
    )

    gallery_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("gallery.id", ondelete="CASCADE"), index=True
    )
    video_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("video.id", ondelete="CASCADE"), index=True
    )
    sort_order: Mapped[int] = mapped_column(Integer, default=0)

    gallery: Mapped[Gallery] = relationship(back_populates="entries")
    video: Mapped["Video"] = relationship(lazy="joined")  # noqa: F821
