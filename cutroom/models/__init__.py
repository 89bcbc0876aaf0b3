"""Cutroom models - re-exports all models and Base.metadata."""

from .base import Base, UUIDMixin, TimestampMixin, TenantMixin, SoftDeleteMixin
from .org import Org
from .video import Video, VideoStatus, TERMINAL_STATUSES
from .gallery import Gallery, GalleryVideo
from .collaboration import Comment, ShareLink

__all__ = [
    "Base",
    "UUIDMixin",
    "TimestampMixin",
    "TenantMixin",
    "SoftDeleteMixin",
    "Org",
    "Video",
    "VideoStatus",
    "TERMINAL_STATUSES",
    "Gallery",
    "GalleryVideo",
    "Comment",
    "ShareLink",
]
