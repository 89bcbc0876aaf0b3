"""Pydantic models for JSON request bodies (camelCase on the wire)."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class OrgCreate(_Body):
    name: str = ""
    slug: str | None = None


class UploadInit(_Body):
    gallery_id: str | None = Field(default=None, alias="galleryId")
    filename: str | None = None
    content_type: str | None = Field(default=None, alias="contentType")
    size: float | int | str | None = None
    title: str | None = None
    description: str | None = None


class BulkVideos(_Body):
    video_ids: list[str] = Field(default_factory=list, alias="videoIds")
    action: str | None = None


class GalleryCreate(_Body):
    title: str = ""


class StacksUpdate(_Body):
    stacks: Any = None
    ordered_ids: list[Any] | None = Field(default=None, alias="orderedIds")


class StackCreate(_Body):
    ordered_ids: list[str] = Field(default_factory=list, alias="orderedIds")


class StackMerge(_Body):
    source_id: str = Field(alias="sourceId")
    target_id: str = Field(alias="targetId")


class Unstack(_Body):
    parent_id: str = Field(alias="parentId")


class BulkGalleries(_Body):
    gallery_ids: list[str] = Field(default_factory=list, alias="galleryIds")
    action: str | None = None
