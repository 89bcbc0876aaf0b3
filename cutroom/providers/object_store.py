"""S3-compatible object storage (R2) for uploaded originals.

Clients upload originals directly with a short-lived presigned PUT; the
server only signs URLs and deletes objects.
"""

from __future__ import annotations

import asyncio
import re
import uuid

import boto3
from botocore.config import Config

from ..config import settings
from .mux import ProviderNotConfigured

_UNSAFE_RE = re.compile(r"[^a-zA-Z0-9._-]")
_SPACE_RE = re.compile(r"\s+")


def make_original_key(org_id: uuid.UUID | str, video_id: uuid.UUID | str, filename: str | None) -> str:
    """Deterministic key: originals/<org>/<video>/<safe-filename>."""
    safe_name = _UNSAFE_RE.sub("", _SPACE_RE.sub("-", (filename or "upload").strip()))
    return f"originals/{org_id}/{video_id}/{safe_name or 'upload'}"


class ObjectStore:
    def __init__(self, client, bucket: str, *, signed_url_ttl: int = 300):
        self._client = client
        self.bucket = bucket
        self.signed_url_ttl = signed_url_ttl

    @classmethod
    def from_settings(cls) -> "ObjectStore":
        if not settings.object_store_configured:
            raise ProviderNotConfigured(
                "Object storage is not configured. Set CUTROOM_OBJECT_STORE_* env vars."
            )
        client = boto3.client(
            "s3",
            endpoint_url=settings.object_store_endpoint,
            aws_access_key_id=settings.object_store_access_key_id,
            aws_secret_access_key=settings.object_store_secret_access_key,
            region_name=settings.object_store_region,
            config=Config(signature_version="s3v4"),
        )
        return cls(client, settings.object_store_bucket or "", signed_url_ttl=settings.signed_url_ttl_seconds)

    def presign_put(self, key: str, content_type: str, metadata: dict[str, str] | None = None) -> str:
        """Scoped write credential for a single key."""
        params = {"Bucket": self.bucket, "Key": key, "ContentType": content_type}
        if metadata:
            params["Metadata"] = metadata
        return self._client.generate_presigned_url(
            "put_object", Params=params, ExpiresIn=self.signed_url_ttl
        )

    def presign_get(self, key: str, expires_in: int | None = None) -> str:
        return self._client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=expires_in or self.signed_url_ttl,
        )

    async def delete_object(self, key: str) -> None:
        await asyncio.to_thread(self._client.delete_object, Bucket=self.bucket, Key=key)
