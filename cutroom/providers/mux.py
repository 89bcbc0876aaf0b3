"""Mux video API client (remote transcoding provider).

Only the two calls the core issues are wrapped: create an asset from a
source URL, and delete an asset. Playback/thumbnail URL helpers live here
too since they are derived from Mux playback ids.
"""

from __future__ import annotations

from typing import Any

import httpx

from ..config import settings


class ProviderNotConfigured(Exception):
    """Raised when provider credentials are missing."""


class ProviderError(Exception):
    """Raised when the provider returns an error response."""


def hls_url(playback_id: str | None) -> str | None:
    return f"https://stream.mux.com/{playback_id}.m3u8" if playback_id else None


def pick_thumbnail_time(duration: float | None) -> float:
    """Seconds into the video to grab the poster frame from."""
    if not duration or duration <= 0:
        return 1
    if duration <= 10:
        return max(0.5, min(2.5, duration * 0.25))
    return 5


def thumbnail_url(playback_id: str, time_seconds: float) -> str:
    t = max(0, round(time_seconds * 100) / 100)
    return f"https://image.mux.com/{playback_id}/thumbnail.jpg?time={t:g}"


class MuxClient:
    """Thin async wrapper over the Mux Video REST API.

    Usage:
        async with MuxClient.from_settings() as mux:
            asset = await mux.create_asset(source_url)
    """

    def __init__(
        self,
        token_id: str,
        token_secret: str,
        *,
        base_url: str = "https://api.mux.com",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url,
            auth=(token_id, token_secret),
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, **kwargs: Any) -> "MuxClient":
        if not settings.mux_configured:
            raise ProviderNotConfigured("Mux is not configured. Set CUTROOM_MUX_TOKEN_* env vars.")
        return cls(
            settings.mux_token_id or "",
            settings.mux_token_secret or "",
            base_url=settings.mux_api_base,
            timeout=settings.mux_request_timeout_seconds,
            **kwargs,
        )

    async def __aenter__(self) -> "MuxClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def create_asset(self, source_url: str, *, public: bool = True) -> dict[str, Any]:
        """Create an asset from a source URL. Returns the asset ``data`` object."""
        payload = {
            "inputs": [{"url": source_url}],
            "playback_policy": ["public" if public else "signed"],
        }
        resp = await self._client.post("/video/v1/assets", json=payload)
        if resp.status_code >= 400:
            raise ProviderError(f"Mux create asset failed ({resp.status_code}): {resp.text[:200]}")
        return resp.json().get("data") or {}

    async def delete_asset(self, asset_id: str) -> None:
        resp = await self._client.delete(f"/video/v1/assets/{asset_id}")
        # Already gone is as good as deleted.
        if resp.status_code == 404:
            return
        if resp.status_code >= 400:
            raise ProviderError(f"Mux delete asset failed ({resp.status_code}): {resp.text[:200]}")
