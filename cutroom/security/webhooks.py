"""Webhook validation helpers."""

from __future__ import annotations

import hashlib
import hmac
import time

from fastapi import HTTPException, Request

from ..config import settings


def parse_signature_header(header: str) -> dict[str, str]:
    """Split ``t=123,v1=abc`` into a dict; malformed pairs are skipped."""
    parts: dict[str, str] = {}
    for item in (header or "").split(","):
        key, sep, value = item.partition("=")
        if sep and key.strip():
            parts[key.strip()] = value.strip()
    return parts


def expected_mux_signature(secret: str, timestamp: str, body: bytes) -> str:
    """HMAC-SHA256 over ``"<timestamp>.<raw body>"``, hex encoded."""
    message = timestamp.encode("utf-8") + b"." + body
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_mux_signature(request: Request, body: bytes) -> None:
    """Verify the ``mux-signature`` header when a signing secret is configured."""
    secret = (settings.mux_webhook_signing_secret or "").strip()
    if not secret:
        if settings.security_fail_closed:
            raise HTTPException(status_code=503, detail="Mux webhook signing secret not configured")
        return

    header = request.headers.get("mux-signature", "").strip()
    if not header:
        raise HTTPException(status_code=401, detail="Missing mux-signature header")

    parts = parse_signature_header(header)
    timestamp = parts.get("t", "")
    provided = parts.get("v1", "")
    if not timestamp or not provided:
        raise HTTPException(status_code=401, detail="Invalid mux-signature header")

    tolerance = settings.mux_webhook_tolerance_seconds
    if tolerance > 0:
        try:
            ts = int(timestamp)
        except ValueError as exc:
            raise HTTPException(status_code=401, detail="Invalid webhook timestamp") from exc
        if abs(int(time.time()) - ts) > tolerance:
            raise HTTPException(status_code=401, detail="Webhook signature expired")

    expected = expected_mux_signature(secret, timestamp, body)
    if not hmac.compare_digest(provided.lower(), expected):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")
