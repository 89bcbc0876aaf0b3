"""Webhook routes for Mux processing callbacks."""

from __future__ import annotations

import json

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..dependencies import get_guard
from ..security.webhooks import verify_mux_signature
from ..services.completion_svc import CompletionGuard, ProcessingEvent

router = APIRouter(tags=["webhooks"])


@router.post("/webhooks/mux")
async def mux_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    guard: CompletionGuard = Depends(get_guard),
):
    # Signature covers the raw bytes, so read before parsing.
    body = await request.body()
    verify_mux_signature(request, body)

    try:
        payload = json.loads(body or b"null")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid JSON") from exc

    outcome = await guard.handle(db, ProcessingEvent.from_payload(payload))
    return {"ok": True, "outcome": outcome.value}
