"""Liveness and readiness probes."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db

router = APIRouter()


@router.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    await db.execute(text("SELECT 1"))
    return {"status": "healthy", "service": "cutroom"}


@router.get("/ready")
async def readiness_check(db: AsyncSession = Depends(get_db)):
    """Database reachable; report which external providers are wired up."""
    await db.execute(text("SELECT 1"))
    return {
        "status": "ready",
        "service": "cutroom",
        "providers": {
            "mux": settings.mux_configured,
            "objectStore": settings.object_store_configured,
            "webhookSigning": bool(settings.mux_webhook_signing_secret),
        },
    }
