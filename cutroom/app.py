"""FastAPI application for Cutroom."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .config import settings

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Auto-create tables for SQLite (local dev); PostgreSQL uses Alembic migrations
    if "sqlite" in settings.database_url:
        from .database import engine
        from .models import Base
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    if settings.is_production and not settings.mux_webhook_signing_secret:
        log.warning("CUTROOM_MUX_WEBHOOK_SIGNING_SECRET is not set; Mux webhooks are unauthenticated")
    yield


app = FastAPI(title=settings.app_title, lifespan=lifespan)

# Import and register routers
from .routers import galleries, health, orgs, storage, videos, webhooks  # noqa: E402

app.include_router(orgs.router)
app.include_router(galleries.router)
app.include_router(videos.router)
app.include_router(storage.router)
app.include_router(webhooks.router)
app.include_router(health.router)
