"""Async test fixtures for Cutroom tests using SQLite."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from cutroom.database import get_db
from cutroom.models.base import Base
from cutroom.models.gallery import Gallery, GalleryVideo
from cutroom.models.org import Org
from cutroom.models.video import Video, VideoStatus
from cutroom.services.cleanup import ExternalCleanup


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def db(engine):
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def org(db: AsyncSession):
    o = Org(id=uuid.uuid4(), name="Test Org", slug="test-org", storage_used_bytes=0)
    db.add(o)
    await db.commit()
    await db.refresh(o)
    return o


@pytest_asyncio.fixture
async def gallery(db: AsyncSession, org: Org):
    g = Gallery(id=uuid.uuid4(), org_id=org.id, title="Cuts", stacks_json="{}")
    db.add(g)
    await db.commit()
    await db.refresh(g)
    return g


@pytest.fixture
def add_video(db: AsyncSession, org: Org):
    """Factory: insert a video (optionally linked to a gallery) and return it."""
    counter = {"n": 0}

    async def _add(
        gallery: Gallery | None = None,
        *,
        status: str = VideoStatus.READY.value,
        size: int | None = 1000,
        archived: bool = False,
        mux_asset_id: str | None = None,
        title: str | None = None,
    ) -> Video:
        counter["n"] += 1
        video = Video(
            id=uuid.uuid4(),
            org_id=org.id,
            title=title or f"Cut {counter['n']}",
            status=status,
            original_name=f"cut{counter['n']}.mp4",
            original_size=size,
            original_key=f"originals/{org.id}/cut{counter['n']}.mp4",
            mux_asset_id=mux_asset_id,
        )
        if archived:
            video.archived_at = datetime.now(timezone.utc)
        db.add(video)
        if gallery is not None:
            db.add(GalleryVideo(gallery_id=gallery.id, video_id=video.id, sort_order=counter["n"]))
        await db.commit()
        return video

    return _add


@pytest.fixture
def fake_store():
    store = MagicMock()
    store.signed_url_ttl = 300
    store.presign_put.return_value = "https://r2.test/put?sig=abc"
    store.presign_get.return_value = "https://r2.test/get?sig=abc"
    store.delete_object = AsyncMock(return_value=None)
    return store


@pytest.fixture
def fake_mux():
    """Mux client double usable as ``async with``."""
    mux = MagicMock()
    mux.__aenter__ = AsyncMock(return_value=mux)
    mux.__aexit__ = AsyncMock(return_value=None)
    mux.create_asset = AsyncMock(
        return_value={"id": "asset-1", "playback_ids": [{"id": "pb-1", "policy": "public"}]}
    )
    mux.delete_asset = AsyncMock(return_value=None)
    return mux


@pytest.fixture
def cleanup(fake_store, fake_mux):
    return ExternalCleanup(mux_factory=lambda: fake_mux, store_factory=lambda: fake_store)


@pytest_asyncio.fixture
async def client(engine, fake_store, fake_mux, cleanup):
    """HTTPX async test client against the Cutroom app."""
    from cutroom.app import app
    from cutroom.dependencies import get_cleanup, get_ingest
    from cutroom.services.ingest_svc import IngestCoordinator
    from cutroom.services.quota_svc import QuotaLedger

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    def override_get_ingest():
        return IngestCoordinator(
            QuotaLedger(), store_factory=lambda: fake_store, mux_factory=lambda: fake_mux
        )

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_ingest] = override_get_ingest
    app.dependency_overrides[get_cleanup] = lambda: cleanup

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
