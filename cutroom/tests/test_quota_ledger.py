"""Tests for the storage quota ledger."""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from cutroom.config import GIB
from cutroom.models.base import Base
from cutroom.models.org import Org
from cutroom.services.quota_svc import QuotaLedger


async def _set_used(db: AsyncSession, org: Org, used: int) -> None:
    org.storage_used_bytes = used
    await db.commit()


@pytest.mark.asyncio
async def test_reserve_within_limit(db: AsyncSession, org: Org):
    ledger = QuotaLedger(limit_bytes=1000)
    reservation = await ledger.reserve(db, org.id, 400)

    assert reservation.ok
    assert reservation.used_bytes == 400
    assert reservation.remaining_bytes == 600
    await db.refresh(org)
    assert org.storage_used_bytes == 400


@pytest.mark.asyncio
async def test_reserve_exactly_to_limit(db: AsyncSession, org: Org):
    ledger = QuotaLedger(limit_bytes=1000)
    await _set_used(db, org, 600)

    reservation = await ledger.reserve(db, org.id, 400)
    assert reservation.ok
    assert reservation.remaining_bytes == 0


@pytest.mark.asyncio
async def test_reserve_over_limit_reports_numbers(db: AsyncSession, org: Org):
    ledger = QuotaLedger(limit_bytes=100 * GIB)
    await _set_used(db, org, 90 * GIB)

    reservation = await ledger.reserve(db, org.id, 15 * GIB)

    assert not reservation.ok
    assert reservation.to_payload() == {
        "usedBytes": str(90 * GIB),
        "incomingBytes": str(15 * GIB),
        "remainingBytes": str(10 * GIB),
        "limitBytes": str(100 * GIB),
    }
    assert reservation.shortfall_bytes == 5 * GIB
    await db.refresh(org)
    assert org.storage_used_bytes == 90 * GIB


@pytest.mark.asyncio
async def test_reserve_larger_than_limit(db: AsyncSession, org: Org):
    ledger = QuotaLedger(limit_bytes=1000)
    reservation = await ledger.reserve(db, org.id, 5000)
    assert not reservation.ok
    assert reservation.used_bytes == 0


@pytest.mark.asyncio
async def test_reserve_rejects_negative(db: AsyncSession, org: Org):
    with pytest.raises(ValueError):
        await QuotaLedger(limit_bytes=1000).reserve(db, org.id, -1)


@pytest.mark.asyncio
async def test_reserve_unknown_org(db: AsyncSession):
    ledger = QuotaLedger(limit_bytes=1000)
    with pytest.raises(LookupError):
        await ledger.reserve(db, uuid.uuid4(), 5000)


@pytest.mark.asyncio
async def test_sequential_reservations_never_pass_cap(db: AsyncSession, org: Org):
    ledger = QuotaLedger(limit_bytes=1000)
    first = await ledger.reserve(db, org.id, 600)
    second = await ledger.reserve(db, org.id, 600)

    assert first.ok
    assert not second.ok
    assert second.remaining_bytes == 400


@pytest.mark.asyncio
async def test_concurrent_reservations_exactly_one_wins(tmp_path: Path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'race.db'}", connect_args={"timeout": 30}
    )
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

        org_id = uuid.uuid4()
        async with factory() as setup:
            setup.add(Org(id=org_id, name="Race", slug="race", storage_used_bytes=0))
            await setup.commit()

        limit = 1000
        ledger = QuotaLedger(limit_bytes=limit)

        async def attempt():
            async with factory() as session:
                return await ledger.reserve(session, org_id, int(0.6 * limit))

        results = await asyncio.gather(attempt(), attempt())

        winners = [r for r in results if r.ok]
        losers = [r for r in results if not r.ok]
        assert len(winners) == 1
        assert len(losers) == 1
        assert losers[0].remaining_bytes == limit - int(0.6 * limit)

        async with factory() as check:
            snapshot = await ledger.snapshot(check, org_id)
            assert snapshot.used_bytes == int(0.6 * limit)
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_release_clamps_at_zero(db: AsyncSession, org: Org):
    ledger = QuotaLedger(limit_bytes=1000)
    await _set_used(db, org, 100)

    await ledger.release(db, org.id, 500)
    await db.refresh(org)
    assert org.storage_used_bytes == 0


@pytest.mark.asyncio
async def test_release_decrements(db: AsyncSession, org: Org):
    ledger = QuotaLedger(limit_bytes=1000)
    await _set_used(db, org, 700)

    await ledger.release(db, org.id, 200)
    await ledger.release(db, org.id, 0)
    await db.refresh(org)
    assert org.storage_used_bytes == 500


@pytest.mark.asyncio
async def test_snapshot_over_limit(db: AsyncSession, org: Org):
    await _set_used(db, org, 1500)
    snapshot = await QuotaLedger(limit_bytes=1000).snapshot(db, org.id)
    assert snapshot.over_limit
    assert snapshot.remaining_bytes == 0


@pytest.mark.asyncio
async def test_reconcile_replaces_counter_with_live_sum(
    db: AsyncSession, org: Org, add_video, caplog
):
    ledger = QuotaLedger(limit_bytes=10_000)
    await add_video(size=1000)
    await add_video(size=2000, archived=True)
    gone = await add_video(size=5000)
    gone.deleted_at = datetime.now(timezone.utc)
    await add_video(size=None)
    await _set_used(db, org, 9000)

    with caplog.at_level(logging.WARNING, logger="cutroom.services.quota_svc"):
        result = await ledger.reconcile(db, org.id)

    assert result.before_bytes == 9000
    assert result.used_bytes == 3000
    assert result.delta_bytes == -6000
    assert result.drift_exceeded
    assert "drift" in caplog.text
    await db.refresh(org)
    assert org.storage_used_bytes == 3000


@pytest.mark.asyncio
async def test_reconcile_small_drift_is_quiet(db: AsyncSession, org: Org, add_video, caplog):
    ledger = QuotaLedger(limit_bytes=1_000_000, drift_tolerance=0.02)
    await add_video(size=100_000)
    await _set_used(db, org, 101_000)

    with caplog.at_level(logging.WARNING, logger="cutroom.services.quota_svc"):
        result = await ledger.reconcile(db, org.id)

    assert not result.drift_exceeded
    assert result.used_bytes == 100_000
    assert "drift" not in caplog.text


@pytest.mark.asyncio
async def test_live_bytes_never_exceed_limit_after_reconcile(db: AsyncSession, org: Org, add_video):
    ledger = QuotaLedger(limit_bytes=5000)
    for size in (1000, 1500, 2000):
        reservation = await ledger.reserve(db, org.id, size)
        assert reservation.ok
        await add_video(size=size)

    refused = await ledger.reserve(db, org.id, 1000)
    assert not refused.ok

    result = await ledger.reconcile(db, org.id)
    assert result.used_bytes == 4500
    assert result.used_bytes <= ledger.limit_bytes
    assert not result.drift_exceeded
