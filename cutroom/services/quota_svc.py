"""Storage quota ledger - per-org byte counter with reserve/release/reconcile.

The counter is an optimisation over a derivable quantity (sum of live
original sizes). Reservations are a single conditional UPDATE so concurrent
uploads can never both pass the limit; drift from best-effort releases is
corrected by reconciliation.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..models.org import Org
from ..models.video import Video

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuotaSnapshot:
    used_bytes: int
    limit_bytes: int

    @property
    def remaining_bytes(self) -> int:
        return max(0, self.limit_bytes - self.used_bytes)

    @property
    def over_limit(self) -> bool:
        return self.used_bytes > self.limit_bytes


@dataclass(frozen=True)
class Reservation:
    ok: bool
    incoming_bytes: int
    used_bytes: int
    limit_bytes: int

    @property
    def remaining_bytes(self) -> int:
        return max(0, self.limit_bytes - self.used_bytes)

    @property
    def shortfall_bytes(self) -> int:
        """How many more bytes the org would need to fit this upload."""
        return max(0, self.incoming_bytes - self.remaining_bytes)

    def to_payload(self) -> dict[str, str]:
        return {
            "usedBytes": str(self.used_bytes),
            "incomingBytes": str(self.incoming_bytes),
            "remainingBytes": str(self.remaining_bytes),
            "limitBytes": str(self.limit_bytes),
        }


@dataclass(frozen=True)
class ReconcileResult:
    before_bytes: int
    used_bytes: int
    drift_ratio: float
    drift_exceeded: bool

    @property
    def delta_bytes(self) -> int:
        return self.used_bytes - self.before_bytes

    def to_payload(self) -> dict[str, object]:
        return {
            "beforeBytes": str(self.before_bytes),
            "usedBytes": str(self.used_bytes),
            "deltaBytes": str(self.delta_bytes),
            "driftRatio": round(self.drift_ratio, 6),
            "driftExceeded": self.drift_exceeded,
        }


class QuotaExceeded(Exception):
    """Raised when an upload does not fit in the org's remaining storage."""

    def __init__(self, reservation: Reservation):
        self.reservation = reservation
        super().__init__(
            f"Storage limit exceeded: need {reservation.shortfall_bytes} more bytes "
            f"({reservation.remaining_bytes} of {reservation.limit_bytes} remaining)"
        )


class QuotaLedger:
    """Reserve / release / reconcile against ``Org.storage_used_bytes``."""

    def __init__(self, limit_bytes: int | None = None, drift_tolerance: float | None = None):
        self._limit_bytes = limit_bytes
        self._drift_tolerance = drift_tolerance

    @property
    def limit_bytes(self) -> int:
        return self._limit_bytes if self._limit_bytes is not None else settings.storage_limit_bytes

    @property
    def drift_tolerance(self) -> float:
        if self._drift_tolerance is not None:
            return self._drift_tolerance
        return settings.quota_drift_tolerance

    async def _used_bytes(self, db: AsyncSession, org_id: uuid.UUID) -> int:
        used = (
            await db.execute(select(Org.storage_used_bytes).where(Org.id == org_id))
        ).scalar_one_or_none()
        if used is None:
            raise LookupError(f"Org {org_id} not found")
        return int(used)

    async def snapshot(self, db: AsyncSession, org_id: uuid.UUID) -> QuotaSnapshot:
        return QuotaSnapshot(used_bytes=await self._used_bytes(db, org_id), limit_bytes=self.limit_bytes)

    async def reserve(self, db: AsyncSession, org_id: uuid.UUID, incoming_bytes: int) -> Reservation:
        """Atomically add ``incoming_bytes`` if it fits under the limit.

        The fit check and the increment are one statement; the follow-up read
        only reports numbers and never decides anything.
        """
        if incoming_bytes < 0:
            raise ValueError("incoming_bytes must be non-negative")

        limit = self.limit_bytes
        max_allowed = limit - incoming_bytes
        if max_allowed < 0:
            used = await self._used_bytes(db, org_id)
            return Reservation(ok=False, incoming_bytes=incoming_bytes, used_bytes=used, limit_bytes=limit)

        stmt = (
            update(Org)
            .where(Org.id == org_id, Org.storage_used_bytes <= max_allowed)
            .values(storage_used_bytes=Org.storage_used_bytes + incoming_bytes)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        reserved = result.rowcount == 1
        await db.commit()

        used = await self._used_bytes(db, org_id)
        if not reserved:
            log.info(
                "quota reservation refused org=%s incoming=%d used=%d limit=%d",
                org_id, incoming_bytes, used, limit,
            )
        return Reservation(ok=reserved, incoming_bytes=incoming_bytes, used_bytes=used, limit_bytes=limit)

    async def release(
        self, db: AsyncSession, org_id: uuid.UUID, released_bytes: int, *, commit: bool = True
    ) -> None:
        """Unconditional decrement, clamped at zero.

        Pass ``commit=False`` to fold the release into the caller's transaction
        (deletes and tombstones release inside the same commit that removes the
        video).
        """
        if released_bytes <= 0:
            return
        stmt = (
            update(Org)
            .where(Org.id == org_id)
            .values(
                storage_used_bytes=case(
                    (Org.storage_used_bytes > released_bytes, Org.storage_used_bytes - released_bytes),
                    else_=0,
                )
            )
            .execution_options(synchronize_session=False)
        )
        await db.execute(stmt)
        if commit:
            await db.commit()

    async def live_bytes(self, db: AsyncSession, org_id: uuid.UUID) -> int:
        """Ground truth: summed original sizes of every non-deleted video."""
        total = (
            await db.execute(
                select(func.coalesce(func.sum(Video.original_size), 0)).where(
                    Video.org_id == org_id,
                    Video.deleted_at.is_(None),
                    Video.original_size.is_not(None),
                )
            )
        ).scalar_one()
        return int(total or 0)

    async def reconcile(self, db: AsyncSession, org_id: uuid.UUID) -> ReconcileResult:
        """Replace the counter with the summed ground truth and report drift."""
        before = await self._used_bytes(db, org_id)
        actual = await self.live_bytes(db, org_id)

        drift = abs(actual - before)
        if actual:
            ratio = drift / actual
        else:
            ratio = 1.0 if drift else 0.0
        exceeded = ratio > self.drift_tolerance

        await db.execute(
            update(Org)
            .where(Org.id == org_id)
            .values(storage_used_bytes=actual)
            .execution_options(synchronize_session=False)
        )
        await db.commit()

        if exceeded:
            log.warning(
                "storage counter drift org=%s before=%d actual=%d ratio=%.4f",
                org_id, before, actual, ratio,
            )
        return ReconcileResult(
            before_bytes=before, used_bytes=actual, drift_ratio=ratio, drift_exceeded=exceeded
        )


ledger = QuotaLedger()
