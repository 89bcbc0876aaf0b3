"""Storage routes - quota usage, breakdown, reconciliation."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..dependencies import get_ledger
from ..models.org import Org
from ..services import storage_svc
from ..services.quota_svc import QuotaLedger
from ..tenant.deps import get_current_org

router = APIRouter(prefix="/orgs/{slug}/storage", tags=["storage"])


@router.get("/")
async def storage_usage(
    org: Org = Depends(get_current_org),
    db: AsyncSession = Depends(get_db),
    quota: QuotaLedger = Depends(get_ledger),
):
    return {"ok": True, **await storage_svc.usage(db, org.id, quota)}


@router.get("/breakdown")
async def storage_breakdown(
    top: int = Query(10, ge=1, le=100),
    org: Org = Depends(get_current_org),
    db: AsyncSession = Depends(get_db),
    quota: QuotaLedger = Depends(get_ledger),
):
    result = await storage_svc.breakdown(db, org.id, quota, top=top)
    return result.to_payload()


@router.get("/largest")
async def largest_videos(
    limit: int = Query(5, ge=1, le=100),
    org: Org = Depends(get_current_org),
    db: AsyncSession = Depends(get_db),
):
    return {"ok": True, "videos": await storage_svc.largest_videos(db, org.id, limit)}


@router.post("/reconcile")
async def reconcile(
    org: Org = Depends(get_current_org),
    db: AsyncSession = Depends(get_db),
    quota: QuotaLedger = Depends(get_ledger),
):
    result = await quota.reconcile(db, org.id)
    return {"ok": True, **result.to_payload()}
