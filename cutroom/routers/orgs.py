"""Org routes - create tenants and read their quota state."""

from __future__ import annotations

import re

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.org import Org
from ..schemas.requests import OrgCreate
from ..schemas.responses import org_payload
from ..tenant.deps import get_current_org

router = APIRouter(prefix="/orgs", tags=["orgs"])


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.strip().lower()).strip("-")
    return slug[:100]


@router.post("/", status_code=201)
async def create_org(body: OrgCreate, db: AsyncSession = Depends(get_db)):
    name = body.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Missing name")
    slug = slugify(body.slug or name)
    if not slug:
        raise HTTPException(status_code=400, detail="Invalid slug")

    existing = (await db.execute(select(Org.id).where(Org.slug == slug))).scalar_one_or_none()
    if existing:
        raise HTTPException(status_code=409, detail=f"Org '{slug}' already exists")

    org = Org(name=name, slug=slug, storage_used_bytes=0)
    db.add(org)
    await db.commit()
    await db.refresh(org)
    return org_payload(org)


@router.get("/{slug}")
async def get_org(org: Org = Depends(get_current_org)):
    return org_payload(org)
