"""Org resolution for ``/orgs/{slug}/...`` routes, with optional access tokens."""

from __future__ import annotations

import hmac

from fastapi import Depends, HTTPException, Path, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db
from ..models.org import Org


def provided_org_token(request: Request) -> str:
    """Token from the configured header, ``X-Org-Token``, or a bearer header."""
    token = request.headers.get(settings.tenant_token_header, "").strip()
    if token:
        return token
    token = request.headers.get("x-org-token", "").strip()
    if token:
        return token
    scheme, _, credentials = request.headers.get("authorization", "").partition(" ")
    return credentials.strip() if scheme.lower() == "bearer" else ""


def check_org_access(slug: str, provided: str) -> None:
    """Raise 403 unless ``provided`` matches the org's configured token.

    Orgs without a configured token are open unless ``tenant_auth_required``.
    """
    expected = settings.tenant_access_tokens_map.get(slug)
    if expected:
        if not provided or not hmac.compare_digest(provided, expected):
            raise HTTPException(status_code=403, detail="Org access token required")
    elif settings.tenant_auth_required:
        raise HTTPException(status_code=403, detail="Tenant authorization required")


async def get_current_org(
    request: Request,
    slug: str = Path(..., description="Org slug"),
    db: AsyncSession = Depends(get_db),
) -> Org:
    org = (await db.execute(select(Org).where(Org.slug == slug))).scalar_one_or_none()
    if not org:
        raise HTTPException(status_code=404, detail=f"Org '{slug}' not found")
    check_org_access(slug, provided_org_token(request))
    return org
