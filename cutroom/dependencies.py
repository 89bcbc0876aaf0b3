"""FastAPI dependencies for the quota ledger and the services built on it."""

from __future__ import annotations

from fastapi import Depends

from .services.cleanup import ExternalCleanup
from .services.completion_svc import CompletionGuard
from .services.ingest_svc import IngestCoordinator
from .services.quota_svc import QuotaLedger, ledger


def get_ledger() -> QuotaLedger:
    return ledger


def get_cleanup() -> ExternalCleanup:
    return ExternalCleanup()


def get_ingest(quota: QuotaLedger = Depends(get_ledger)) -> IngestCoordinator:
    return IngestCoordinator(quota)


def get_guard(
    quota: QuotaLedger = Depends(get_ledger),
    cleanup: ExternalCleanup = Depends(get_cleanup),
) -> CompletionGuard:
    return CompletionGuard(quota, cleanup)
