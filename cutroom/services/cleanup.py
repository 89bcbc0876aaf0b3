"""Best-effort external cleanup.

Third-party deletes (Mux assets, stored originals) must never block a local
state transition. Each side effect is attempted once; failures are logged
and returned, never raised.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SideEffect:
    name: str
    run: Callable[[], Awaitable[object]]


@dataclass(frozen=True)
class EffectFailure:
    name: str
    error: str


async def attempt_all(effects: Iterable[SideEffect]) -> list[EffectFailure]:
    """Run every effect in order; collect failures instead of propagating them."""
    failures: list[EffectFailure] = []
    for effect in effects:
        try:
            await effect.run()
        except Exception as exc:
            log.warning("best-effort cleanup failed: %s: %s", effect.name, exc)
            failures.append(EffectFailure(name=effect.name, error=str(exc)))
    return failures


class ExternalCleanup:
    """Builds the provider/object-store deletes for a video.

    Providers are resolved lazily so an unconfigured provider turns into a
    logged failure rather than an error at construction time.
    """

    def __init__(self, mux_factory=None, store_factory=None):
        self._mux_factory = mux_factory
        self._store_factory = store_factory

    def effects_for(self, video) -> list[SideEffect]:
        effects: list[SideEffect] = []
        asset_id = video.mux_asset_id
        key = video.original_key

        if asset_id:
            async def _delete_asset(asset_id: str = asset_id) -> None:
                async with self._mux() as mux:
                    await mux.delete_asset(asset_id)

            effects.append(SideEffect(name=f"mux.delete_asset:{asset_id}", run=_delete_asset))

        if key:
            async def _delete_object(key: str = key) -> None:
                await self._store().delete_object(key)

            effects.append(SideEffect(name=f"object_store.delete_object:{key}", run=_delete_object))

        return effects

    async def purge(self, videos: Iterable) -> list[EffectFailure]:
        effects: list[SideEffect] = []
        for video in videos:
            effects.extend(self.effects_for(video))
        return await attempt_all(effects)

    def _mux(self):
        if self._mux_factory is not None:
            return self._mux_factory()
        from ..providers.mux import MuxClient
        return MuxClient.from_settings()

    def _store(self):
        if self._store_factory is not None:
            return self._store_factory()
        from ..providers.object_store import ObjectStore
        return ObjectStore.from_settings()
