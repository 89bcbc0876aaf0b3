"""Reconcile persisted stacks against a shrinking set of allowed ids.

Two allowed-id semantics exist on purpose:

- active: excludes archived and deleted videos (archive prunes stacks so
  archived versions vanish from the active view);
- retained: excludes only deleted videos (delete/tombstone prunes stacks but
  archived versions stay grouped).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from .index import StackMap, coerce_shape, dump_stacks, parse_stacks, restrict_stacks


def normalize(stacks: Mapping[str, Sequence[str]], allowed_ids: Iterable[str]) -> StackMap:
    """Prune a stacks map to ``allowed_ids``. Idempotent."""
    return restrict_stacks(coerce_shape(stacks), frozenset(str(i) for i in allowed_ids))


def active_allowed_ids(videos: Iterable) -> set[str]:
    return {
        str(v.id) for v in videos
        if v.deleted_at is None and v.archived_at is None
    }


def retained_allowed_ids(videos: Iterable) -> set[str]:
    return {str(v.id) for v in videos if v.deleted_at is None}


def prune_stacks_json(stacks_json: str | None, allowed_ids: Iterable[str]) -> tuple[str, bool]:
    """Return ``(next_json, changed)`` for a persisted stacks column."""
    current = parse_stacks(stacks_json)
    pruned = normalize(current, allowed_ids)
    next_json = dump_stacks(pruned)
    return next_json, next_json != (stacks_json or "{}")
