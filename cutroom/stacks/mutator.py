"""Stack mutations: create/replace, merge-on-drop, unstack.

Every function here is pure. Invalid input yields ``None`` so callers can
degrade to a no-op instead of failing the request.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from .index import (
    StackMap,
    build_child_to_parent,
    parent_id_for,
    sanitize_stacks,
    stack_ids,
)

READY = "READY"


@dataclass(frozen=True)
class StackCandidate:
    """What the mutator needs to know about a video."""

    id: str
    status: str
    archived: bool = False
    deleted: bool = False

    @property
    def is_ready(self) -> bool:
        return self.status == READY

    @property
    def stackable(self) -> bool:
        return self.is_ready and not self.archived and not self.deleted

    @classmethod
    def from_video(cls, video) -> "StackCandidate":
        return cls(
            id=str(video.id),
            status=str(getattr(video.status, "value", video.status)),
            archived=video.archived_at is not None,
            deleted=video.deleted_at is not None,
        )


@dataclass(frozen=True)
class StackChange:
    stacks: StackMap
    parent_id: str
    stack_ids: list[str]


@dataclass(frozen=True)
class Unstacked:
    ordered_ids: list[str]
    stacks: StackMap
    stack_ids: list[str]


def _unique(ids: Iterable[object]) -> list[str]:
    cleaned = (str(i).strip() for i in ids if i is not None)
    return list(dict.fromkeys(i for i in cleaned if i))


def _by_id(candidates: Mapping[str, StackCandidate] | Iterable[StackCandidate]) -> dict[str, StackCandidate]:
    if isinstance(candidates, Mapping):
        return dict(candidates)
    return {c.id: c for c in candidates}


def create_or_replace_stack(
    ordered_ids: Sequence[str],
    candidates: Mapping[str, StackCandidate] | Iterable[StackCandidate],
    stacks: Mapping[str, Sequence[str]] | None = None,
) -> StackChange | None:
    """Group ``ordered_ids`` into one stack with element 0 as the parent key.

    Any existing stack that shares an id with the new one (as parent or
    member) is removed first, so reassigning a version detaches it from its
    previous stack.
    """
    ids = _unique(ordered_ids)
    if len(ids) < 2:
        return None

    by_id = _by_id(candidates)
    resolved = [by_id.get(i) for i in ids]
    if any(c is None or not c.stackable for c in resolved):
        return None

    current = sanitize_stacks(stacks or {})
    child_to_parent = build_child_to_parent(current)
    involved = {parent_id_for(i, child_to_parent) for i in ids}

    next_stacks: StackMap = {
        pid: list(members) for pid, members in current.items() if pid not in involved
    }
    parent_id = ids[0]
    next_stacks[parent_id] = ids
    return StackChange(stacks=next_stacks, parent_id=parent_id, stack_ids=ids)


def merge_on_drop(
    source_id: str,
    target_id: str,
    stacks: Mapping[str, Sequence[str]] | None,
    candidates: Mapping[str, StackCandidate] | Iterable[StackCandidate],
) -> list[str] | None:
    """Ordered ids for dropping ``source_id``'s stack onto ``target_id``'s.

    Target members come first so the target's version 1 stays version 1.
    Feed the result to :func:`create_or_replace_stack`.
    """
    current = sanitize_stacks(stacks or {})
    child_to_parent = build_child_to_parent(current)

    source_parent = parent_id_for(source_id, child_to_parent)
    target_parent = parent_id_for(target_id, child_to_parent)
    if source_parent == target_parent:
        return None

    by_id = _by_id(candidates)
    source = by_id.get(source_id)
    target = by_id.get(target_id)
    if source is None or target is None or not source.is_ready or not target.is_ready:
        return None

    return _unique([*stack_ids(target_parent, current), *stack_ids(source_parent, current)])


def unstack(
    parent_id: str,
    ordered_ids: Sequence[str],
    stacks: Mapping[str, Sequence[str]] | None,
) -> Unstacked | None:
    """Dissolve a stack, reinserting its versions right after the parent.

    ``ordered_ids`` is the flat grid ordering. If the parent is missing from
    it, the versions are appended after the parent at the end.
    """
    current = sanitize_stacks(stacks or {})
    ids = current.get(parent_id)
    if not ids or len(ids) < 2:
        return None

    members = set(ids)
    without = [i for i in _unique(ordered_ids) if i == parent_id or i not in members]
    if parent_id not in without:
        without.append(parent_id)

    idx = without.index(parent_id)
    rest = [i for i in ids if i != parent_id]
    next_order = [*without[: idx + 1], *rest, *without[idx + 1:]]

    next_stacks = {pid: list(m) for pid, m in current.items() if pid != parent_id}
    return Unstacked(ordered_ids=next_order, stacks=next_stacks, stack_ids=list(ids))
