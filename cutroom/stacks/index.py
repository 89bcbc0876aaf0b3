"""Stack index: pure lookups over a stacks map.

A stacks map is ``{parent_id: [parent_id, v2, v3, ...]}``. Element 0 is the
parent key (version 1) and the last element is the newest version. Depth is
always exactly one: no id appears in two lists and no parent key is a member
of another parent's list.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping, Sequence
from typing import AbstractSet

StackMap = dict[str, list[str]]
ChildToParent = dict[str, str]


def _clean_id(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def coerce_shape(raw: object) -> StackMap:
    """Keep string keys with list values; clean, de-dupe, and put the key first."""
    if not isinstance(raw, Mapping):
        return {}

    out: StackMap = {}
    for raw_parent, raw_ids in raw.items():
        if not isinstance(raw_parent, str):
            continue
        parent_id = raw_parent.strip()
        if not parent_id or not isinstance(raw_ids, (list, tuple)):
            continue

        ids = list(dict.fromkeys(i for i in (_clean_id(v) for v in raw_ids) if i))
        out[parent_id] = [parent_id, *(i for i in ids if i != parent_id)]
    return out


def restrict_stacks(
    stacks: Mapping[str, Sequence[str]],
    allowed_ids: AbstractSet[str] | None = None,
) -> StackMap:
    """Enforce the structural invariants, optionally against an allowed-id set.

    Entries are processed in map order and the first list to claim an id
    keeps it. A parent that is not allowed, or already claimed by an earlier
    list, drops its whole entry; lists left with fewer than two ids are
    dropped and release their claims.
    """
    claimed: set[str] = set()
    out: StackMap = {}

    for parent_id, members in stacks.items():
        if allowed_ids is not None and parent_id not in allowed_ids:
            continue
        if parent_id in claimed:
            continue

        kept: list[str] = [parent_id]
        seen = {parent_id}
        for member in members:
            if member in seen or member in claimed:
                continue
            if allowed_ids is not None and member not in allowed_ids:
                continue
            seen.add(member)
            kept.append(member)

        if len(kept) < 2:
            continue

        claimed.update(kept)
        out[parent_id] = kept

    return out


def sanitize_stacks(raw: object) -> StackMap:
    """Validating deserialisation for untrusted stacks input.

    Anything that is not a mapping of id -> list of ids collapses to ``{}``.
    """
    return restrict_stacks(coerce_shape(raw))


def parse_stacks(text: str | None) -> StackMap:
    """Parse persisted stacks JSON, falling back to an empty map."""
    if not text:
        return {}
    try:
        data = json.loads(text)
    except (TypeError, ValueError):
        return {}
    return sanitize_stacks(data)


def dump_stacks(stacks: Mapping[str, Sequence[str]]) -> str:
    return json.dumps({k: list(v) for k, v in stacks.items()}, separators=(",", ":"))


def build_child_to_parent(stacks: Mapping[str, Sequence[str]]) -> ChildToParent:
    """Invert a stacks map: every member except element 0 -> element 0."""
    child_to_parent: ChildToParent = {}
    for parent_id, ids in stacks.items():
        for member in ids:
            if member != parent_id:
                child_to_parent[member] = parent_id
    return child_to_parent


def parent_id_for(card_id: str, child_to_parent: Mapping[str, str]) -> str:
    return child_to_parent.get(card_id, card_id)


def stack_ids(parent_id: str, stacks: Mapping[str, Sequence[str]]) -> list[str]:
    ids = stacks.get(parent_id)
    return list(ids) if ids else [parent_id]


def latest_id_for_card(
    card_id: str,
    stacks: Mapping[str, Sequence[str]],
    child_to_parent: Mapping[str, str] | None = None,
) -> str:
    """Resolve any stack member to its newest version; non-members map to themselves."""
    if child_to_parent is None:
        child_to_parent = build_child_to_parent(stacks)
    parent_id = parent_id_for(card_id, child_to_parent)
    ids = stacks.get(parent_id) or [parent_id]
    return ids[-1]


def is_stack_parent(card_id: str, stacks: Mapping[str, Sequence[str]]) -> bool:
    ids = stacks.get(card_id)
    return bool(ids) and len(ids) >= 2


def is_hidden_member(card_id: str, child_to_parent: Mapping[str, str]) -> bool:
    return card_id in child_to_parent


def visible_ids(ordered_ids: Iterable[str], stacks: Mapping[str, Sequence[str]]) -> list[str]:
    """Grid view: drop every id that is a non-parent stack member."""
    child_to_parent = build_child_to_parent(stacks)
    return [i for i in ordered_ids if not is_hidden_member(i, child_to_parent)]
