"""Version stacks: index lookups, mutations, and pruning."""

from .index import (
    StackMap,
    build_child_to_parent,
    dump_stacks,
    is_stack_parent,
    latest_id_for_card,
    parse_stacks,
    sanitize_stacks,
    visible_ids,
)
from .mutator import StackCandidate, create_or_replace_stack, merge_on_drop, unstack
from .pruner import active_allowed_ids, normalize, retained_allowed_ids

__all__ = [
    "StackMap",
    "StackCandidate",
    "active_allowed_ids",
    "build_child_to_parent",
    "create_or_replace_stack",
    "dump_stacks",
    "is_stack_parent",
    "latest_id_for_card",
    "merge_on_drop",
    "normalize",
    "parse_stacks",
    "retained_allowed_ids",
    "sanitize_stacks",
    "unstack",
    "visible_ids",
]
