"""Per-node approval states and public visibility rules."""

from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, Sequence

from navtree.errors import InvalidTransition
from navtree.nodes import STATUS_APPROVED, STATUS_CREATED, STATUS_REJECTED, STATUSES, Forest, NavNode
from navtree.tree_path import find_path, iter_nodes
from tree_mutation import Replace, apply_at


CREATED = STATUS_CREATED
APPROVED = STATUS_APPROVED
REJECTED = STATUS_REJECTED

# Review decisions can be flipped any number of times; re-entering the same
# state is a no-op. Only an edit by a non-reviewer sends a node back to Created.
TRANSITIONS: Dict[str, frozenset] = {
    CREATED: frozenset({CREATED, APPROVED, REJECTED}),
    APPROVED: frozenset({APPROVED, REJECTED, CREATED}),
    REJECTED: frozenset({REJECTED, APPROVED, CREATED}),
}


def can_transition(from_status: str, to_status: str) -> bool:
    return to_status in TRANSITIONS.get(from_status, frozenset())


def transition_node(node: NavNode, to_status: str) -> NavNode:
    if to_status not in STATUSES or not can_transition(node.status, to_status):
        raise InvalidTransition(node.status, to_status)
    if node.status == to_status:
        return node
    return replace(node, status=to_status)


def set_status(forest: Forest, node_id: str, to_status: str) -> Forest:
    """Move one node to ``to_status``. Children and ancestors are left alone."""
    path = find_path(forest, node_id)
    target = path[-1]
    updated = transition_node(target, to_status)
    if updated is target:
        return forest
    return apply_at(forest, path, Replace(updated))


def approve(forest: Forest, node_id: str) -> Forest:
    return set_status(forest, node_id, APPROVED)


def reject(forest: Forest, node_id: str) -> Forest:
    return set_status(forest, node_id, REJECTED)


def is_publicly_visible(path: Sequence[NavNode]) -> bool:
    return bool(path) and all(node.status == APPROVED for node in path)


def status_for_save(can_review: bool, requested: str | None = None, current: str | None = None) -> str:
    """Status to store when an editor saves a node.

    Editors without review rights always submit for review. Reviewers keep
    what they asked for, falling back to the node's current status.
    """
    if not can_review:
        return CREATED
    for candidate in (requested, current):
        if candidate in STATUSES:
            return candidate
    return CREATED


def status_counts(forest: Iterable[NavNode]) -> Dict[str, int]:
    counts = {status: 0 for status in STATUSES}
    for node, _path in iter_nodes(forest):
        counts[node.status] = counts.get(node.status, 0) + 1
    return counts
