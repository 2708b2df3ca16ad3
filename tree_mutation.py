"""Path-addressed insert/replace/remove over an immutable forest."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Iterable, List, Sequence, Tuple

from navtree.errors import InvalidOperationAtRoot, TargetNotFound
from navtree.nodes import KIND_ITEM, KIND_MENU, Forest, NavNode
from navtree.tree_path import find_path


@dataclass(frozen=True)
class InsertChild:
    node: NavNode
    name = "insert_child"


@dataclass(frozen=True)
class Replace:
    node: NavNode
    name = "replace"


@dataclass(frozen=True)
class Remove:
    name = "remove"


Operation = Any  # InsertChild | Replace | Remove


def _index_of(siblings: Sequence[NavNode], node: NavNode) -> int:
    # Identity first: the path was resolved against this very forest value.
    for idx, sibling in enumerate(siblings):
        if sibling is node:
            return idx
    if node.id is not None:
        for idx, sibling in enumerate(siblings):
            if sibling.id == node.id:
                return idx
    raise TargetNotFound(node.id, f"node {node.id!r} is no longer at the resolved path")


def _apply_to_target(target: NavNode, op: Operation) -> NavNode | None:
    if isinstance(op, InsertChild):
        child = op.node if op.node.kind == KIND_ITEM else replace(op.node, kind=KIND_ITEM)
        return replace(target, children=target.children + (child,))
    if isinstance(op, Replace):
        # The replacement keeps the slot's kind; root-ness is positional.
        if op.node.kind != target.kind:
            return replace(op.node, kind=target.kind)
        return op.node
    if isinstance(op, Remove):
        return None
    raise TypeError(f"Unsupported operation: {type(op).__name__}")


def apply_at(forest: Forest, path: Sequence[NavNode], op: Operation) -> Forest:
    """Return a new forest with ``op`` applied at the end of ``path``.

    Only the ancestors on ``path`` are rebuilt; every other subtree is shared
    by reference with ``forest``, which is left untouched.
    """
    if not path:
        raise TargetNotFound(None, "empty path")
    if isinstance(op, Remove) and len(path) == 1:
        raise InvalidOperationAtRoot("remove")

    root_idx = _index_of(forest, path[0])
    # Collect (parent, index-in-parent) for each hop below the root, checking
    # the chain still matches the forest.
    slots: List[Tuple[NavNode, int]] = []
    parent = forest[root_idx]
    for hop in path[1:]:
        idx = _index_of(parent.children, hop)
        slots.append((parent, idx))
        parent = parent.children[idx]

    target = parent
    updated = _apply_to_target(target, op)

    for owner, idx in reversed(slots):
        if updated is None:
            children = owner.children[:idx] + owner.children[idx + 1 :]
        else:
            children = owner.children[:idx] + (updated,) + owner.children[idx + 1 :]
        updated = replace(owner, children=children)

    return forest[:root_idx] + (updated,) + forest[root_idx + 1 :]


def resolve_and_mutate(forest: Forest, target_id: str, op: Operation) -> Forest:
    path = find_path(forest, target_id)
    return apply_at(forest, path, op)


def root_of(forest: Forest, node_id: str) -> NavNode:
    return find_path(forest, node_id)[0]


def append_root(forest: Forest, node: NavNode) -> Forest:
    if node.kind != KIND_MENU:
        node = replace(node, kind=KIND_MENU)
    return tuple(forest) + (node,)


def replace_root(forest: Forest, root_id: str, node: NavNode) -> Forest:
    for idx, root in enumerate(forest):
        if root.id == root_id:
            if node.kind != KIND_MENU:
                node = replace(node, kind=KIND_MENU)
            return forest[:idx] + (node,) + forest[idx + 1 :]
    raise TargetNotFound(root_id)


def drop_root(forest: Forest, root_id: str) -> Forest:
    for idx, root in enumerate(forest):
        if root.id == root_id:
            return forest[:idx] + forest[idx + 1 :]
    raise TargetNotFound(root_id)


def edit_fields(node: NavNode, **changes: Any) -> NavNode:
    """Field-level edit; setting one target kind clears the other."""
    allowed = {"title", "url", "redirect_url", "order", "status", "extra"}
    unknown = set(changes) - allowed
    if unknown:
        raise TypeError(f"Unknown node fields: {', '.join(sorted(unknown))}")
    if changes.get("redirect_url"):
        changes["url"] = ""
    elif changes.get("url"):
        changes["redirect_url"] = ""
    if "title" in changes:
        changes["title"] = dict(changes["title"])
    if "extra" in changes:
        changes["extra"] = {**node.extra, **changes["extra"]}
    return replace(node, **changes)


def count_nodes(nodes: Iterable[NavNode]) -> int:
    total = 0
    for node in nodes:
        total += 1 + count_nodes(node.children)
    return total
