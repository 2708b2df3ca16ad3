"""Ancestor-chain resolution over a forest of nested menus."""

from __future__ import annotations

from typing import Iterable, Iterator, List, Sequence, Tuple

from .errors import TargetNotFound
from .nodes import Forest, NavNode, Path


def iter_nodes(forest: Iterable[NavNode]) -> Iterator[Tuple[NavNode, Path]]:
    """Depth-first walk in stored order, yielding ``(node, path_to_node)``."""
    stack: List[Tuple[NavNode, Path]] = [(root, (root,)) for root in reversed(tuple(forest))]
    while stack:
        node, path = stack.pop()
        yield node, path
        for child in reversed(node.children):
            stack.append((child, path + (child,)))


def find_path_or_none(forest: Iterable[NavNode], target_id: str) -> Path | None:
    if target_id is None:
        return None
    for node, path in iter_nodes(forest):
        if node.id == target_id:
            return path
    return None


def find_path(forest: Iterable[NavNode], target_id: str) -> Path:
    path = find_path_or_none(forest, target_id)
    if path is None:
        raise TargetNotFound(target_id)
    return path


def find_node(forest: Iterable[NavNode], target_id: str) -> NavNode:
    return find_path(forest, target_id)[-1]


def path_ids(path: Sequence[NavNode]) -> List[str | None]:
    return [node.id for node in path]


def walk_ids(forest: Forest, ids: Sequence[str]) -> Path:
    """Follow a chain of ids from a root; every hop must exist."""
    if not ids:
        raise TargetNotFound(None, "empty id chain")
    level: Sequence[NavNode] = forest
    out: List[NavNode] = []
    for hop in ids:
        match = None
        for node in level:
            if node.id == hop:
                match = node
                break
        if match is None:
            parent = out[-1].id if out else "forest"
            raise TargetNotFound(hop, f"node {hop!r} not found under {parent!r}")
        out.append(match)
        level = match.children
    return tuple(out)
