"""Deterministic ids for nodes the store has not persisted yet."""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable, Set, Tuple

from .errors import DuplicateNodeId
from .nodes import Forest, NavNode


SYNTHESIZED_PREFIX = "temp-"
# Position segments are joined with "." and closed by the first ":"; titles may
# contain either character, positions never contain ":".
POSITION_SEP = "."
POSITION_END = ":"


def is_synthesized(node_id: str | None) -> bool:
    return isinstance(node_id, str) and node_id.startswith(SYNTHESIZED_PREFIX)


def is_persisted(node_id: str | None) -> bool:
    """True when the id was issued by the store (not synthesized, not missing)."""
    return isinstance(node_id, str) and node_id != "" and not node_id.startswith(SYNTHESIZED_PREFIX)


def content_fingerprint(node: NavNode) -> str:
    return f"{node.primary_title()}-{node.target}-{node.order}"


def position_of(prefix: str, index: int) -> str:
    return f"{prefix}{POSITION_SEP}{index}" if prefix else str(index)


def synthesized_id(position: str, node: NavNode) -> str:
    return f"{SYNTHESIZED_PREFIX}{position}{POSITION_END}{content_fingerprint(node)}"


def synthesize_ids(nodes: Iterable[NavNode], prefix: str = "") -> Tuple[NavNode, ...]:
    """Give every node lacking a persisted id an id derived from its position and content.

    Persisted ids are kept. A previously synthesized id is recomputed, so a node
    whose title/target/order changed gets a new id on the next pass.
    """
    out = []
    for index, node in enumerate(nodes):
        position = position_of(prefix, index)
        children = synthesize_ids(node.children, position)
        node_id = node.id if is_persisted(node.id) else synthesized_id(position, node)
        if node_id == node.id and _same_children(children, node.children):
            out.append(node)
            continue
        out.append(replace(node, id=node_id, children=children))
    return tuple(out)


def synthesize_forest(forest: Iterable[NavNode]) -> Forest:
    out = []
    for index, root in enumerate(forest):
        children = synthesize_ids(root.children, f"r{index}")
        root_id = root.id if is_persisted(root.id) else synthesized_id(position_of("root", index), root)
        if root_id == root.id and _same_children(children, root.children):
            out.append(root)
            continue
        out.append(replace(root, id=root_id, children=children))
    return tuple(out)


def _same_children(new: Tuple[NavNode, ...], old: Tuple[NavNode, ...]) -> bool:
    return len(new) == len(old) and all(a is b for a, b in zip(new, old))


def assert_unique_ids(forest: Iterable[NavNode]) -> None:
    seen: Set[str] = set()
    stack = list(reversed(tuple(forest)))
    while stack:
        node = stack.pop()
        if node.id is not None:
            if node.id in seen:
                raise DuplicateNodeId(node.id)
            seen.add(node.id)
        stack.extend(reversed(node.children))
