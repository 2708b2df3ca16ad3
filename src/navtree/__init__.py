"""Navigation-tree kernel: node model, ids, path resolution."""

from .errors import (
    DuplicateNodeId,
    InvalidOperationAtRoot,
    InvalidTransition,
    NavTreeError,
    NodeDecodeError,
    PersistenceRejected,
    RootBusy,
    TargetNotFound,
)
from .forest_hash import CanonicalJsonTypeError, canonical_dumps, forest_hash
from .node_ids import is_persisted, is_synthesized, synthesize_forest, synthesize_ids
from .nodes import (
    STATUS_APPROVED,
    STATUS_CREATED,
    STATUS_REJECTED,
    Forest,
    NavNode,
    Path,
    forest_from_list,
    forest_to_list,
    make_node,
    node_from_dict,
    node_to_dict,
)
from .tree_path import find_path, find_path_or_none, iter_nodes

__all__ = [
    "CanonicalJsonTypeError",
    "DuplicateNodeId",
    "Forest",
    "InvalidOperationAtRoot",
    "InvalidTransition",
    "NavNode",
    "NavTreeError",
    "NodeDecodeError",
    "Path",
    "PersistenceRejected",
    "RootBusy",
    "STATUS_APPROVED",
    "STATUS_CREATED",
    "STATUS_REJECTED",
    "TargetNotFound",
    "canonical_dumps",
    "find_path",
    "find_path_or_none",
    "forest_from_list",
    "forest_hash",
    "forest_to_list",
    "is_persisted",
    "is_synthesized",
    "iter_nodes",
    "make_node",
    "node_from_dict",
    "node_to_dict",
    "synthesize_forest",
    "synthesize_ids",
]
