"""Remote-store interface for the navigation forest, plus an in-memory store."""

from __future__ import annotations

import copy
import logging
import threading
import uuid
from dataclasses import replace
from typing import Dict, List

from navtree.errors import PersistenceRejected, TargetNotFound
from navtree.node_ids import is_persisted
from navtree.nodes import KIND_MENU, Forest, NavNode, forest_from_list, node_from_dict, node_to_dict


logger = logging.getLogger("navtree.store")


class ForestStore:
    """What the engine needs from the authoritative store."""

    def fetch_forest(self) -> Forest:
        raise NotImplementedError

    def persist_root(self, root_id: str, root: NavNode) -> NavNode:
        raise NotImplementedError

    def create_root(self, root: NavNode) -> NavNode:
        raise NotImplementedError

    def delete_root(self, root_id: str) -> bool:
        raise NotImplementedError


def _assign_ids(raw: dict) -> dict:
    if not is_persisted(raw.get("_id")):
        raw["_id"] = uuid.uuid4().hex
    for child in raw.get("items") or []:
        _assign_ids(child)
    return raw


class InMemoryForestStore(ForestStore):
    """Keeps the wire representation, so every read decodes a fresh copy."""

    def __init__(self, menus: List[dict] | None = None) -> None:
        self._lock = threading.Lock()
        self._menus: Dict[str, dict] = {}
        self._fail_next: str | None = None
        for raw in menus or []:
            record = _assign_ids(copy.deepcopy(raw))
            self._menus[record["_id"]] = record

    def fail_next(self, message: str = "store unavailable") -> None:
        self._fail_next = message

    def _check_failure(self, root_id: str | None, fragment) -> None:
        if self._fail_next is not None:
            message = self._fail_next
            self._fail_next = None
            raise PersistenceRejected(message, root_id=root_id, fragment=fragment, status_code=503)

    def fetch_forest(self) -> Forest:
        with self._lock:
            raw = [copy.deepcopy(menu) for menu in self._menus.values()]
        return forest_from_list(raw)

    def list_raw(self) -> list[dict]:
        with self._lock:
            return [copy.deepcopy(menu) for menu in self._menus.values()]

    def persist_root(self, root_id: str, root: NavNode) -> NavNode:
        fragment = node_to_dict(root)
        with self._lock:
            self._check_failure(root_id, fragment)
            if root_id not in self._menus:
                raise PersistenceRejected("menu not found", root_id=root_id, fragment=fragment, status_code=404)
            fragment["_id"] = root_id
            record = _assign_ids(copy.deepcopy(fragment))
            self._menus[root_id] = record
            stored = copy.deepcopy(record)
        logger.info("root_persisted root_id=%s", root_id)
        return node_from_dict(stored, KIND_MENU)

    def create_root(self, root: NavNode) -> NavNode:
        fragment = node_to_dict(replace(root, kind=KIND_MENU))
        fragment.pop("_id", None)
        with self._lock:
            self._check_failure(None, fragment)
            record = _assign_ids(copy.deepcopy(fragment))
            self._menus[record["_id"]] = record
            stored = copy.deepcopy(record)
        logger.info("root_created root_id=%s", stored["_id"])
        return node_from_dict(stored, KIND_MENU)

    def delete_root(self, root_id: str) -> bool:
        with self._lock:
            self._check_failure(root_id, None)
            if root_id not in self._menus:
                raise TargetNotFound(root_id)
            del self._menus[root_id]
        logger.info("root_deleted root_id=%s", root_id)
        return True
