"""Editing session: compute a new forest, persist the touched root, reconcile."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import replace
from typing import Any, Callable, Dict, List, Set

import approval
import hierarchy
from event_bus import FOREST_CHANGED, EventBus, make_forest_changed
from forest_store import ForestStore
from navtree.errors import NavTreeError, PersistenceRejected, RootBusy, TargetNotFound
from navtree.forest_hash import forest_hash
from navtree.node_ids import assert_unique_ids, is_persisted, synthesize_forest
from navtree.nodes import KIND_ITEM, KIND_MENU, Forest, NavNode, node_to_dict
from navtree.tree_path import find_path
from tree_mutation import (
    InsertChild,
    Operation,
    Remove,
    Replace,
    append_root,
    apply_at,
    count_nodes,
    drop_root,
    edit_fields,
    replace_root,
    resolve_and_mutate,
)


logger = logging.getLogger("navtree.session")


class MenuSession:
    def __init__(
        self,
        store: ForestStore,
        bus: EventBus | None = None,
        actor: dict | None = None,
        can_review: bool = True,
    ) -> None:
        self._store = store
        self._bus = bus or EventBus()
        self._actor = actor
        self._can_review = can_review
        self._lock = threading.RLock()
        self._saving: Set[str] = set()
        self._forest: Forest = ()
        self._hash = forest_hash(())
        self._written_at = float("-inf")

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def forest(self) -> Forest:
        with self._lock:
            return self._forest

    def on_change(self, handler: Callable[[dict], None]) -> Callable[[], bool]:
        return self._bus.subscribe(FOREST_CHANGED, handler)

    # -- reads -------------------------------------------------------------

    def refresh(self) -> Forest:
        fetched = self._store.fetch_forest()
        return self.load(fetched, reason="refresh")

    def load(self, fetched: Forest, reason: str = "refresh", requested_at: float | None = None) -> Forest:
        """Install a fetched forest. Fetches issued before our last write are dropped."""
        forest = synthesize_forest(fetched)
        assert_unique_ids(forest)
        digest = forest_hash(forest)
        with self._lock:
            if requested_at is not None and requested_at < self._written_at:
                logger.info("forest_fetch_stale requested_at=%s written_at=%s", requested_at, self._written_at)
                return self._forest
            changed = digest != self._hash
            self._forest = forest
            self._hash = digest
        logger.info("forest_loaded roots=%s nodes=%s changed=%s", len(forest), count_nodes(forest), changed)
        if changed:
            self._publish(forest, reason)
        return forest

    def public_tree(self, locale: str = "en") -> List[hierarchy.PublicNode]:
        return hierarchy.public_tree(self.forest, locale)

    def pending_queue(self, locale: str = "en") -> List[hierarchy.PendingEntry]:
        return hierarchy.pending_queue(self.forest, locale)

    def counts(self) -> Dict[str, int]:
        return hierarchy.dashboard_counts(self.forest)

    def find(self, node_id: str) -> NavNode:
        return find_path(self.forest, node_id)[-1]

    def is_editable(self, node_id: str) -> bool:
        with self._lock:
            try:
                root = find_path(self._forest, node_id)[0]
            except TargetNotFound:
                return False
            return root.id not in self._saving

    def resolve_and_mutate(self, target_id: str, op: Operation) -> Forest:
        """Compute (but do not persist) the forest after ``op``."""
        return resolve_and_mutate(self.forest, target_id, op)

    # -- writes ------------------------------------------------------------

    def commit(self, target_id: str, op: Operation, reason: str | None = None) -> Forest:
        snapshot = self.forest
        path = find_path(snapshot, target_id)
        root_id = path[0].id
        self._check_editable(root_id)
        new_forest = apply_at(snapshot, path, op)
        new_root = next(root for root in new_forest if root.id == root_id)
        return self._persist_root(root_id, new_root, reason or getattr(op, "name", "mutate"), target_id)

    def add_root(self, node: NavNode, can_review: bool | None = None) -> NavNode:
        status = approval.status_for_save(self._reviewer(can_review), node.status)
        root = replace(node, kind=KIND_MENU, status=status, id=None)
        stored = self._call_store(lambda: self._store.create_root(root), None, root)
        with self._lock:
            forest = synthesize_forest(append_root(self._forest, stored))
            self._install(forest)
        logger.info("root_added root_id=%s status=%s", stored.id, status)
        self._publish(forest, "create_root", stored.id)
        return stored

    def add_child(self, parent_id: str, node: NavNode, can_review: bool | None = None) -> Forest:
        status = approval.status_for_save(self._reviewer(can_review), node.status)
        child = replace(node, kind=KIND_ITEM, status=status, id=None)
        return self.commit(parent_id, InsertChild(child), "insert_child")

    def edit_node(self, node_id: str, can_review: bool | None = None, **changes: Any) -> Forest:
        current = self.find(node_id)
        changes["status"] = approval.status_for_save(
            self._reviewer(can_review), changes.get("status"), current.status
        )
        updated = edit_fields(current, **changes)
        return self.commit(node_id, Replace(updated), "edit")

    def remove_node(self, node_id: str) -> Forest:
        return self.commit(node_id, Remove(), "remove")

    def approve(self, node_id: str, can_review: bool | None = None) -> Forest:
        return self._review(node_id, approval.APPROVED, can_review)

    def reject(self, node_id: str, can_review: bool | None = None) -> Forest:
        return self._review(node_id, approval.REJECTED, can_review)

    def delete_root(self, root_id: str) -> Forest:
        with self._lock:
            if not any(root.id == root_id for root in self._forest):
                raise TargetNotFound(root_id)
        self._begin_save(root_id)
        try:
            if is_persisted(root_id):
                self._call_store(lambda: self._store.delete_root(root_id), root_id, None)
            with self._lock:
                forest = drop_root(self._forest, root_id)
                self._install(forest)
        finally:
            self._end_save(root_id)
        logger.info("root_deleted root_id=%s", root_id)
        self._publish(forest, "delete_root", root_id)
        return forest

    # -- internals -----------------------------------------------------------

    def _reviewer(self, can_review: bool | None) -> bool:
        return self._can_review if can_review is None else can_review

    def _review(self, node_id: str, status: str, can_review: bool | None) -> Forest:
        if not self._reviewer(can_review):
            raise NavTreeError("reviewer role required to change approval status", "REVIEW_NOT_ALLOWED")
        snapshot = self.forest
        updated = approval.set_status(snapshot, node_id, status)
        if updated is snapshot:
            return snapshot
        node = find_path(updated, node_id)[-1]
        return self.commit(node_id, Replace(node), status.lower())

    def _check_editable(self, root_id: str | None) -> None:
        with self._lock:
            if root_id in self._saving:
                raise RootBusy(root_id)

    def _begin_save(self, root_id: str) -> None:
        with self._lock:
            if root_id in self._saving:
                raise RootBusy(root_id)
            self._saving.add(root_id)

    def _end_save(self, root_id: str) -> None:
        with self._lock:
            self._saving.discard(root_id)

    def _call_store(self, call: Callable[[], Any], root_id: str | None, root: NavNode | None) -> Any:
        try:
            return call()
        except PersistenceRejected as exc:
            if exc.fragment is None and root is not None:
                exc.fragment = node_to_dict(root)
            logger.warning("persist_rejected root_id=%s status=%s error=%s", root_id, exc.status_code, exc.message)
            raise

    def _persist_root(self, root_id: str, root: NavNode, reason: str, node_id: str | None) -> Forest:
        self._begin_save(root_id)
        try:
            if is_persisted(root_id):
                stored = self._call_store(lambda: self._store.persist_root(root_id, root), root_id, root)
            else:
                stored = self._call_store(lambda: self._store.create_root(root), root_id, root)
            with self._lock:
                forest = synthesize_forest(replace_root(self._forest, root_id, stored))
                self._install(forest)
        finally:
            self._end_save(root_id)
        logger.info("root_persisted root_id=%s reason=%s node_id=%s", stored.id, reason, node_id)
        self._publish(forest, reason, node_id)
        return forest

    def _install(self, forest: Forest) -> None:
        assert_unique_ids(forest)
        self._forest = forest
        self._hash = forest_hash(forest)
        self._written_at = time.monotonic()

    def _publish(self, forest: Forest, reason: str, node_id: str | None = None) -> None:
        self._bus.publish(make_forest_changed(forest, reason, actor=self._actor, node_id=node_id))
