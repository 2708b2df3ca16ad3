"""Error kinds raised by the navigation-tree engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class NavTreeError(Exception):
    message: str
    code: str = "NAVTREE_ERROR"

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        return f"{self.code}: {self.message}"

    def to_issue(self, path: str | None = None) -> dict:
        return {"code": self.code, "message": self.message, "path": path, "detail": self.detail()}

    def detail(self) -> dict | None:
        return None


class TargetNotFound(NavTreeError):
    """The id is absent from the forest. Callers should refetch, not retry."""

    def __init__(self, target_id: str | None, message: str | None = None) -> None:
        super().__init__(message or f"node {target_id!r} not found in forest", "TARGET_NOT_FOUND")
        self.target_id = target_id

    def detail(self) -> dict | None:
        return {"target_id": self.target_id, "refresh": True}


class InvalidOperationAtRoot(NavTreeError):
    def __init__(self, operation: str, message: str | None = None) -> None:
        super().__init__(message or f"{operation} is not allowed on a root menu", "INVALID_OPERATION_AT_ROOT")
        self.operation = operation

    def detail(self) -> dict | None:
        return {"operation": self.operation}


class PersistenceRejected(NavTreeError):
    def __init__(
        self,
        message: str,
        root_id: str | None = None,
        fragment: Any = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, "PERSISTENCE_REJECTED")
        self.root_id = root_id
        self.fragment = fragment
        self.status_code = status_code

    def detail(self) -> dict | None:
        return {"root_id": self.root_id, "status_code": self.status_code}


class InvalidTransition(NavTreeError):
    def __init__(self, from_status: str | None, to_status: Any) -> None:
        super().__init__(f"cannot move node from {from_status!r} to {to_status!r}", "INVALID_TRANSITION")
        self.from_status = from_status
        self.to_status = to_status

    def detail(self) -> dict | None:
        return {"from": self.from_status, "to": self.to_status}


class DuplicateNodeId(NavTreeError):
    def __init__(self, node_id: str) -> None:
        super().__init__(f"node id {node_id!r} appears more than once", "DUPLICATE_NODE_ID")
        self.node_id = node_id


class RootBusy(NavTreeError):
    def __init__(self, root_id: str | None) -> None:
        super().__init__(
            f"menu {root_id!r} is being saved; editing is disabled until it completes",
            "ROOT_BUSY",
        )
        self.root_id = root_id

    def detail(self) -> dict | None:
        return {"root_id": self.root_id}


class NodeDecodeError(NavTreeError):
    def __init__(self, message: str, path: str = "$") -> None:
        super().__init__(message, "NODE_INVALID")
        self.path = path

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        return f"{self.code}: {self.message} (path={self.path})"
