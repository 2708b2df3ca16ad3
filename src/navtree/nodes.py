"""Navigation node model and the store wire codec."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, Set, Tuple

from .errors import NodeDecodeError


STATUS_CREATED = "Created"
STATUS_APPROVED = "Approved"
STATUS_REJECTED = "Rejected"
STATUSES = (STATUS_CREATED, STATUS_APPROVED, STATUS_REJECTED)

KIND_MENU = "menu"
KIND_ITEM = "item"

PRIMARY_LOCALE = "en"

# Alias groups, first non-empty wins. Only the alias actually read is
# consumed; the others ride along in NavNode.extra.
ID_KEYS = ("_id", "id")
TITLE_KEYS = ("title", "name")
LEGACY_TITLE_KEYS = {"menu_name_en": "en", "menu_name_kn": "kn"}
URL_KEYS = ("url", "url_en", "url_kn", "link")
ORDER_KEYS = ("order_no", "order")
CHILD_KEYS = ("items", "children")

# Rewritten by node_to_dict on every encode.
_WRITTEN_KEYS = frozenset({"_id", "title", "url", "redirect_url", "order", "order_no", "status", "items"})
_ROOT_WRITTEN_KEYS = _WRITTEN_KEYS | {"name", "active"}


@dataclass(frozen=True, eq=True)
class NavNode:
    id: str | None = None
    title: Dict[str, str] = field(default_factory=dict)
    url: str = ""
    redirect_url: str = ""
    order: int = 0
    status: str = STATUS_CREATED
    children: Tuple["NavNode", ...] = ()
    kind: str = KIND_ITEM
    extra: Dict[str, Any] = field(default_factory=dict)

    __hash__ = None  # type: ignore[assignment]

    @property
    def is_root(self) -> bool:
        return self.kind == KIND_MENU

    @property
    def target(self) -> str:
        """Effective destination: redirect wins over the internal path."""
        return self.redirect_url or self.url

    def primary_title(self) -> str:
        return self.title.get(PRIMARY_LOCALE) or ""

    def with_children(self, children: Iterable["NavNode"]) -> "NavNode":
        return replace(self, children=tuple(children))


Forest = Tuple[NavNode, ...]
Path = Tuple[NavNode, ...]


def _first(raw: dict, keys: Iterable[str], consumed: Set[str]) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is None or value == "" or value == {}:
            continue
        consumed.add(key)
        return value
    return None


def _decode_title(raw: dict, path: str, consumed: Set[str]) -> Dict[str, str]:
    value = _first(raw, TITLE_KEYS, consumed)
    if value is None:
        legacy = {}
        for key, locale in LEGACY_TITLE_KEYS.items():
            if isinstance(raw.get(key), str):
                legacy[locale] = raw[key]
                consumed.add(key)
        return legacy
    if isinstance(value, str):
        return {PRIMARY_LOCALE: value}
    if not isinstance(value, dict):
        raise NodeDecodeError("title must be an object of locale -> text", f"{path}.title")
    out: Dict[str, str] = {}
    for locale, text in value.items():
        if text is None:
            continue
        if not isinstance(text, str):
            raise NodeDecodeError("title values must be strings", f"{path}.title.{locale}")
        out[str(locale)] = text
    return out


def _coerce_order(value: Any, path: str) -> int:
    if isinstance(value, bool):
        raise NodeDecodeError("order must be an integer", path)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise NodeDecodeError("order must be an integer", path)


def _decode_order(raw: dict, path: str) -> int:
    # order_no wins unless it is zero, then order.
    for key in ORDER_KEYS:
        value = raw.get(key)
        if value is None or value == "":
            continue
        order = _coerce_order(value, f"{path}.{key}")
        if order:
            return order
    return 0


def _decode_str(raw: dict, keys: Iterable[str], path: str, label: str, consumed: Set[str]) -> str:
    value = _first(raw, keys, consumed)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise NodeDecodeError(f"{label} must be a string", f"{path}.{label}")
    return value


def node_from_dict(raw: Any, kind: str = KIND_ITEM, path: str = "$") -> NavNode:
    """Decode a stored menu/item object (nested ``items`` of any depth)."""
    if not isinstance(raw, dict):
        raise NodeDecodeError("node must be an object", path)

    consumed: Set[str] = set()
    node_id = _first(raw, ID_KEYS, consumed)
    if node_id is not None and not isinstance(node_id, (str, int)):
        raise NodeDecodeError("id must be a string", f"{path}.id")

    status = raw.get("status") or STATUS_CREATED
    if status not in STATUSES:
        raise NodeDecodeError(f"unknown status {status!r}", f"{path}.status")

    raw_children = _first(raw, CHILD_KEYS, consumed)
    if raw_children is None:
        raw_children = []
    if not isinstance(raw_children, list):
        raise NodeDecodeError("items must be a list", f"{path}.items")

    children = tuple(
        node_from_dict(child, KIND_ITEM, f"{path}.items[{idx}]") for idx, child in enumerate(raw_children)
    )
    title = _decode_title(raw, path, consumed)
    url = _decode_str(raw, URL_KEYS, path, "url", consumed)
    redirect_url = _decode_str(raw, ("redirect_url",), path, "redirect_url", consumed)

    written = _ROOT_WRITTEN_KEYS if kind == KIND_MENU else _WRITTEN_KEYS
    extra = {k: copy.deepcopy(v) for k, v in raw.items() if k not in consumed and k not in written}

    return NavNode(
        id=str(node_id) if node_id is not None else None,
        title=title,
        url=url,
        redirect_url=redirect_url,
        order=_decode_order(raw, path),
        status=status,
        children=children,
        kind=kind,
        extra=extra,
    )


def forest_from_list(raw: Any) -> Forest:
    if not isinstance(raw, list):
        raise NodeDecodeError("forest must be a list of menus", "$")
    return tuple(node_from_dict(item, KIND_MENU, f"$[{idx}]") for idx, item in enumerate(raw))


def node_to_dict(node: NavNode, include_synthesized: bool = False) -> dict:
    """Encode for the store. Synthesized ids are dropped unless asked for."""
    from .node_ids import is_persisted

    out: Dict[str, Any] = copy.deepcopy(node.extra)
    if node.id is not None and (include_synthesized or is_persisted(node.id)):
        out["_id"] = node.id
    out["title"] = dict(node.title)
    out["url"] = node.url
    out["redirect_url"] = node.redirect_url
    out["order"] = node.order
    out["order_no"] = node.order
    out["status"] = node.status
    if node.is_root:
        out["name"] = dict(node.title)
        out["active"] = node.status == STATUS_APPROVED
    out["items"] = [node_to_dict(child, include_synthesized) for child in node.children]
    return out


def forest_to_list(forest: Iterable[NavNode], include_synthesized: bool = False) -> list[dict]:
    return [node_to_dict(root, include_synthesized) for root in forest]


def make_node(
    title: Dict[str, str] | str,
    url: str = "",
    redirect_url: str = "",
    order: int = 0,
    status: str = STATUS_CREATED,
    kind: str = KIND_ITEM,
    children: Iterable[NavNode] = (),
    node_id: str | None = None,
    **extra: Any,
) -> NavNode:
    if isinstance(title, str):
        title = {PRIMARY_LOCALE: title}
    return NavNode(
        id=node_id,
        title=dict(title),
        url=url,
        redirect_url=redirect_url,
        order=order,
        status=status,
        children=tuple(children),
        kind=kind,
        extra=dict(extra),
    )
