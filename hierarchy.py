"""Read-only projections of the forest: public navigation and pending queue."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence

from navtree.nodes import PRIMARY_LOCALE, STATUS_APPROVED, STATUS_CREATED, NavNode
from navtree.tree_path import iter_nodes


UNNAMED_TITLE = "Unnamed Menu"


@dataclass
class PublicNode:
    node: NavNode
    title: str
    href: str
    external: bool
    depth: int
    children: List["PublicNode"] = field(default_factory=list)

    @property
    def id(self) -> str | None:
        return self.node.id

    def to_dict(self) -> dict:
        return {
            "id": self.node.id,
            "title": self.title,
            "href": self.href,
            "external": self.external,
            "depth": self.depth,
            "order": self.node.order,
            "children": [child.to_dict() for child in self.children],
        }


@dataclass
class PendingEntry:
    node: NavNode
    breadcrumb: List[str]
    path_ids: List[str | None]

    @property
    def depth(self) -> int:
        return len(self.breadcrumb)

    def to_dict(self, locale: str = PRIMARY_LOCALE) -> dict:
        return {
            "id": self.node.id,
            "title": localized_title(self.node, locale),
            "kind": self.node.kind,
            "status": self.node.status,
            "target": self.node.target,
            "breadcrumb": list(self.breadcrumb),
            "path_ids": list(self.path_ids),
        }


def slugify(text: str) -> str:
    if not text:
        return ""
    slug = text.lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def localized_title(node: NavNode, locale: str = PRIMARY_LOCALE) -> str:
    for key in (locale, PRIMARY_LOCALE):
        text = node.title.get(key)
        if text:
            return text
    for text in node.title.values():
        if text:
            return text
    return UNNAMED_TITLE


def resolve_target(node: NavNode) -> str:
    """Destination a link points at: the redirect when set, else the url."""
    return node.target


def is_external(url: str) -> bool:
    return url.startswith("http://") or url.startswith("https://")


def sort_level(nodes: Iterable[NavNode]) -> List[NavNode]:
    # sorted() is stable, so equal orders keep their stored position.
    return sorted(nodes, key=lambda n: n.order)


def resolve_href(node: NavNode, parent_href: str = "") -> str:
    target = resolve_target(node)
    # Redirects are used verbatim, relative or not.
    if node.redirect_url or target.startswith("/") or is_external(target):
        return target
    if target and target != "#":
        return f"{parent_href}/{target}" if parent_href else f"/{target}"
    slug = slugify(localized_title(node, PRIMARY_LOCALE))
    return f"{parent_href}/{slug}" if parent_href else f"/{slug}"


def _public_level(nodes: Sequence[NavNode], parent_href: str, depth: int, locale: str) -> List[PublicNode]:
    out: List[PublicNode] = []
    for node in sort_level(n for n in nodes if n.status == STATUS_APPROVED):
        href = resolve_href(node, parent_href)
        external = is_external(href)
        # External destinations do not namespace their children.
        child_base = parent_href if external else href
        out.append(
            PublicNode(
                node=node,
                title=localized_title(node, locale),
                href=href,
                external=external,
                depth=depth,
                children=_public_level(node.children, child_base, depth + 1, locale),
            )
        )
    return out


def public_tree(forest: Iterable[NavNode], locale: str = PRIMARY_LOCALE) -> List[PublicNode]:
    """Approved nodes reachable through approved ancestors, sorted by order."""
    return _public_level(tuple(forest), "", 0, locale)


def pending_queue(forest: Iterable[NavNode], locale: str = PRIMARY_LOCALE) -> List[PendingEntry]:
    entries: List[PendingEntry] = []
    for node, path in iter_nodes(forest):
        if node.status != STATUS_CREATED:
            continue
        entries.append(
            PendingEntry(
                node=node,
                breadcrumb=[localized_title(ancestor, locale) for ancestor in path[:-1]],
                path_ids=[n.id for n in path],
            )
        )
    return entries


def dashboard_counts(forest: Iterable[NavNode]) -> Dict[str, int]:
    menus = 0
    items = 0
    pending = 0
    for node, _path in iter_nodes(forest):
        if node.status == STATUS_CREATED:
            pending += 1
        live = node.status in (STATUS_APPROVED, STATUS_CREATED)
        if not live:
            continue
        if node.is_root:
            menus += 1
        else:
            items += 1
    return {"menus": menus, "items": items, "total": menus + items, "pending": pending}
