from __future__ import annotations

from typing import Any, Iterable

from jinja2 import StrictUndefined
from jinja2.sandbox import ImmutableSandboxedEnvironment

from hierarchy import PublicNode


_ALLOWED_FILTERS = {"default", "e", "escape", "length", "lower", "trim"}

NAV_TEMPLATE = """\
<nav class="site-nav" aria-label="{{ label }}">
<ul class="nav-menu">
{%- for item in items recursive %}
<li class="nav-item depth-{{ item.depth }}{% if item.children %} has-nested{% endif %}">
<a class="nav-link" href="{{ item.href }}"{% if item.external %} target="_blank" rel="noopener noreferrer"{% endif %}>{{ item.title }}</a>
{%- if item.children %}
<ul class="dropdown{% if item.depth > 0 %} nested-dropdown{% else %} main-dropdown{% endif %}">{{ loop(item.children) }}
</ul>
{%- endif %}
</li>
{%- endfor %}
</ul>
</nav>
"""


class _LockedSandbox(ImmutableSandboxedEnvironment):
    # Context items are plain dicts; no Python attribute is ever reachable.
    def is_safe_attribute(self, obj, attr, value) -> bool:
        return False


def _env() -> _LockedSandbox:
    env = _LockedSandbox(autoescape=True, undefined=StrictUndefined)
    env.globals = {}
    env.filters = {key: val for key, val in env.filters.items() if key in _ALLOWED_FILTERS}
    return env


def _context_item(node: PublicNode) -> dict[str, Any]:
    return {
        "id": node.id,
        "title": node.title,
        "href": node.href,
        "external": node.external,
        "depth": node.depth,
        "children": [_context_item(child) for child in node.children],
    }


def render_nav(tree: Iterable[PublicNode], label: str = "Main navigation", template: str | None = None) -> str:
    """Render the public tree as nested ``<ul>`` markup."""
    env = _env()
    tmpl = env.from_string(template or NAV_TEMPLATE)
    return tmpl.render(items=[_context_item(node) for node in tree], label=label)
