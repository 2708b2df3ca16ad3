"""Canonical JSON for forest payloads and forest content hashing."""

from __future__ import annotations

import hashlib
import json
import math
from typing import Any, Iterable

from .nodes import NavNode, forest_to_list


class CanonicalJsonTypeError(TypeError):
    """Raised when a payload holds something other than JSON primitives."""


def _validate(obj: Any, path: str = "$") -> None:
    if isinstance(obj, dict):
        for key, value in obj.items():
            if not isinstance(key, str):
                raise CanonicalJsonTypeError(f"Unsupported key type at {path}: {type(key).__name__}")
            _validate(value, f"{path}.{key}")
        return
    if isinstance(obj, (list, tuple)):
        for idx, item in enumerate(obj):
            _validate(item, f"{path}[{idx}]")
        return
    if obj is None or isinstance(obj, (str, int, bool)):
        return
    if isinstance(obj, float):
        if not math.isfinite(obj):
            raise ValueError(f"Non-finite float at {path}: {obj!r}")
        return
    raise CanonicalJsonTypeError(f"Unsupported type at {path}: {type(obj).__name__}")


def canonical_dumps(obj: Any) -> str:
    """Sorted keys, list order preserved, no whitespace, non-ASCII kept."""
    _validate(obj)
    return json.dumps(obj, sort_keys=True, ensure_ascii=False, separators=(",", ":"), allow_nan=False)


def forest_hash(forest: Iterable[NavNode]) -> str:
    # Synthesized ids are part of the hash: they are what the UI keys on.
    payload = forest_to_list(forest, include_synthesized=True)
    digest = hashlib.sha256(canonical_dumps(payload).encode("utf-8")).hexdigest()
    return f"sha256:{digest}"
