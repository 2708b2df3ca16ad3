from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

import httpx

from forest_store import ForestStore
from navtree.errors import NodeDecodeError, PersistenceRejected, TargetNotFound
from navtree.nodes import KIND_MENU, Forest, NavNode, forest_from_list, node_from_dict, node_to_dict


logger = logging.getLogger("navtree.remote")


def _join_url(base: str, path: str) -> str:
    if not base:
        return path
    return f"{base.rstrip('/')}/{path.lstrip('/')}"


def _error_message(res: httpx.Response) -> str:
    try:
        data = res.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and isinstance(data.get("message"), str):
        return data["message"]
    return f"Request failed ({res.status_code})"


def _unwrap(data: Any) -> Any:
    # The menus API answers either with the object itself or {"data": ...}.
    if isinstance(data, dict) and "data" in data and not any(k in data for k in ("_id", "id", "items")):
        return data["data"]
    return data


class HttpForestStore(ForestStore):
    """Client for the menus REST API (``/api/menus``)."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url
        self._token = token
        self._timeout = timeout
        self._transport = transport

    def _headers(self, with_body: bool = False) -> dict:
        headers = {"Accept": "application/json"}
        if with_body:
            headers["Content-Type"] = "application/json"
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _request(self, method: str, path: str, root_id: str | None = None, body: dict | None = None) -> Any:
        url = _join_url(self._base_url, path)
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                res = client.request(method, url, headers=self._headers(body is not None), json=body)
        except httpx.HTTPError as exc:
            logger.warning("menus_api_unreachable method=%s url=%s error=%s", method, url, exc)
            raise PersistenceRejected(str(exc), root_id=root_id, fragment=body) from exc
        if res.status_code == 404 and method in ("PUT", "DELETE") and root_id is not None:
            raise TargetNotFound(root_id, _error_message(res))
        if res.status_code >= 400:
            logger.warning("menus_api_error method=%s url=%s status=%s", method, url, res.status_code)
            raise PersistenceRejected(_error_message(res), root_id=root_id, fragment=body, status_code=res.status_code)
        if not res.content:
            return None
        try:
            return _unwrap(res.json())
        except ValueError as exc:
            raise PersistenceRejected("menus API returned invalid JSON", root_id=root_id, fragment=body, status_code=res.status_code) from exc

    def _decode_root(self, data: Any, root_id: str | None, body: dict | None) -> NavNode:
        try:
            return node_from_dict(data, KIND_MENU)
        except NodeDecodeError as exc:
            raise PersistenceRejected(f"menus API returned an invalid menu: {exc.message}", root_id=root_id, fragment=body) from exc

    def fetch_forest(self) -> Forest:
        data = self._request("GET", "/api/menus")
        try:
            return forest_from_list(data or [])
        except NodeDecodeError as exc:
            raise PersistenceRejected(f"menus API returned an invalid forest: {exc.message}") from exc

    def persist_root(self, root_id: str, root: NavNode) -> NavNode:
        body = node_to_dict(root)
        body.pop("_id", None)
        data = self._request("PUT", f"/api/menus/{root_id}", root_id=root_id, body=body)
        if data is None:
            # Some deployments answer 204; the store still owns the ids, so refetch.
            for stored in self.fetch_forest():
                if stored.id == root_id:
                    return stored
            raise TargetNotFound(root_id)
        return self._decode_root(data, root_id, body)

    def create_root(self, root: NavNode) -> NavNode:
        body = node_to_dict(replace(root, kind=KIND_MENU))
        body.pop("_id", None)
        data = self._request("POST", "/api/menus", body=body)
        return self._decode_root(data, None, body)

    def delete_root(self, root_id: str) -> bool:
        self._request("DELETE", f"/api/menus/{root_id}", root_id=root_id)
        return True
