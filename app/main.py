"""FastAPI service exposing the navigation-tree engine to the admin panel and public site."""

from __future__ import annotations

import functools
import logging
import os
import re
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Callable

import anyio
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import HTMLResponse, JSONResponse

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


_load_env_file(ROOT / "app" / ".env")

from app.nav_render import render_nav
from app.remote_store import HttpForestStore
from event_bus import EventBus
from forest_store import ForestStore, InMemoryForestStore
from menu_session import MenuSession
from navtree.errors import (
    NavTreeError,
    PersistenceRejected,
    RootBusy,
    TargetNotFound,
)
from navtree.forest_hash import forest_hash
from navtree.node_ids import is_persisted
from navtree.nodes import (
    LEGACY_TITLE_KEYS,
    ORDER_KEYS,
    TITLE_KEYS,
    URL_KEYS,
    forest_to_list,
    node_from_dict,
    node_to_dict,
)
from navtree.tree_path import find_path, path_ids
from pending_poller import PendingQueuePoller


logger = logging.getLogger("navtree")
logging.basicConfig(level=logging.INFO)

API_BASE_URL = os.getenv("NAVTREE_API_BASE_URL", "").strip()
API_TOKEN = os.getenv("NAVTREE_API_TOKEN", "").strip() or None
API_TIMEOUT = float(os.getenv("NAVTREE_API_TIMEOUT", "30"))
POLL_INTERVAL_S = float(os.getenv("NAVTREE_POLL_INTERVAL_S", "5"))
DEFAULT_LOCALE = os.getenv("NAVTREE_DEFAULT_LOCALE", "").strip() or "en"
DEFAULT_CAN_REVIEW = os.getenv("NAVTREE_DEFAULT_CAN_REVIEW", "1").strip().lower() in ("1", "true", "yes")
_LOCAL_CORS_REGEX = re.compile(r"^http://(localhost|127\.0\.0\.1):\d+$")
_CORS_ORIGINS = {
    origin.strip().rstrip("/")
    for origin in os.getenv("NAVTREE_CORS_ORIGINS", "").split(",")
    if origin.strip()
}

_EDITABLE_FIELDS = ("title", "url", "redirect_url", "order", "status")


def _build_store() -> ForestStore:
    if API_BASE_URL:
        logger.info("store=http base_url=%s timeout=%s", API_BASE_URL, API_TIMEOUT)
        return HttpForestStore(API_BASE_URL, token=API_TOKEN, timeout=API_TIMEOUT)
    logger.info("store=memory")
    return InMemoryForestStore()


store = _build_store()
bus = EventBus()
session = MenuSession(store, bus)
poller = PendingQueuePoller(
    store.fetch_forest,
    on_update=lambda forest, requested_at: session.load(forest, reason="poll", requested_at=requested_at),
    interval=POLL_INTERVAL_S if POLL_INTERVAL_S > 0 else 5.0,
    locale=DEFAULT_LOCALE,
)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    try:
        await anyio.to_thread.run_sync(session.refresh)
    except NavTreeError as exc:
        logger.warning("initial_refresh_failed error=%s", exc)
    if API_BASE_URL and POLL_INTERVAL_S > 0:
        poller.start()
    try:
        yield
    finally:
        await poller.stop()


app = FastAPI(title="navtree", lifespan=lifespan)


@app.middleware("http")
async def local_cors_fallback_middleware(request: Request, call_next):
    origin = request.headers.get("origin")
    if request.method == "OPTIONS":
        response = JSONResponse({}, status_code=200)
    else:
        response = await call_next(request)
    normalized_origin = origin.rstrip("/") if isinstance(origin, str) else origin
    if normalized_origin and (normalized_origin in _CORS_ORIGINS or _LOCAL_CORS_REGEX.match(normalized_origin)):
        response.headers.setdefault("Access-Control-Allow-Origin", origin)
        response.headers.setdefault("Access-Control-Allow-Credentials", "true")
        response.headers.setdefault("Access-Control-Allow-Headers", "*")
        response.headers.setdefault("Access-Control-Allow-Methods", "*")
        response.headers.setdefault("Vary", "Origin")
    return response


def _error_response(code: str, message: str, path: str | None = None, detail: dict | None = None, status: int = 400) -> JSONResponse:
    body = {
        "ok": False,
        "errors": [{"code": code, "message": message, "path": path, "detail": detail}],
        "warnings": [],
    }
    return JSONResponse(jsonable_encoder(body), status_code=status)


def _ok_response(payload: dict, warnings: list | None = None, status: int = 200) -> JSONResponse:
    body = {"ok": True, **payload, "errors": [], "warnings": warnings or []}
    return JSONResponse(jsonable_encoder(body), status_code=status)


def _engine_error(exc: NavTreeError) -> JSONResponse:
    if isinstance(exc, TargetNotFound):
        status = 404
    elif isinstance(exc, RootBusy):
        status = 409
    elif isinstance(exc, PersistenceRejected):
        status = 502
    elif exc.code == "REVIEW_NOT_ALLOWED":
        status = 403
    else:
        status = 400
    issue = exc.to_issue(getattr(exc, "path", None))
    return _error_response(issue["code"], issue["message"], issue["path"], issue["detail"], status=status)


async def _safe_json(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _can_review(request: Request) -> bool:
    header = request.headers.get("x-can-review")
    if header is None:
        return DEFAULT_CAN_REVIEW
    return header.strip().lower() in ("1", "true", "yes")


def _locale(request: Request) -> str:
    return (request.query_params.get("locale") or "").strip() or DEFAULT_LOCALE


async def _run(call: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    return await anyio.to_thread.run_sync(functools.partial(call, *args, **kwargs))


def _forest_payload(forest) -> dict:
    return {"menus": forest_to_list(forest, include_synthesized=True), "forest_hash": forest_hash(forest)}


def _changes_from_body(body: dict) -> dict:
    node = node_from_dict(body)
    changes = {}
    aliases = {
        "title": TITLE_KEYS + tuple(LEGACY_TITLE_KEYS),
        "url": URL_KEYS,
        "redirect_url": ("redirect_url",),
        "order": ORDER_KEYS,
        "status": ("status",),
    }
    for field in _EDITABLE_FIELDS:
        if any(key in body for key in aliases[field]):
            changes[field] = getattr(node, field)
    return changes


@app.get("/health")
async def health() -> dict:
    return {"ok": True}


@app.get("/menus")
async def list_menus() -> JSONResponse:
    return _ok_response(_forest_payload(session.forest))


@app.post("/menus/refresh")
async def refresh_menus() -> JSONResponse:
    try:
        forest = await _run(session.refresh)
    except NavTreeError as exc:
        return _engine_error(exc)
    return _ok_response(_forest_payload(forest))


@app.get("/menus/public")
async def public_menus(request: Request) -> JSONResponse:
    tree = session.public_tree(_locale(request))
    return _ok_response({"tree": [node.to_dict() for node in tree]})


@app.get("/menus/public.html")
async def public_menus_html(request: Request) -> HTMLResponse:
    tree = session.public_tree(_locale(request))
    return HTMLResponse(render_nav(tree))


@app.get("/menus/pending")
async def pending_menus(request: Request) -> JSONResponse:
    locale = _locale(request)
    entries = session.pending_queue(locale)
    return _ok_response({"pending": [entry.to_dict(locale) for entry in entries], "count": len(entries)})


@app.get("/menus/counts")
async def menu_counts() -> JSONResponse:
    return _ok_response({"counts": session.counts()})


@app.post("/menus")
async def create_menu(request: Request) -> JSONResponse:
    body = await _safe_json(request)
    try:
        node = node_from_dict(body)
        stored = await _run(session.add_root, node, can_review=_can_review(request))
    except NavTreeError as exc:
        return _engine_error(exc)
    return _ok_response({"menu": node_to_dict(stored, include_synthesized=True)}, status=201)


@app.delete("/menus/{root_id}")
async def delete_menu(root_id: str) -> JSONResponse:
    try:
        forest = await _run(session.delete_root, root_id)
    except NavTreeError as exc:
        return _engine_error(exc)
    return _ok_response(_forest_payload(forest))


@app.get("/menus/nodes/{node_id}")
async def get_node(node_id: str) -> JSONResponse:
    try:
        path = find_path(session.forest, node_id)
    except TargetNotFound as exc:
        return _engine_error(exc)
    node = path[-1]
    return _ok_response(
        {
            "node": node_to_dict(node, include_synthesized=True),
            "path_ids": path_ids(path),
            "persisted": is_persisted(node.id),
            "editable": session.is_editable(node_id),
        }
    )


@app.post("/menus/nodes/{node_id}/children")
async def add_child(node_id: str, request: Request) -> JSONResponse:
    body = await _safe_json(request)
    try:
        child = node_from_dict(body)
        forest = await _run(session.add_child, node_id, child, can_review=_can_review(request))
    except NavTreeError as exc:
        return _engine_error(exc)
    return _ok_response(_forest_payload(forest), status=201)


@app.put("/menus/nodes/{node_id}")
async def edit_node(node_id: str, request: Request) -> JSONResponse:
    body = await _safe_json(request)
    try:
        changes = _changes_from_body(body)
        forest = await _run(session.edit_node, node_id, can_review=_can_review(request), **changes)
    except NavTreeError as exc:
        return _engine_error(exc)
    return _ok_response(_forest_payload(forest))


@app.delete("/menus/nodes/{node_id}")
async def remove_node(node_id: str) -> JSONResponse:
    try:
        forest = await _run(session.remove_node, node_id)
    except NavTreeError as exc:
        return _engine_error(exc)
    return _ok_response(_forest_payload(forest))


@app.post("/menus/nodes/{node_id}/approve")
async def approve_node(node_id: str, request: Request) -> JSONResponse:
    try:
        forest = await _run(session.approve, node_id, can_review=_can_review(request))
    except NavTreeError as exc:
        return _engine_error(exc)
    return _ok_response(_forest_payload(forest))


@app.post("/menus/nodes/{node_id}/reject")
async def reject_node(node_id: str, request: Request) -> JSONResponse:
    try:
        forest = await _run(session.reject, node_id, can_review=_can_review(request))
    except NavTreeError as exc:
        return _engine_error(exc)
    return _ok_response(_forest_payload(forest))
