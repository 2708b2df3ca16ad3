import json
import os
import sys
import unittest

import httpx


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from app.remote_store import HttpForestStore
from navtree.errors import PersistenceRejected, TargetNotFound
from navtree.nodes import KIND_MENU, make_node


MENU = {
    "_id": "m1",
    "name": {"en": "Home"},
    "status": "Approved",
    "items": [{"_id": "i1", "title": {"en": "About"}, "url": "/about"}],
}


class _Recorder:
    def __init__(self, responder):
        self.requests = []
        self._responder = responder

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._responder(request)


def _store(responder, token="secret"):
    recorder = _Recorder(responder)
    store = HttpForestStore("https://cms.example.org/", token=token, transport=httpx.MockTransport(recorder))
    return store, recorder


class TestHttpForestStore(unittest.TestCase):
    def test_fetch_forest_unwraps_data(self) -> None:
        store, recorder = _store(lambda request: httpx.Response(200, json={"data": [MENU]}))
        forest = store.fetch_forest()
        self.assertEqual(forest[0].id, "m1")
        self.assertEqual(forest[0].kind, KIND_MENU)
        self.assertEqual(forest[0].children[0].url, "/about")
        request = recorder.requests[0]
        self.assertEqual(request.method, "GET")
        self.assertEqual(str(request.url), "https://cms.example.org/api/menus")
        self.assertEqual(request.headers["Authorization"], "Bearer secret")

    def test_fetch_plain_list_without_token(self) -> None:
        store, recorder = _store(lambda request: httpx.Response(200, json=[MENU]), token=None)
        self.assertEqual(len(store.fetch_forest()), 1)
        self.assertNotIn("Authorization", recorder.requests[0].headers)

    def test_persist_root_puts_without_synthesized_ids(self) -> None:
        saved = dict(MENU, items=[{"_id": "i1", "title": {"en": "About"}}, {"_id": "i9", "title": {"en": "New"}}])
        store, recorder = _store(lambda request: httpx.Response(200, json=saved))
        root = make_node(
            "Home",
            node_id="m1",
            kind=KIND_MENU,
            children=[make_node("About", node_id="i1"), make_node("New", node_id="temp-r0.1:New--0")],
        )
        stored = store.persist_root("m1", root)
        self.assertEqual([c.id for c in stored.children], ["i1", "i9"])
        request = recorder.requests[0]
        self.assertEqual(request.method, "PUT")
        self.assertTrue(str(request.url).endswith("/api/menus/m1"))
        body = json.loads(request.content)
        self.assertNotIn("_id", body)
        self.assertEqual(body["items"][0]["_id"], "i1")
        self.assertNotIn("_id", body["items"][1])

    def test_persist_root_empty_response_refetches(self) -> None:
        def responder(request):
            if request.method == "PUT":
                return httpx.Response(204)
            return httpx.Response(200, json=[MENU])

        store, recorder = _store(responder)
        stored = store.persist_root("m1", make_node("Home", node_id="m1", kind=KIND_MENU))
        self.assertEqual(stored.children[0].id, "i1")
        self.assertEqual([r.method for r in recorder.requests], ["PUT", "GET"])

    def test_missing_root_is_target_not_found(self) -> None:
        store, _ = _store(lambda request: httpx.Response(404, json={"message": "Menu not found"}))
        with self.assertRaises(TargetNotFound) as ctx:
            store.persist_root("gone", make_node("Home", node_id="gone", kind=KIND_MENU))
        self.assertEqual(ctx.exception.message, "Menu not found")

    def test_server_error_is_persistence_rejected(self) -> None:
        store, _ = _store(lambda request: httpx.Response(500, json={"message": "Validation failed"}))
        root = make_node("Home", node_id="m1", kind=KIND_MENU)
        with self.assertRaises(PersistenceRejected) as ctx:
            store.persist_root("m1", root)
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertEqual(ctx.exception.message, "Validation failed")
        self.assertEqual(ctx.exception.root_id, "m1")
        self.assertEqual(ctx.exception.fragment["title"], {"en": "Home"})

    def test_error_without_message(self) -> None:
        store, _ = _store(lambda request: httpx.Response(502, text="bad gateway"))
        with self.assertRaises(PersistenceRejected) as ctx:
            store.fetch_forest()
        self.assertEqual(ctx.exception.message, "Request failed (502)")

    def test_network_error(self) -> None:
        def responder(request):
            raise httpx.ConnectError("connection refused", request=request)

        store, _ = _store(responder)
        with self.assertRaises(PersistenceRejected):
            store.fetch_forest()

    def test_invalid_forest(self) -> None:
        store, _ = _store(lambda request: httpx.Response(200, json=[{"title": "x", "status": "Live"}]))
        with self.assertRaises(PersistenceRejected):
            store.fetch_forest()

    def test_create_and_delete_root(self) -> None:
        def responder(request):
            if request.method == "POST":
                return httpx.Response(201, json={"data": dict(MENU, _id="m2", items=[])})
            return httpx.Response(200, json={"message": "deleted"})

        store, recorder = _store(responder)
        created = store.create_root(make_node("Services", node_id="temp-root.1:Services--0"))
        self.assertEqual(created.id, "m2")
        self.assertNotIn("_id", json.loads(recorder.requests[0].content))
        self.assertTrue(store.delete_root("m2"))
        self.assertEqual(recorder.requests[1].method, "DELETE")


if __name__ == "__main__":
    unittest.main()
