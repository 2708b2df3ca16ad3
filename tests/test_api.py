import os
import sys
import unittest
from unittest import mock

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from fastapi.testclient import TestClient

os.environ.pop("NAVTREE_API_BASE_URL", None)

import app.main as main
from forest_store import InMemoryForestStore
from menu_session import MenuSession


def _menus():
    return [
        {
            "_id": "r1",
            "title": {"en": "r1"},
            "status": "Approved",
            "items": [
                {"_id": "c1", "title": {"en": "c1"}, "status": "Created", "order": 1},
                {"_id": "c2", "title": {"en": "c2"}, "status": "Approved", "order": 2},
            ],
        }
    ]


class TestMenusApi(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryForestStore(_menus())
        self.session = MenuSession(self.store)
        self.session.refresh()
        patcher = mock.patch.object(main, "session", self.session)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.client = TestClient(main.app)

    def test_health(self) -> None:
        self.assertEqual(self.client.get("/health").json(), {"ok": True})

    def test_list_menus(self) -> None:
        body = self.client.get("/menus").json()
        self.assertTrue(body["ok"], body)
        self.assertEqual(body["menus"][0]["_id"], "r1")
        self.assertTrue(body["forest_hash"].startswith("sha256:"))

    def test_public_and_pending(self) -> None:
        tree = self.client.get("/menus/public").json()["tree"]
        self.assertEqual([c["id"] for c in tree[0]["children"]], ["c2"])
        pending = self.client.get("/menus/pending").json()
        self.assertEqual(pending["count"], 1)
        self.assertEqual(pending["pending"][0]["breadcrumb"], ["r1"])
        counts = self.client.get("/menus/counts").json()["counts"]
        self.assertEqual(counts["pending"], 1)

    def test_public_html(self) -> None:
        res = self.client.get("/menus/public.html")
        self.assertEqual(res.status_code, 200)
        self.assertIn('href="/r1/c2"', res.text)

    def test_get_node(self) -> None:
        body = self.client.get("/menus/nodes/c1").json()
        self.assertEqual(body["path_ids"], ["r1", "c1"])
        self.assertTrue(body["persisted"])
        self.assertTrue(body["editable"])

    def test_unknown_node_is_404(self) -> None:
        res = self.client.get("/menus/nodes/nope")
        self.assertEqual(res.status_code, 404)
        error = res.json()["errors"][0]
        self.assertEqual(error["code"], "TARGET_NOT_FOUND")
        self.assertTrue(error["detail"]["refresh"])

    def test_add_child_as_editor(self) -> None:
        res = self.client.post(
            "/menus/nodes/c2/children",
            json={"title": {"en": "Team"}, "url": "/team", "status": "Approved"},
            headers={"x-can-review": "0"},
        )
        self.assertEqual(res.status_code, 201, res.json())
        items = self.store.list_raw()[0]["items"][1]["items"]
        self.assertEqual(items[0]["status"], "Created")

    def test_edit_node(self) -> None:
        res = self.client.put("/menus/nodes/c2", json={"title": {"en": "Services"}, "order": 5})
        self.assertEqual(res.status_code, 200, res.json())
        stored = self.store.list_raw()[0]["items"][1]
        self.assertEqual(stored["title"], {"en": "Services"})
        self.assertEqual(stored["order"], 5)
        self.assertEqual(stored["status"], "Approved")

    def test_remove_node(self) -> None:
        res = self.client.delete("/menus/nodes/c2")
        self.assertEqual(res.status_code, 200)
        self.assertEqual([i["_id"] for i in self.store.list_raw()[0]["items"]], ["c1"])

    def test_remove_root_via_node_route_is_400(self) -> None:
        res = self.client.delete("/menus/nodes/r1")
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["errors"][0]["code"], "INVALID_OPERATION_AT_ROOT")

    def test_approve_requires_reviewer(self) -> None:
        res = self.client.post("/menus/nodes/c1/approve", headers={"x-can-review": "false"})
        self.assertEqual(res.status_code, 403)
        res = self.client.post("/menus/nodes/c1/approve")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(self.store.list_raw()[0]["items"][0]["status"], "Approved")

    def test_reject(self) -> None:
        res = self.client.post("/menus/nodes/c2/reject")
        self.assertEqual(res.status_code, 200)
        tree = self.client.get("/menus/public").json()["tree"]
        self.assertEqual(tree[0]["children"], [])

    def test_store_failure_is_502(self) -> None:
        self.store.fail_next("database offline")
        res = self.client.delete("/menus/nodes/c2")
        self.assertEqual(res.status_code, 502)
        self.assertEqual(res.json()["errors"][0]["message"], "database offline")
        self.assertEqual(len(self.client.get("/menus").json()["menus"][0]["items"]), 2)

    def test_invalid_body_is_400(self) -> None:
        res = self.client.post("/menus", json={"title": "Bad", "status": "Live"})
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["errors"][0]["path"], "$.status")

    def test_create_and_delete_menu(self) -> None:
        res = self.client.post("/menus", json={"name": {"en": "Services"}})
        self.assertEqual(res.status_code, 201, res.json())
        menu_id = res.json()["menu"]["_id"]
        self.assertEqual(len(self.store.list_raw()), 2)
        res = self.client.delete(f"/menus/{menu_id}")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(len(self.store.list_raw()), 1)

    def test_refresh(self) -> None:
        res = self.client.post("/menus/refresh")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["menus"][0]["_id"], "r1")


if __name__ == "__main__":
    unittest.main()
