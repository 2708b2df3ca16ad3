import asyncio
import itertools
import os
import sys
import threading
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from navtree.nodes import KIND_MENU, STATUS_CREATED, make_node
from pending_poller import PendingQueuePoller


def _forest(pending_id: str):
    return (
        make_node(
            "Home",
            node_id="m1",
            kind=KIND_MENU,
            children=[make_node(pending_id, node_id=pending_id, status=STATUS_CREATED)],
        ),
    )


class TestPendingQueuePoller(unittest.IsolatedAsyncioTestCase):
    def test_rejects_non_positive_interval(self) -> None:
        with self.assertRaises(ValueError):
            PendingQueuePoller(lambda: (), interval=0)

    def test_older_response_is_ignored(self) -> None:
        ticks = itertools.count()
        updates = []
        poller = PendingQueuePoller(
            lambda: (),
            on_update=lambda forest, requested_at: updates.append(requested_at),
            clock=lambda: float(next(ticks)),
        )
        first = poller.stamp()
        second = poller.stamp()
        self.assertTrue(poller.apply(second, _forest("new")))
        self.assertFalse(poller.apply(first, _forest("old")))
        self.assertEqual([e.node.id for e in poller.latest], ["m1", "new"])
        self.assertEqual(updates, [1.0])

    def test_same_clock_reading_ordered_by_sequence(self) -> None:
        poller = PendingQueuePoller(lambda: (), clock=lambda: 5.0)
        first = poller.stamp()
        second = poller.stamp()
        self.assertTrue(poller.apply(second, _forest("b")))
        self.assertFalse(poller.apply(first, _forest("a")))

    async def test_slow_response_does_not_overwrite_newer(self) -> None:
        started = threading.Event()
        release = threading.Event()
        calls = itertools.count()
        lock = threading.Lock()

        def fetch():
            with lock:
                n = next(calls)
            if n == 0:
                started.set()
                release.wait(5)
                return _forest("old")
            return _forest("new")

        poller = PendingQueuePoller(fetch)
        slow = asyncio.ensure_future(poller.poll_once())
        while not started.is_set():
            await asyncio.sleep(0.01)
        self.assertTrue(await poller.poll_once())
        release.set()
        self.assertFalse(await slow)
        self.assertEqual(poller.latest[-1].node.id, "new")

    async def test_start_and_stop(self) -> None:
        fetched = []

        def fetch():
            fetched.append(1)
            return _forest("p1")

        poller = PendingQueuePoller(fetch, interval=0.01)
        poller.start()
        self.assertTrue(poller.running)
        for _ in range(200):
            if len(fetched) >= 2:
                break
            await asyncio.sleep(0.01)
        await poller.stop()
        self.assertFalse(poller.running)
        seen = len(fetched)
        await asyncio.sleep(0.05)
        self.assertEqual(len(fetched), seen)
        self.assertGreaterEqual(seen, 2)
        self.assertEqual([e.node.id for e in poller.latest], ["m1", "p1"])

    async def test_fetch_errors_keep_polling(self) -> None:
        attempts = []

        def fetch():
            attempts.append(1)
            if len(attempts) == 1:
                raise RuntimeError("menus API down")
            return _forest("p1")

        poller = PendingQueuePoller(fetch, interval=0.01)
        with self.assertLogs("navtree.poller", level="WARNING"):
            poller.start()
            for _ in range(200):
                if poller.latest:
                    break
                await asyncio.sleep(0.01)
            await poller.stop()
        self.assertGreaterEqual(len(attempts), 2)
        self.assertEqual(poller.latest[-1].node.id, "p1")

    async def test_stop_without_start(self) -> None:
        poller = PendingQueuePoller(lambda: ())
        await poller.stop()
        self.assertFalse(poller.running)


if __name__ == "__main__":
    unittest.main()
