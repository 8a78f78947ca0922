import unittest
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from backend.store import InMemoryStore, RealtimeDbStore
from shared import utils


class InMemoryStoreTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryStore()

    def test_set_and_get_nested(self):
        self.store.set("users/u1/tasks/t1", {"id": "t1", "title": "a"})
        self.assertEqual(self.store.get("users/u1/tasks/t1"), {"id": "t1", "title": "a"})
        self.assertEqual(self.store.get("users/u1"), {"tasks": {"t1": {"id": "t1", "title": "a"}}})

    def test_get_missing_returns_none(self):
        self.assertIsNone(self.store.get("users/nobody/tasks"))

    def test_get_returns_copy(self):
        self.store.set("a/b", {"x": 1})
        value = self.store.get("a/b")
        value["x"] = 2
        self.assertEqual(self.store.get("a/b"), {"x": 1})

    def test_remove_prunes_empty_parents(self):
        self.store.set("users/u1/tasks/t1", {"id": "t1"})
        self.store.remove("users/u1/tasks/t1")
        self.assertIsNone(self.store.get("users/u1"))
        self.assertIsNone(self.store.get(""))

    def test_set_none_removes(self):
        self.store.set("a/b", 1)
        self.store.set("a/b", None)
        self.assertIsNone(self.store.get("a"))

    def test_listener_gets_initial_and_changed_snapshots(self):
        snapshots = []
        self.store.listen("users/u1/tasks", snapshots.append)
        self.store.set("users/u1/tasks/t1", {"id": "t1"})
        self.store.set("users/u2/tasks/t1", {"id": "t1"})
        self.store.remove("users/u1")

        self.assertEqual(
            snapshots,
            [None, {"t1": {"id": "t1"}}, None],
        )

    def test_cancelled_listener_stops_receiving(self):
        snapshots = []
        subscription = self.store.listen("a", snapshots.append)
        subscription.cancel()
        self.store.set("a/b", 1)
        self.assertEqual(snapshots, [None])
        self.assertEqual(self.store.listener_count, 0)

    def test_failing_listener_does_not_break_commit_or_other_listeners(self):
        calls = []

        def failing(snapshot):
            calls.append(snapshot)
            if snapshot is not None:
                raise RuntimeError("subscriber failed")

        snapshots = []
        self.store.listen("a", failing)
        self.store.listen("a", snapshots.append)

        with self.assertLogs("backend.store", level="ERROR"):
            self.store.set("a/b", 1)

        self.assertEqual(self.store.get("a"), {"b": 1})
        self.assertEqual(calls, [None, {"b": 1}])
        self.assertEqual(snapshots, [None, {"b": 1}])

    def test_failing_initial_callback_still_registers_listener(self):
        def failing(snapshot):
            raise RuntimeError("subscriber failed")

        with self.assertLogs("backend.store", level="ERROR"):
            subscription = self.store.listen("a", failing)

        self.assertTrue(subscription.active)
        self.assertEqual(self.store.listener_count, 1)

    def test_generate_key_is_unique_and_ordered(self):
        keys = [self.store.generate_key("x") for _ in range(200)]
        self.assertEqual(len(set(keys)), 200)
        self.assertEqual(keys, sorted(keys))
        self.assertTrue(all(len(k) == 20 for k in keys))


class UniqueIdTests(unittest.TestCase):
    def setUp(self):
        self._saved = (utils._last_push_time, list(utils._last_random_chars))

    def tearDown(self):
        utils._last_push_time, utils._last_random_chars = self._saved

    @patch("shared.utils.time.time", return_value=1_700_000_000.0)
    def test_exhausted_random_part_moves_to_next_millisecond(self, _):
        utils._last_push_time = 1_700_000_000_000
        utils._last_random_chars = [63] * 12
        previous = "".join(
            utils.PUSH_CHARS[c]
            for c in self._timestamp_chars(1_700_000_000_000) + [63] * 12
        )

        key = utils.get_unique_id()

        self.assertEqual(len(key), 20)
        self.assertGreater(key, previous)
        self.assertEqual(key[8:], "-" * 12)
        self.assertEqual(utils._last_push_time, 1_700_000_000_001)
        self.assertGreater(utils.get_unique_id(), key)

    @patch("shared.utils.time.time", return_value=1_699_999_999.0)
    def test_clock_going_backwards_keeps_ids_increasing(self, _):
        utils._last_push_time = 1_700_000_000_000
        utils._last_random_chars = [5] * 12

        key = utils.get_unique_id()

        self.assertEqual(utils._last_push_time, 1_700_000_000_000)
        self.assertEqual(key[8:], utils.PUSH_CHARS[5] * 11 + utils.PUSH_CHARS[6])

    @staticmethod
    def _timestamp_chars(millis):
        chars = []
        for _ in range(8):
            chars.append(millis % 64)
            millis //= 64
        return list(reversed(chars))


class RealtimeDbStoreTests(unittest.TestCase):
    @patch("backend.store.db")
    def test_operations_use_references(self, mock_db):
        ref = MagicMock()
        ref.get.return_value = {"t1": {"id": "t1"}}
        mock_db.reference.return_value = ref
        store = RealtimeDbStore(url="https://example.firebaseio.com")

        self.assertEqual(store.get("users/u1/tasks"), {"t1": {"id": "t1"}})
        mock_db.reference.assert_called_with(
            "/users/u1/tasks", app=None, url="https://example.firebaseio.com"
        )

        store.set("users/u1/tasks/t1", {"id": "t1", "note": None})
        ref.set.assert_called_once_with({"id": "t1"})

        store.set("users/u1/tasks/t1", None)
        store.remove("users/u1")
        self.assertEqual(ref.delete.call_count, 2)

    @patch("backend.store.db")
    def test_listen_folds_events_into_snapshots(self, mock_db):
        ref = MagicMock()
        mock_db.reference.return_value = ref
        store = RealtimeDbStore()
        snapshots = []

        subscription = store.listen("users/u1/tasks", snapshots.append)
        on_event = ref.listen.call_args[0][0]

        on_event(SimpleNamespace(event_type="put", path="/", data={"t1": {"id": "t1", "title": "a"}}))
        on_event(SimpleNamespace(event_type="put", path="/t2", data={"id": "t2"}))
        on_event(SimpleNamespace(event_type="patch", path="/t1", data={"title": "b"}))
        on_event(SimpleNamespace(event_type="put", path="/t2", data=None))

        self.assertEqual(
            snapshots,
            [
                {"t1": {"id": "t1", "title": "a"}},
                {"t1": {"id": "t1", "title": "a"}, "t2": {"id": "t2"}},
                {"t1": {"id": "t1", "title": "b"}, "t2": {"id": "t2"}},
                {"t1": {"id": "t1", "title": "b"}},
            ],
        )

        subscription.cancel()
        ref.listen.return_value.close.assert_called_once()

    @patch("backend.store.db")
    def test_failing_listener_does_not_stop_event_stream(self, mock_db):
        ref = MagicMock()
        mock_db.reference.return_value = ref
        snapshots = []

        def callback(snapshot):
            snapshots.append(snapshot)
            if len(snapshots) == 1:
                raise RuntimeError("subscriber failed")

        RealtimeDbStore().listen("a", callback)
        on_event = ref.listen.call_args[0][0]

        with self.assertLogs("backend.store", level="ERROR"):
            on_event(SimpleNamespace(event_type="put", path="/", data={"b": 1}))
        on_event(SimpleNamespace(event_type="put", path="/c", data=2))

        self.assertEqual(snapshots, [{"b": 1}, {"b": 1, "c": 2}])


if __name__ == "__main__":
    unittest.main()
