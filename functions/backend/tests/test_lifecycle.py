import json
import os
import tempfile
import threading
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

from backend.accounts import InMemoryAccountDirectory
from backend.errors import AuthorizationFailure, StoreWriteFailure
from backend.lifecycle import (
    cleanup_user_data,
    delete_account,
    delete_inactive_accounts,
    find_inactive_accounts,
    load_seed_tasks,
    populate_user_data,
    run_account_cleanup,
)
from backend.store import InMemoryStore
from shared.types import Account

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
SEED_TASKS = [
    {"title": "one", "done": False},
    {"title": "two", "done": False},
    {"title": "three", "done": True},
]


def _account(uid, minutes_ago=None, created_minutes_ago=None):
    return Account(
        uid=uid,
        last_sign_in=NOW - timedelta(minutes=minutes_ago) if minutes_ago is not None else None,
        created_at=(
            NOW - timedelta(minutes=created_minutes_ago)
            if created_minutes_ago is not None
            else None
        ),
    )


class SeedDataTests(unittest.TestCase):
    def test_default_seed_file_has_tasks(self):
        tasks = load_seed_tasks()
        self.assertGreater(len(tasks), 0)
        self.assertTrue(all("title" in t for t in tasks))

    def test_custom_seed_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "seed.json")
            with open(path, "w", encoding="utf-8") as f:
                json.dump({"tasks": SEED_TASKS}, f)
            self.assertEqual(load_seed_tasks(path), SEED_TASKS)

    def test_seed_file_without_tasks_is_rejected(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "seed.json")
            with open(path, "w", encoding="utf-8") as f:
                json.dump({"items": []}, f)
            with self.assertRaises(ValueError):
                load_seed_tasks(path)


class PopulateUserDataTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryStore()

    def test_populates_exactly_the_seed_set(self):
        ids = populate_user_data(self.store, "u1", SEED_TASKS)

        tasks = self.store.get("users/u1/tasks")
        self.assertEqual(len(ids), 3)
        self.assertEqual(set(tasks), set(ids))
        for task_id, task in tasks.items():
            self.assertTrue(task_id)
            self.assertEqual(task["id"], task_id)
        self.assertEqual(
            sorted(t["title"] for t in tasks.values()), ["one", "three", "two"]
        )
        self.assertNotIn("id", SEED_TASKS[0])

    def test_failed_write_does_not_abort_others(self):
        original_set = self.store.set

        def flaky_set(path, value):
            if value.get("title") == "two":
                raise RuntimeError("permission denied")
            original_set(path, value)

        with patch.object(self.store, "set", side_effect=flaky_set):
            ids = populate_user_data(self.store, "u1", SEED_TASKS)

        self.assertEqual(len(ids), 2)
        titles = sorted(t["title"] for t in self.store.get("users/u1/tasks").values())
        self.assertEqual(titles, ["one", "three"])

    def test_empty_seed_set(self):
        self.assertEqual(populate_user_data(self.store, "u1", []), [])

    def test_invalid_uid_is_rejected(self):
        with self.assertRaises(ValueError):
            populate_user_data(self.store, "../root", SEED_TASKS)


class CleanupUserDataTests(unittest.TestCase):
    def test_removes_whole_user_namespace(self):
        store = InMemoryStore()
        populate_user_data(store, "u1", SEED_TASKS)
        store.set("users/u1/profile", {"name": "Ada"})
        populate_user_data(store, "u2", SEED_TASKS)

        cleanup_user_data(store, "u1")

        self.assertIsNone(store.get("users/u1"))
        self.assertEqual(len(store.get("users/u2/tasks")), 3)

    def test_store_failure_is_wrapped(self):
        store = MagicMock()
        store.remove.side_effect = RuntimeError("offline")
        with self.assertRaises(StoreWriteFailure):
            cleanup_user_data(store, "u1")

    def test_delete_account_removes_account_and_data(self):
        store = InMemoryStore()
        directory = InMemoryAccountDirectory([_account("u1", 5)])
        populate_user_data(store, "u1", SEED_TASKS)

        delete_account(directory, store, "u1")

        self.assertEqual(directory.accounts, {})
        self.assertIsNone(store.get("users/u1"))


class InactiveAccountTests(unittest.TestCase):
    def test_find_inactive_pages_through_directory(self):
        accounts = [_account(f"old{i:04d}", 60) for i in range(2500)]
        accounts += [_account(f"new{i:04d}", 5) for i in range(10)]
        directory = InMemoryAccountDirectory(accounts)

        inactive = find_inactive_accounts(
            directory, timedelta(minutes=30), now=NOW, page_size=1000
        )

        self.assertEqual(len(inactive), 2500)
        self.assertEqual(directory.list_calls, 3)
        self.assertTrue(all(a.uid.startswith("old") for a in inactive))

    def test_never_signed_in_accounts_are_kept(self):
        directory = InMemoryAccountDirectory(
            [
                _account("created-long-ago", created_minutes_ago=90 * 24 * 60),
                _account("fresh", created_minutes_ago=1),
                _account("unknown"),
                _account("idle", minutes_ago=90, created_minutes_ago=200),
            ]
        )
        inactive = find_inactive_accounts(directory, timedelta(minutes=30), now=NOW)
        self.assertEqual([a.uid for a in inactive], ["idle"])

    def test_cleanup_keeps_never_signed_in_account_and_its_data(self):
        directory = InMemoryAccountDirectory(
            [_account("created-long-ago", created_minutes_ago=90 * 24 * 60)]
        )
        store = InMemoryStore()
        store.set("users/created-long-ago/tasks/t1", {"id": "t1"})

        report = run_account_cleanup(directory, store, "k", "k", now=NOW)

        self.assertEqual(report.deleted, [])
        self.assertEqual(
            [a.uid for a in directory.list_accounts().accounts], ["created-long-ago"]
        )
        self.assertIsNotNone(store.get("users/created-long-ago"))

    def test_deletion_concurrency_is_bounded(self):
        accounts = [_account(f"u{i}", 60) for i in range(20)]
        directory = InMemoryAccountDirectory(accounts)
        directory.deletion_delay = 0.01

        report = delete_inactive_accounts(directory, accounts, max_concurrent=3)

        self.assertEqual(len(report.deleted), 20)
        self.assertLessEqual(directory.max_active_deletions, 3)
        self.assertEqual(directory.accounts, {})

    def test_deletion_failure_does_not_stop_pool(self):
        accounts = [_account(f"u{i}", 60) for i in range(10)]
        directory = InMemoryAccountDirectory(accounts)
        directory.failing_uids = {"u2", "u7"}

        report = delete_inactive_accounts(directory, accounts, max_concurrent=3)

        self.assertEqual(sorted(report.failed), ["u2", "u7"])
        self.assertEqual(len(report.deleted), 8)
        self.assertEqual(len(directory.delete_calls), 10)
        self.assertEqual(sorted(directory.accounts), ["u2", "u7"])

    def test_on_deleted_runs_for_each_deleted_account(self):
        accounts = [_account("a", 60), _account("b", 60)]
        directory = InMemoryAccountDirectory(accounts)
        directory.failing_uids = {"b"}
        seen = []
        lock = threading.Lock()

        def on_deleted(uid):
            with lock:
                seen.append(uid)

        delete_inactive_accounts(directory, accounts, on_deleted=on_deleted)
        self.assertEqual(seen, ["a"])


class RunAccountCleanupTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryStore()
        self.directory = InMemoryAccountDirectory(
            [_account("idle", 45), _account("active", 5)]
        )
        populate_user_data(self.store, "idle", SEED_TASKS)
        populate_user_data(self.store, "active", SEED_TASKS)

    def test_mismatched_key_touches_nothing(self):
        for key in ["wrong", "", None]:
            with self.assertRaises(AuthorizationFailure):
                run_account_cleanup(self.directory, self.store, key, "s3cret", now=NOW)
        self.assertEqual(self.directory.list_calls, 0)
        self.assertEqual(self.directory.delete_calls, [])

    def test_unconfigured_key_rejects_everything(self):
        with self.assertRaises(AuthorizationFailure):
            run_account_cleanup(self.directory, self.store, "", None, now=NOW)
        self.assertEqual(self.directory.list_calls, 0)

    def test_cleanup_deletes_inactive_accounts_and_data(self):
        report = run_account_cleanup(
            self.directory,
            self.store,
            "s3cret",
            "s3cret",
            threshold=timedelta(minutes=30),
            now=NOW,
        )

        self.assertEqual(report.deleted, ["idle"])
        self.assertEqual(report.failed, [])
        self.assertEqual(sorted(self.directory.accounts), ["active"])
        self.assertIsNone(self.store.get("users/idle"))
        self.assertEqual(len(self.store.get("users/active/tasks")), 3)

    def test_threshold_is_configurable(self):
        report = run_account_cleanup(
            self.directory,
            self.store,
            "s3cret",
            "s3cret",
            threshold=timedelta(days=30),
            now=NOW,
        )
        self.assertEqual(report.deleted, [])


if __name__ == "__main__":
    unittest.main()
