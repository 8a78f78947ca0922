"""
Task sync gateway: per-user task operations against the data store.

Every operation is scoped to `users/{uid}/tasks` for the uid of the session
it was constructed with, resolved at call time. Store failures never escape;
each call returns an `OpResult` describing success or failure.
"""

from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

from backend.errors import (
    InvalidTask,
    NoActiveSession,
    StoreReadFailure,
    StoreWriteFailure,
    TaskSyncError,
)
from backend.session import SessionManager
from backend.store import DataStore
from shared import paths
from shared.types import SessionEvent, Subscription, Task

logger = logging.getLogger(__name__)

TasksCallback = Callable[[dict[str, Task]], None]


@dataclass
class OpResult:
    """Outcome of a gateway operation. Truthy when the operation succeeded."""

    ok: bool
    value: Any = None
    error: Optional[TaskSyncError] = None

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls, value: Any = None) -> "OpResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: TaskSyncError) -> "OpResult":
        return cls(ok=False, error=error)


def _as_task_map(value: Any) -> dict[str, Task]:
    return value if isinstance(value, dict) else {}


class TaskSyncGateway:
    def __init__(
        self,
        store: DataStore,
        session: SessionManager,
        *,
        data_root: str = "",
        strict_session: bool = False,
    ):
        self._store = store
        self._session = session
        self._data_root = data_root
        self._strict_session = strict_session
        self._subscriptions: dict[str, list[Subscription]] = {}
        self._lock = threading.Lock()
        self._session_subscription = session.on_session_changed(self._on_session_changed)

    def close(self) -> None:
        """Cancels live subscriptions and stops following the session."""
        self._session_subscription.cancel()
        self._cancel_all()

    def _uid(self, operation: str) -> Optional[str]:
        identity = self._session.current_identity
        if identity is None:
            logger.warning("%s: no active session", operation)
            if self._strict_session:
                raise NoActiveSession(f"{operation} requires a signed-in user")
            return None
        return identity.uid

    def _tasks_path(self, operation: str) -> Optional[str]:
        uid = self._uid(operation)
        if uid is None:
            return None
        return paths.tasks_path(uid, self._data_root)

    @staticmethod
    def _no_session(operation: str) -> OpResult:
        return OpResult.failure(NoActiveSession(f"{operation} requires a signed-in user"))

    def subscribe_to_tasks(self, callback: TasksCallback) -> OpResult:
        """
        Opens a live subscription on the user's task collection.

        `callback` receives the full collection (`{id: task}`) once on
        subscription and again after every change. The result value is the
        `Subscription` handle.
        """
        path = self._tasks_path("subscribe_to_tasks")
        if path is None:
            return self._no_session("subscribe_to_tasks")

        def on_snapshot(snapshot: Any) -> None:
            try:
                callback(_as_task_map(snapshot))
            except Exception:
                logger.exception("Task subscriber for %s failed", path)

        try:
            store_subscription = self._store.listen(path, on_snapshot)
        except Exception as e:
            logger.error("Failed to subscribe to %s: %s", path, e)
            return OpResult.failure(StoreReadFailure(str(e)))

        def on_cancel() -> None:
            store_subscription.cancel()
            with self._lock:
                subscriptions = self._subscriptions.get(path, [])
                if handle in subscriptions:
                    subscriptions.remove(handle)

        handle = Subscription(on_cancel)
        with self._lock:
            self._subscriptions.setdefault(path, []).append(handle)
        return OpResult.success(handle)

    def unsubscribe(self) -> OpResult:
        """Cancels every live subscription on the current user's tasks."""
        path = self._tasks_path("unsubscribe")
        if path is None:
            return self._no_session("unsubscribe")
        with self._lock:
            handles = self._subscriptions.pop(path, [])
        for handle in handles:
            handle.cancel()
        return OpResult.success()

    def fetch_task(self, task_id: str) -> OpResult:
        """Reads one task. The value is None when no task exists at `task_id`."""
        uid = self._uid("fetch_task")
        if uid is None:
            return self._no_session("fetch_task")
        try:
            path = paths.task_path(uid, task_id, self._data_root)
        except ValueError as e:
            return OpResult.failure(InvalidTask(str(e)))
        try:
            return OpResult.success(self._store.get(path))
        except Exception as e:
            logger.error("Failed to fetch task %s: %s", task_id, e)
            return OpResult.failure(StoreReadFailure(str(e)))

    def fetch_tasks(self) -> OpResult:
        """Reads the whole collection. The value is an empty dict when there are no tasks."""
        path = self._tasks_path("fetch_tasks")
        if path is None:
            return self._no_session("fetch_tasks")
        try:
            return OpResult.success(_as_task_map(self._store.get(path)))
        except Exception as e:
            logger.error("Failed to fetch tasks: %s", e)
            return OpResult.failure(StoreReadFailure(str(e)))

    def add_task(self, task: Task) -> OpResult:
        """
        Creates a task under a newly generated id.

        The id is written both as the storage key and as the record's `id`
        field in a single write. The value is the stored task; `task` itself
        is not modified.
        """
        uid = self._uid("add_task")
        if uid is None:
            return self._no_session("add_task")
        if not isinstance(task, dict):
            return OpResult.failure(InvalidTask("A task must be a JSON object"))
        try:
            task_id = self._store.generate_key(paths.tasks_path(uid, self._data_root))
            record = copy.deepcopy(task)
            record["id"] = task_id
            self._store.set(paths.task_path(uid, task_id, self._data_root), record)
        except Exception as e:
            logger.error("Failed to add task: %s", e)
            return OpResult.failure(StoreWriteFailure(str(e)))
        logger.info("Added task %s", task_id)
        return OpResult.success(record)

    def delete_task(self, task_id: str) -> OpResult:
        """Removes a task. Removing a nonexistent task succeeds."""
        uid = self._uid("delete_task")
        if uid is None:
            return self._no_session("delete_task")
        try:
            path = paths.task_path(uid, task_id, self._data_root)
        except ValueError as e:
            return OpResult.failure(InvalidTask(str(e)))
        try:
            self._store.remove(path)
        except Exception as e:
            logger.error("Failed to delete task %s: %s", task_id, e)
            return OpResult.failure(StoreWriteFailure(str(e)))
        return OpResult.success()

    def save_task(self, task: Task) -> OpResult:
        """
        Replaces the task stored at `task["id"]` with `task`.

        This is a full overwrite, not a merge, and creates the task when no
        record exists at that id.
        """
        uid = self._uid("save_task")
        if uid is None:
            return self._no_session("save_task")
        task_id = task.get("id") if isinstance(task, dict) else None
        try:
            path = paths.task_path(uid, task_id, self._data_root)
        except ValueError as e:
            return OpResult.failure(InvalidTask(str(e)))
        try:
            self._store.set(path, task)
        except Exception as e:
            logger.error("Failed to save task %s: %s", task_id, e)
            return OpResult.failure(StoreWriteFailure(str(e)))
        return OpResult.success(copy.deepcopy(task))

    def _on_session_changed(self, event: SessionEvent) -> None:
        if event.signed_out:
            self._cancel_all()

    def _cancel_all(self) -> None:
        with self._lock:
            handles = [h for hs in self._subscriptions.values() for h in hs]
            self._subscriptions.clear()
        for handle in handles:
            handle.cancel()
