"""
Hierarchical key-value store abstraction for task data.

Supports an in-memory tree for tests/local runs and a Firebase Realtime
Database backed implementation for production. Paths are slash separated
and relative to the database root.
"""

from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol

from firebase_admin import db

from shared.types import Subscription
from shared.utils import get_unique_id

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[Any], None]


class DataStore(Protocol):
    """Operations the task gateway and lifecycle hooks need from the store."""

    def get(self, path: str) -> Any:
        ...

    def set(self, path: str, value: Any) -> None:
        ...

    def remove(self, path: str) -> None:
        ...

    def generate_key(self, parent_path: str) -> str:
        ...

    def listen(self, path: str, callback: SnapshotCallback) -> Subscription:
        ...


def _segments(path: str) -> list[str]:
    return [s for s in (path or "").split("/") if s]


def _normalize(value: Any) -> Any:
    """Drops null leaves and empty objects, which the database never stores."""
    if isinstance(value, dict):
        normalized = {}
        for key, child in value.items():
            child = _normalize(child)
            if child is not None:
                normalized[str(key)] = child
        return normalized or None
    return copy.deepcopy(value)


def _set_in(tree: Any, segments: list[str], value: Any) -> Any:
    """Returns `tree` with `value` placed at `segments`, pruning empty parents."""
    if not segments:
        return _normalize(value)
    node = tree if isinstance(tree, dict) else {}
    head, rest = segments[0], segments[1:]
    child = _set_in(node.get(head), rest, value)
    if child is None:
        node.pop(head, None)
    else:
        node[head] = child
    return node or None


def _get_in(tree: Any, segments: list[str]) -> Any:
    node = tree
    for segment in segments:
        if not isinstance(node, dict) or segment not in node:
            return None
        node = node[segment]
    return node


def _overlaps(a: list[str], b: list[str]) -> bool:
    n = min(len(a), len(b))
    return a[:n] == b[:n]


@dataclass
class _Listener:
    segments: list[str]
    callback: SnapshotCallback
    last_snapshot: Any = None


def _deliver(listener: _Listener, snapshot: Any) -> None:
    try:
        listener.callback(snapshot)
    except Exception:
        logger.exception("Store listener on %r failed", "/".join(listener.segments))


class InMemoryStore:
    """
    Thread-safe in-memory tree with live listeners.

    Commits are serialized under a lock and listeners are notified while the
    lock is held, so every listener observes snapshots in commit order. A
    listener is only notified when its subtree actually changed.
    """

    def __init__(self, data: Optional[dict] = None):
        self._root: Any = _normalize(data) if data else None
        self._lock = threading.RLock()
        self._listeners: dict[int, _Listener] = {}
        self._next_listener_id = 0

    def get(self, path: str) -> Any:
        with self._lock:
            return copy.deepcopy(_get_in(self._root, _segments(path)))

    def set(self, path: str, value: Any) -> None:
        segments = _segments(path)
        with self._lock:
            self._root = _set_in(self._root, segments, value)
            self._notify(segments)

    def remove(self, path: str) -> None:
        self.set(path, None)

    def generate_key(self, parent_path: str) -> str:
        return get_unique_id()

    def listen(self, path: str, callback: SnapshotCallback) -> Subscription:
        segments = _segments(path)
        with self._lock:
            listener_id = self._next_listener_id
            self._next_listener_id += 1
            listener = _Listener(segments=segments, callback=callback)
            self._listeners[listener_id] = listener
            listener.last_snapshot = copy.deepcopy(_get_in(self._root, segments))
            _deliver(listener, copy.deepcopy(listener.last_snapshot))
        return Subscription(lambda: self._remove_listener(listener_id))

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.set("", None)

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def _remove_listener(self, listener_id: int) -> None:
        with self._lock:
            self._listeners.pop(listener_id, None)

    def _notify(self, changed: list[str]) -> None:
        for listener in list(self._listeners.values()):
            if not _overlaps(listener.segments, changed):
                continue
            snapshot = _get_in(self._root, listener.segments)
            if snapshot == listener.last_snapshot:
                continue
            listener.last_snapshot = copy.deepcopy(snapshot)
            _deliver(listener, copy.deepcopy(snapshot))


class _SnapshotMirror:
    """
    Folds Realtime Database listener events into a full snapshot.

    The SDK reports `put` events (replace the value at a relative path) and
    `patch` events (update several children at once). Each event yields one
    snapshot of the whole listened subtree.
    """

    def __init__(self, callback: SnapshotCallback):
        self._callback = callback
        self._value: Any = None
        self._lock = threading.Lock()

    def apply(self, event) -> None:
        segments = _segments(event.path)
        with self._lock:
            if event.event_type == "put":
                self._value = _set_in(self._value, segments, event.data)
            elif event.event_type == "patch":
                for key, value in (event.data or {}).items():
                    self._value = _set_in(
                        self._value, segments + _segments(key), value
                    )
            else:
                logger.debug("Ignoring listener event %s", event.event_type)
                return
            snapshot = copy.deepcopy(self._value)
        try:
            self._callback(snapshot)
        except Exception:
            logger.exception("Store listener failed")


@dataclass
class RealtimeDbStore:
    """
    Firebase Realtime Database store built on `firebase_admin.db`.

    Requires an initialized Firebase app whose options carry `databaseURL`,
    unless `url` is given explicitly.
    """

    url: Optional[str] = None
    app: Any = field(default=None, repr=False)

    def _ref(self, path: str) -> db.Reference:
        return db.reference("/" + "/".join(_segments(path)), app=self.app, url=self.url)

    def get(self, path: str) -> Any:
        return self._ref(path).get()

    def set(self, path: str, value: Any) -> None:
        value = _normalize(value)
        if value is None:
            # The SDK refuses to set null; removal is the equivalent write.
            self._ref(path).delete()
            return
        self._ref(path).set(value)

    def remove(self, path: str) -> None:
        self._ref(path).delete()

    def generate_key(self, parent_path: str) -> str:
        # Generated client side so that id assignment and write are one `set`.
        return get_unique_id()

    def listen(self, path: str, callback: SnapshotCallback) -> Subscription:
        mirror = _SnapshotMirror(callback)
        registration = self._ref(path).listen(mirror.apply)
        return Subscription(registration.close)
