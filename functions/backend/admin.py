"""
Helpers for the administrative database scripts.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path

from backend.store import DataStore
from backend.lifecycle import populate_user_data
from shared.firebase_constants import TEST_DATA_ROOT
from shared.types import Task

logger = logging.getLogger(__name__)

AUTH_UID_RULE_PATTERN = re.compile(r"auth\.uid\s*==\s*'(.+)'")


def parse_uid_from_auth_rule(rule: str) -> str:
    """
    Extracts the uid from a security rule like `auth.uid == 'test-db-setup'`.

    Raises:
        ValueError: If the rule does not grant access to a single uid.
    """
    match = AUTH_UID_RULE_PATTERN.search(rule or "")
    if match is None:
        raise ValueError(f"Unable to parse uid from auth rule: {rule!r}")
    return match.group(1)


def read_write_rule(rules_path: str | Path, *node_path: str) -> str:
    """Returns the `.write` rule at `node_path` of a database.rules.json file."""
    with open(rules_path, "r", encoding="utf-8") as f:
        node = json.load(f)["rules"]
    for key in node_path:
        node = node[key]
    return node[".write"]


def wipe_database(store: DataStore, path: str = "") -> None:
    """Removes everything at `path` (the whole database by default)."""
    store.remove(path)
    logger.info("Removed %s", path or "db root")


def setup_test_database(
    store: DataStore,
    uid: str,
    seed_tasks: list[Task],
    *,
    data_root: str = TEST_DATA_ROOT,
) -> list[str]:
    """
    Clears `data_root` and seeds `uid`'s task list below it.

    Returns:
        The ids of the tasks that were written.
    """
    store.remove(data_root)
    return populate_user_data(store, uid, seed_tasks, data_root=data_root)
