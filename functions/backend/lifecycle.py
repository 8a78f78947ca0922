"""
Account lifecycle hooks: provisioning, teardown and inactive-account cleanup.
"""

from __future__ import annotations

import concurrent.futures
import copy
import hmac
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional

from backend.accounts import MAX_PAGE_SIZE, AccountDirectory
from backend.errors import AuthorizationFailure, StoreWriteFailure
from backend.store import DataStore
from shared import paths
from shared.types import Account, Task

logger = logging.getLogger(__name__)

DEFAULT_SEED_DATA_PATH = Path(__file__).resolve().parents[1] / "shared" / "db_data.json"
DEFAULT_INACTIVITY_THRESHOLD = timedelta(minutes=30)
# Maximum concurrent account deletions.
MAX_CONCURRENT_DELETIONS = 3


@dataclass
class CleanupReport:
    deleted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


def load_seed_tasks(path: str | Path | None = None) -> list[Task]:
    """Reads the seed task list from a JSON file shaped `{"tasks": [...]}`."""
    seed_path = Path(path) if path else DEFAULT_SEED_DATA_PATH
    with open(seed_path, "r", encoding="utf-8") as f:
        data = json.load(f)
    tasks = data.get("tasks")
    if not isinstance(tasks, list):
        raise ValueError(f"{seed_path} has no 'tasks' list")
    return tasks


def _write_seed_task(store: DataStore, tasks_path: str, task: Task) -> str:
    task_id = store.generate_key(tasks_path)
    record = copy.deepcopy(task)
    record["id"] = task_id
    store.set(f"{tasks_path}/{task_id}", record)
    return task_id


def populate_user_data(
    store: DataStore,
    uid: str,
    seed_tasks: list[Task],
    *,
    data_root: str = "",
    max_workers: Optional[int] = None,
) -> list[str]:
    """
    Writes the seed tasks into a new user's namespace.

    Each task gets its own generated id and is written independently and in
    parallel. A failed write is logged and skipped.

    Returns:
        The ids of the tasks that were written.
    """
    tasks_path = paths.tasks_path(uid, data_root)
    if not seed_tasks:
        return []

    added: list[str] = []
    with concurrent.futures.ThreadPoolExecutor(
        max_workers=max_workers or len(seed_tasks)
    ) as executor:
        futures = [
            executor.submit(_write_seed_task, store, tasks_path, task)
            for task in seed_tasks
        ]
        for future in concurrent.futures.as_completed(futures):
            try:
                task_id = future.result()
            except Exception as e:
                logger.error("Failed to add seed task for %s: %s", uid, e)
                continue
            logger.info("Added task %s", task_id)
            added.append(task_id)
    return added


def cleanup_user_data(store: DataStore, uid: str, *, data_root: str = "") -> None:
    """Removes everything stored under `users/{uid}` in a single operation."""
    path = paths.user_path(uid, data_root)
    try:
        store.remove(path)
    except Exception as e:
        raise StoreWriteFailure(f"Failed to remove {path}: {e}") from e
    logger.info("Removed data for user %s", uid)


def delete_account(
    directory: AccountDirectory, store: DataStore, uid: str, *, data_root: str = ""
) -> None:
    """Deletes an account, then the data in its namespace."""
    directory.delete_account(uid)
    cleanup_user_data(store, uid, data_root=data_root)


def find_inactive_accounts(
    directory: AccountDirectory,
    threshold: timedelta = DEFAULT_INACTIVITY_THRESHOLD,
    *,
    now: Optional[datetime] = None,
    page_size: int = MAX_PAGE_SIZE,
) -> list[Account]:
    """
    Returns every account whose last sign-in is older than `now - threshold`.

    Accounts that never signed in are kept.
    """
    cutoff = (now or datetime.now(timezone.utc)) - threshold
    inactive: list[Account] = []
    page_token: Optional[str] = None
    while True:
        page = directory.list_accounts(page_size=page_size, page_token=page_token)
        inactive.extend(
            account
            for account in page.accounts
            if account.last_sign_in is not None and account.last_sign_in < cutoff
        )
        if not page.next_page_token:
            return inactive
        page_token = page.next_page_token


def delete_inactive_accounts(
    directory: AccountDirectory,
    accounts: list[Account],
    *,
    max_concurrent: int = MAX_CONCURRENT_DELETIONS,
    on_deleted: Optional[Callable[[str], None]] = None,
) -> CleanupReport:
    """
    Deletes `accounts` with at most `max_concurrent` deletions in flight.

    A failed deletion is logged and does not stop the remaining ones. After
    an account is deleted `on_deleted(uid)` runs on the same worker; its
    failure is logged but the account still counts as deleted.
    """
    report = CleanupReport()

    def delete_one(uid: str) -> None:
        directory.delete_account(uid)
        logger.info("Deleted user account %s because of inactivity", uid)
        if on_deleted is not None:
            try:
                on_deleted(uid)
            except Exception as e:
                logger.error("Cleanup of data for deleted account %s failed: %s", uid, e)

    with concurrent.futures.ThreadPoolExecutor(max_workers=max_concurrent) as executor:
        futures = {
            executor.submit(delete_one, account.uid): account.uid for account in accounts
        }
        for future in concurrent.futures.as_completed(futures):
            uid = futures[future]
            try:
                future.result()
            except Exception as e:
                logger.error("Deletion of inactive user account %s failed: %s", uid, e)
                report.failed.append(uid)
            else:
                report.deleted.append(uid)
    return report


def check_cron_key(provided_key: Optional[str], expected_key: Optional[str]) -> None:
    """Raises AuthorizationFailure unless both keys are set and equal."""
    if not expected_key:
        raise AuthorizationFailure("No cleanup key is configured")
    if not provided_key or not hmac.compare_digest(
        provided_key.encode("utf-8"), expected_key.encode("utf-8")
    ):
        raise AuthorizationFailure(
            "Security key does not match. Make sure your \"key\" URL query "
            "parameter matches the configured cron key."
        )


def run_account_cleanup(
    directory: AccountDirectory,
    store: DataStore,
    provided_key: Optional[str],
    expected_key: Optional[str],
    *,
    threshold: timedelta = DEFAULT_INACTIVITY_THRESHOLD,
    max_concurrent: int = MAX_CONCURRENT_DELETIONS,
    page_size: int = MAX_PAGE_SIZE,
    data_root: str = "",
    now: Optional[datetime] = None,
) -> CleanupReport:
    """
    Deletes every account inactive for longer than `threshold`, with its data.

    The key check happens before the directory is touched.
    """
    check_cron_key(provided_key, expected_key)

    inactive = find_inactive_accounts(
        directory, threshold, now=now, page_size=page_size
    )
    logger.info("Found %d inactive accounts", len(inactive))
    report = delete_inactive_accounts(
        directory,
        inactive,
        max_concurrent=max_concurrent,
        on_deleted=lambda uid: cleanup_user_data(store, uid, data_root=data_root),
    )
    logger.info(
        "User cleanup finished: %d deleted, %d failed",
        len(report.deleted),
        len(report.failed),
    )
    return report
