"""
Administrative access to the identity provider's account directory.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

from firebase_admin import auth

from shared.types import Account, AccountPage

# Largest page the Firebase Auth admin API returns.
MAX_PAGE_SIZE = 1000


class AccountDirectory(Protocol):
    def list_accounts(
        self, page_size: int = MAX_PAGE_SIZE, page_token: Optional[str] = None
    ) -> AccountPage:
        ...

    def delete_account(self, uid: str) -> None:
        ...


def _from_millis(value: Optional[int]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


@dataclass
class FirebaseAccountDirectory:
    """Account directory backed by `firebase_admin.auth`."""

    app: Any = field(default=None, repr=False)

    def list_accounts(
        self, page_size: int = MAX_PAGE_SIZE, page_token: Optional[str] = None
    ) -> AccountPage:
        page = auth.list_users(
            page_token=page_token, max_results=page_size, app=self.app
        )
        accounts = [
            Account(
                uid=user.uid,
                last_sign_in=_from_millis(user.user_metadata.last_sign_in_timestamp),
                created_at=_from_millis(user.user_metadata.creation_timestamp),
            )
            for user in page.users
        ]
        return AccountPage(accounts=accounts, next_page_token=page.next_page_token or None)

    def delete_account(self, uid: str) -> None:
        auth.delete_user(uid, app=self.app)


class InMemoryAccountDirectory:
    """
    Simple in-memory directory for development and tests.

    Page tokens are stringified offsets. Uids listed in `failing_uids` raise on
    deletion, and `active_deletions`/`max_active_deletions` record how many
    deletions overlapped.
    """

    def __init__(self, accounts: Optional[list[Account]] = None):
        self.accounts: dict[str, Account] = {a.uid: a for a in accounts or []}
        self.failing_uids: set[str] = set()
        self.list_calls = 0
        self.delete_calls: list[str] = []
        self.active_deletions = 0
        self.max_active_deletions = 0
        self.deletion_delay: float = 0.0
        self._lock = threading.Lock()

    def add(self, account: Account) -> None:
        self.accounts[account.uid] = account

    def list_accounts(
        self, page_size: int = MAX_PAGE_SIZE, page_token: Optional[str] = None
    ) -> AccountPage:
        self.list_calls += 1
        start = int(page_token) if page_token else 0
        ordered = sorted(self.accounts.values(), key=lambda a: a.uid)
        chunk = ordered[start : start + page_size]
        end = start + len(chunk)
        next_token = str(end) if end < len(ordered) else None
        return AccountPage(accounts=list(chunk), next_page_token=next_token)

    def delete_account(self, uid: str) -> None:
        with self._lock:
            self.delete_calls.append(uid)
            self.active_deletions += 1
            self.max_active_deletions = max(
                self.max_active_deletions, self.active_deletions
            )
        try:
            if self.deletion_delay:
                time.sleep(self.deletion_delay)
            if uid in self.failing_uids:
                raise RuntimeError(f"Deletion of {uid} rejected")
            with self._lock:
                if uid not in self.accounts:
                    raise KeyError(uid)
                del self.accounts[uid]
        finally:
            with self._lock:
                self.active_deletions -= 1
