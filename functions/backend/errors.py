"""
Error taxonomy for session, task sync and account lifecycle operations.
"""

from __future__ import annotations

from typing import Optional


class TaskSyncError(Exception):
    """Base class for all errors raised or reported by this package."""


class AuthFailure(TaskSyncError):
    """Sign-in or sign-out was rejected by the identity provider."""

    def __init__(self, message: str, code: Optional[str] = None):
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}" if code else message)


class NoActiveSession(TaskSyncError):
    """A task operation was attempted with no authenticated identity."""


class StoreReadFailure(TaskSyncError):
    """The data store rejected a read."""


class StoreWriteFailure(TaskSyncError):
    """The data store rejected a write or removal."""


class InvalidTask(TaskSyncError):
    """A task or task id cannot be mapped onto a store key."""


class AuthorizationFailure(TaskSyncError):
    """A privileged request presented a missing or mismatched shared secret."""
