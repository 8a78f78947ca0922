# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any, Callable, Dict, List, Optional

# Tasks are free-form JSON objects keyed by their id.
Task = Dict[str, Any]


class SessionState(StrEnum):
    UNAUTHENTICATED = "UNAUTHENTICATED"
    AUTHENTICATED = "AUTHENTICATED"


class SignInMethod(StrEnum):
    ANONYMOUS = "anonymous"
    PASSWORD = "password"


@dataclass(frozen=True)
class Identity:
    """An authenticated user as reported by the identity provider."""

    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    is_anonymous: bool = False
    id_token: Optional[str] = field(default=None, repr=False)
    refresh_token: Optional[str] = field(default=None, repr=False)


@dataclass(frozen=True)
class SessionEvent:
    """A session state change. `identity` is None when signed out."""

    identity: Optional[Identity] = None

    @property
    def signed_out(self) -> bool:
        return self.identity is None

    @property
    def state(self) -> SessionState:
        if self.identity is None:
            return SessionState.UNAUTHENTICATED
        return SessionState.AUTHENTICATED


@dataclass
class Account:
    """An entry in the identity provider's account directory."""

    uid: str
    last_sign_in: Optional[datetime] = None
    created_at: Optional[datetime] = None


@dataclass
class AccountPage:
    accounts: List[Account]
    next_page_token: Optional[str] = None


class Subscription:
    """Handle for a live listener. `cancel()` is idempotent."""

    def __init__(self, on_cancel: Callable[[], None]):
        self._on_cancel = on_cancel
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        self._on_cancel()
