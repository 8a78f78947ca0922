"""
Session state for the task client.

A `SessionManager` is the explicit session context handed to the task
gateway. It owns the two-state machine (signed out / signed in as `uid`) and
fans out one `SessionEvent` per transition to registered listeners.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from backend.auth import AuthClient
from backend.errors import AuthFailure
from shared.types import (
    Identity,
    SessionEvent,
    SessionState,
    SignInMethod,
    Subscription,
)

logger = logging.getLogger(__name__)

SessionListener = Callable[[SessionEvent], None]


class SessionManager:
    def __init__(
        self,
        auth_client: AuthClient,
        sign_in_method: SignInMethod | str = SignInMethod.ANONYMOUS,
    ):
        self._auth_client = auth_client
        self.sign_in_method = SignInMethod(sign_in_method)
        self._identity: Optional[Identity] = None
        self._started = False
        self._listeners: dict[int, SessionListener] = {}
        self._next_listener_id = 0
        self._lock = threading.RLock()
        self.last_error: Optional[AuthFailure] = None

    @property
    def current_identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def state(self) -> SessionState:
        if self._identity is None:
            return SessionState.UNAUTHENTICATED
        return SessionState.AUTHENTICATED

    @property
    def started(self) -> bool:
        return self._started

    def start(self, restored_identity: Optional[Identity] = None) -> None:
        """
        Reports the initial session state to listeners, exactly once.

        `restored_identity` is a session persisted from a previous run; without
        one the initial report is "signed out".
        """
        with self._lock:
            if self._started:
                logger.debug("Session manager already started")
                return
            self._started = True
            if restored_identity is not None:
                self._identity = restored_identity
            self._emit()

    def on_session_changed(self, listener: SessionListener) -> Subscription:
        """
        Registers `listener` for session events.

        Once the manager has started, the listener immediately receives the
        current state.
        """
        with self._lock:
            listener_id = self._next_listener_id
            self._next_listener_id += 1
            self._listeners[listener_id] = listener
            if self._started:
                self._deliver(listener, SessionEvent(identity=self._identity))
        return Subscription(lambda: self._remove_listener(listener_id))

    def sign_in(self, email: Optional[str] = None, password: Optional[str] = None) -> None:
        """
        Signs in with the configured method.

        Rejected until `start()` has reported the initial state; failures are
        logged and kept in `last_error`.
        """
        with self._lock:
            if not self._started:
                logger.warning("sign_in: session manager has not started")
                self.last_error = AuthFailure(
                    "Session manager has not started", code="NOT_STARTED"
                )
                return
            if self._identity is not None:
                logger.info("sign_in: already signed in as %s", self._identity.uid)
                return
            try:
                if self.sign_in_method == SignInMethod.PASSWORD:
                    if not email or not password:
                        raise AuthFailure(
                            "Email and password are required", code="MISSING_CREDENTIALS"
                        )
                    identity = self._auth_client.sign_in_with_password(email, password)
                else:
                    identity = self._auth_client.sign_in_anonymously()
            except AuthFailure as e:
                logger.warning("Sign-in failed: %s", e)
                self.last_error = e
                return
            self.last_error = None
            self._transition(identity)

    def sign_out(self) -> None:
        with self._lock:
            if self._identity is None:
                logger.info("sign_out: no active session")
                return
            try:
                self._auth_client.sign_out(self._identity)
            except AuthFailure as e:
                logger.warning("Sign-out failed: %s", e)
                self.last_error = e
                return
            self.last_error = None
            self._transition(None)

    def expire(self) -> None:
        """Ends the session after the provider reported it expired or revoked."""
        with self._lock:
            if self._identity is None:
                return
            logger.info("Session for %s expired", self._identity.uid)
            self._transition(None)

    def _transition(self, identity: Optional[Identity]) -> None:
        self._identity = identity
        self._emit()

    def _emit(self) -> None:
        event = SessionEvent(identity=self._identity)
        for listener in list(self._listeners.values()):
            self._deliver(listener, event)

    @staticmethod
    def _deliver(listener: SessionListener, event: SessionEvent) -> None:
        try:
            listener(event)
        except Exception:
            logger.exception("Session listener failed")

    def _remove_listener(self, listener_id: int) -> None:
        with self._lock:
            self._listeners.pop(listener_id, None)
