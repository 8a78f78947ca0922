"""
Dependency wiring for the service, the cloud functions and the scripts.
"""

from __future__ import annotations

import logging

import firebase_admin
from firebase_admin import credentials

from backend.accounts import (
    AccountDirectory,
    FirebaseAccountDirectory,
    InMemoryAccountDirectory,
)
from backend.auth import AuthClient, FirebaseRestAuthClient, InMemoryAuthClient
from backend.config import Settings, get_settings
from backend.gateway import TaskSyncGateway
from backend.session import SessionManager
from backend.store import DataStore, InMemoryStore, RealtimeDbStore

logger = logging.getLogger(__name__)

_store: DataStore | None = None
_account_directory: AccountDirectory | None = None
_auth_client: AuthClient | None = None


def init_firebase_app(settings: Settings | None = None, auth_uid: str | None = None):
    """
    Return the default Firebase app, initializing it on first use.

    `auth_uid` (or `database_auth_uid` from settings) limits database access
    to what the security rules allow for that uid.
    """
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    settings = settings or get_settings()
    options: dict = {}
    if settings.firebase_database_url:
        options["databaseURL"] = settings.firebase_database_url
    auth_uid = auth_uid or settings.database_auth_uid
    if auth_uid:
        options["databaseAuthVariableOverride"] = {"uid": auth_uid}
    credential = (
        credentials.Certificate(settings.firebase_credentials)
        if settings.firebase_credentials
        else None
    )
    logger.info("Initializing Firebase app (database=%s)", settings.firebase_database_url)
    return firebase_admin.initialize_app(credential=credential, options=options or None)


def get_store() -> DataStore:
    """
    Return a singleton store so in-memory data persists across requests.
    """
    global _store
    if _store:
        return _store

    settings = get_settings()
    if settings.use_in_memory_backends:
        _store = InMemoryStore()
    else:
        _store = RealtimeDbStore(app=init_firebase_app(settings))
    return _store


def get_account_directory() -> AccountDirectory:
    global _account_directory
    if _account_directory:
        return _account_directory

    settings = get_settings()
    if settings.use_in_memory_backends:
        _account_directory = InMemoryAccountDirectory()
    else:
        _account_directory = FirebaseAccountDirectory(app=init_firebase_app(settings))
    return _account_directory


def get_auth_client() -> AuthClient:
    global _auth_client
    if _auth_client:
        return _auth_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.firebase_api_key:
        _auth_client = InMemoryAuthClient()
    else:
        _auth_client = FirebaseRestAuthClient(api_key=settings.firebase_api_key)
    return _auth_client


def create_session_manager() -> SessionManager:
    settings = get_settings()
    return SessionManager(get_auth_client(), sign_in_method=settings.sign_in_method)


def create_gateway(session: SessionManager) -> TaskSyncGateway:
    settings = get_settings()
    return TaskSyncGateway(
        get_store(),
        session,
        data_root=settings.data_root,
        strict_session=settings.strict_session,
    )


def reset_dependencies() -> None:
    """Drop cached clients (useful in tests)."""
    global _store, _account_directory, _auth_client
    _store = None
    _account_directory = None
    _auth_client = None
