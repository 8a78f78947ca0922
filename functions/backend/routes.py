"""
HTTP routes for the task sync admin service.

All privileged routes take the shared cron key as the `key` query parameter.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from backend.accounts import AccountDirectory
from backend.config import Settings, get_settings
from backend.dependencies import get_account_directory, get_store
from backend.errors import AuthorizationFailure, StoreWriteFailure
from backend.lifecycle import (
    check_cron_key,
    cleanup_user_data,
    load_seed_tasks,
    populate_user_data,
    run_account_cleanup,
)
from backend.schemas import (
    CleanupResponse,
    HealthResponse,
    ProvisionResponse,
    RemoveUserDataResponse,
)
from backend.store import DataStore
from shared.utils import is_valid_key

logger = logging.getLogger(__name__)

router = APIRouter()


def _require_key(key: str | None, settings: Settings) -> None:
    try:
        check_cron_key(key, settings.cron_key)
    except AuthorizationFailure as e:
        logger.warning("Rejected request with mismatched cleanup key")
        raise HTTPException(status_code=403, detail=str(e))


def _require_uid(uid: str) -> None:
    if not is_valid_key(uid):
        raise HTTPException(status_code=400, detail="Invalid uid")


@router.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse(status="ok")


@router.get("/accountcleanup", response_model=CleanupResponse)
def account_cleanup(
    key: str | None = Query(None),
    directory: AccountDirectory = Depends(get_account_directory),
    store: DataStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    """
    Deletes accounts that have been inactive longer than the configured threshold.
    """
    _require_key(key, settings)
    report = run_account_cleanup(
        directory,
        store,
        key,
        settings.cron_key,
        threshold=settings.inactivity_threshold,
        max_concurrent=settings.cleanup_max_concurrent,
        page_size=settings.cleanup_page_size,
        data_root=settings.data_root,
    )
    return CleanupResponse(
        message="User cleanup finished",
        deleted=sorted(report.deleted),
        failed=sorted(report.failed),
    )


@router.post("/users/{uid}/provision", response_model=ProvisionResponse)
def provision_user(
    uid: str,
    key: str | None = Query(None),
    store: DataStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    """Account-created webhook: seeds the new user's task list."""
    _require_key(key, settings)
    _require_uid(uid)
    seed_tasks = load_seed_tasks(settings.seed_data_path)
    task_ids = populate_user_data(
        store, uid, seed_tasks, data_root=settings.data_root
    )
    return ProvisionResponse(uid=uid, task_ids=task_ids)


@router.delete("/users/{uid}", response_model=RemoveUserDataResponse)
def remove_user_data(
    uid: str,
    key: str | None = Query(None),
    store: DataStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    """Account-deleted webhook: removes the user's namespace."""
    _require_key(key, settings)
    _require_uid(uid)
    try:
        cleanup_user_data(store, uid, data_root=settings.data_root)
    except StoreWriteFailure as e:
        logger.error("Failed to remove data for %s: %s", uid, e)
        raise HTTPException(status_code=502, detail=str(e))
    return RemoveUserDataResponse(uid=uid, status="removed")
