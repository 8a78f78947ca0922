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

# Cloud functions for the Timeslots backend - account lifecycle hooks.
#
# This file containing Python cloud functions must be named main.py.
# See https://cloud.google.com/run/docs/write-functions#python for more info.

# Standard library imports
from dataclasses import dataclass, asdict

# Third-party library imports
from firebase_admin import initialize_app
from firebase_functions import https_fn, identity_fn, logger, options

# Local application imports
from backend.config import get_settings
from backend.dependencies import get_account_directory, get_store
from backend.errors import AuthorizationFailure, StoreWriteFailure
from backend.lifecycle import (
    delete_account as delete_account_and_data,
    load_seed_tasks,
    populate_user_data as populate_seed_tasks,
    run_account_cleanup,
)
from shared.json_utils import convert_keys

initialize_app()


@dataclass
class DeleteAccountResult:
    status: str
    uid: str


def _seed_new_user(uid: str) -> list[str]:
    """Writes the seed task list into a new user's namespace."""
    settings = get_settings()
    seed_tasks = load_seed_tasks(settings.seed_data_path)
    task_ids = populate_seed_tasks(
        get_store(), uid, seed_tasks, data_root=settings.data_root
    )
    if len(task_ids) != len(seed_tasks):
        logger.warn(
            f"Seeded {len(task_ids)} of {len(seed_tasks)} tasks for user {uid}"
        )
    return task_ids


@identity_fn.before_user_created()
def populate_user_data(
    event: identity_fn.AuthBlockingEvent,
) -> identity_fn.BeforeCreateResponse | None:
    """
    Provisions the initial task list for a newly created account.

    Seeding is best-effort and never blocks account creation.
    """
    uid = event.data.uid
    try:
        _seed_new_user(uid)
    except Exception as e:
        logger.error(f"Failed to provision data for user {uid}: {e}")
    return None


@https_fn.on_request(memory=options.MemoryOption.MB_512, timeout_sec=540)
def accountcleanup(req: https_fn.Request) -> https_fn.Response:
    """
    Deletes every user account that has been inactive longer than the
    configured threshold, together with its data.

    The request needs to be authorized by passing a 'key' query parameter in
    the URL. This key must match the CRON_KEY environment variable.
    """
    settings = get_settings()
    key = req.args.get("key")

    try:
        report = run_account_cleanup(
            get_account_directory(),
            get_store(),
            key,
            settings.cron_key,
            threshold=settings.inactivity_threshold,
            max_concurrent=settings.cleanup_max_concurrent,
            page_size=settings.cleanup_page_size,
            data_root=settings.data_root,
        )
    except AuthorizationFailure as e:
        logger.log(
            "The key provided in the request does not match the CRON_KEY "
            "environment variable."
        )
        return https_fn.Response(str(e), status=403)

    logger.log(
        f"User cleanup finished: {len(report.deleted)} deleted, "
        f"{len(report.failed)} failed"
    )
    return https_fn.Response("User cleanup finished")


@https_fn.on_call(memory=options.MemoryOption.MB_512)
def delete_account(req: https_fn.CallableRequest) -> dict:
    """
    Deletes the calling user's account and everything under users/{uid}.

    Returns:
        A dictionary representation of the DeleteAccountResult object.
    """
    if req.auth is None:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.UNAUTHENTICATED,
            "Must be signed in to delete an account.",
        )

    uid = req.auth.uid
    settings = get_settings()
    try:
        delete_account_and_data(
            get_account_directory(), get_store(), uid, data_root=settings.data_root
        )
    except StoreWriteFailure as e:
        logger.error(f"Deleted account {uid} but not its data: {e}")
        raise https_fn.HttpsError(https_fn.FunctionsErrorCode.INTERNAL, str(e))
    except Exception as e:
        logger.error(f"Failed to delete account {uid}: {e}")
        raise https_fn.HttpsError(https_fn.FunctionsErrorCode.UNAVAILABLE, str(e))

    result = DeleteAccountResult(status="deleted", uid=uid)
    return convert_keys(asdict(result), "snake_to_camel")
