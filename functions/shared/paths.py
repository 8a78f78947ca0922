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

# Namespace paths for per-user data.

from shared.firebase_constants import TASKS_NODE, USERS_NODE
from shared.utils import is_valid_key


def join_path(*parts: str) -> str:
    """Joins path segments, dropping empty segments and stray slashes."""
    segments = []
    for part in parts:
        segments.extend(s for s in part.split("/") if s)
    return "/".join(segments)


def user_path(uid: str, data_root: str = "") -> str:
    if not is_valid_key(uid):
        raise ValueError(f"Invalid uid: {uid!r}")
    return join_path(data_root, USERS_NODE, uid)


def tasks_path(uid: str, data_root: str = "") -> str:
    return join_path(user_path(uid, data_root), TASKS_NODE)


def task_path(uid: str, task_id: str, data_root: str = "") -> str:
    if not is_valid_key(task_id):
        raise ValueError(f"Invalid task id: {task_id!r}")
    return join_path(tasks_path(uid, data_root), task_id)
