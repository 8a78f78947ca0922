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

"""
Resets the test database: clears /test and seeds one user's task list.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.admin import parse_uid_from_auth_rule, read_write_rule, setup_test_database
from backend.config import get_settings
from backend.dependencies import get_store, init_firebase_app
from backend.lifecycle import load_seed_tasks
from shared.firebase_constants import TEST_DATA_ROOT


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed the test database")
    parser.add_argument("user_id", type=str, help="Uid whose task list is seeded")
    parser.add_argument(
        "--rules",
        type=str,
        default="database.rules.json",
        help="Database rules file whose test .write rule names the setup uid",
    )
    parser.add_argument(
        "--seed",
        type=str,
        default=None,
        help="Seed data file (defaults to the packaged db_data.json)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    settings = get_settings()
    try:
        auth_uid = parse_uid_from_auth_rule(
            read_write_rule(args.rules, TEST_DATA_ROOT)
        )
        seed_tasks = load_seed_tasks(args.seed or settings.seed_data_path)
    except (OSError, KeyError, ValueError) as e:
        print(f"Setup failed: {e}", file=sys.stderr)
        return 1

    try:
        init_firebase_app(settings, auth_uid=auth_uid)
        task_ids = setup_test_database(get_store(), args.user_id, seed_tasks)
    except Exception as e:
        print(f"Failed to reset /{TEST_DATA_ROOT}: {e}", file=sys.stderr)
        return 1

    if len(task_ids) != len(seed_tasks):
        print(
            f"Failed to add {len(seed_tasks) - len(task_ids)} of "
            f"{len(seed_tasks)} tasks",
            file=sys.stderr,
        )
        return 1

    print("DB setup complete")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
