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
Removes all data from the Firebase Realtime Database after confirmation.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.admin import parse_uid_from_auth_rule, read_write_rule, wipe_database
from backend.config import get_settings
from backend.dependencies import get_store, init_firebase_app


def confirm(prompt: str) -> bool:
    """Asks a yes/no question on stdin; anything but y/yes means no."""
    try:
        answer = input(f"{prompt} [y|N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def main() -> int:
    parser = argparse.ArgumentParser(description="Remove all data from the database")
    parser.add_argument(
        "--rules",
        type=str,
        default="database.rules.json",
        help="Database rules file whose root .write rule names the admin uid",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    settings = get_settings()
    try:
        auth_uid = parse_uid_from_auth_rule(read_write_rule(args.rules))
    except (OSError, KeyError, ValueError) as e:
        print(f"Unable to parse uid from auth rule: {e}", file=sys.stderr)
        return 1

    if not confirm(
        "WARNING: This script will remove all data from the firebase DB at "
        f"{settings.firebase_database_url}.\nContinue?"
    ):
        print("Aborting.")
        return 0

    print("Ok. Removing db root...")
    try:
        init_firebase_app(settings, auth_uid=auth_uid)
        wipe_database(get_store())
    except Exception as e:
        print(f"Failed to remove db root: {e}", file=sys.stderr)
        return 1

    print("Removed db root.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
