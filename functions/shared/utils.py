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

import random
import threading
import time

from shared.firebase_constants import FORBIDDEN_KEY_CHARS, PUSH_CHARS

_push_lock = threading.Lock()
_last_push_time = 0
_last_random_chars: list[int] = []


def get_unique_id() -> str:
    """
    Returns a 20 character id that sorts chronologically.

    The first 8 characters encode the millisecond timestamp, the remaining 12
    are random. When two ids are generated in the same millisecond the random
    part of the previous id is incremented, so ids from one process are
    strictly increasing, even if the clock steps backwards.
    """
    global _last_push_time, _last_random_chars

    with _push_lock:
        now = max(int(time.time() * 1000), _last_push_time)
        duplicate_time = now == _last_push_time

        if not duplicate_time:
            _last_random_chars = [random.randrange(64) for _ in range(12)]
        else:
            i = 11
            while i >= 0 and _last_random_chars[i] == 63:
                _last_random_chars[i] = 0
                i -= 1
            if i >= 0:
                _last_random_chars[i] += 1
            else:
                # Random part exhausted: continue from the next millisecond.
                now += 1
        _last_push_time = now

        timestamp_chars = []
        for _ in range(8):
            timestamp_chars.append(PUSH_CHARS[now % 64])
            now //= 64

        return "".join(reversed(timestamp_chars)) + "".join(
            PUSH_CHARS[c] for c in _last_random_chars
        )


def is_valid_key(key) -> bool:
    """Returns True if `key` can be used as a single Realtime Database key."""
    return (
        isinstance(key, str)
        and bool(key)
        and not any(c in FORBIDDEN_KEY_CHARS for c in key)
    )
