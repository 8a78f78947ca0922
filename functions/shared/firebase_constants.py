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

# Realtime Database node names.
USERS_NODE = "users"
TASKS_NODE = "tasks"

# Root used by the test database setup script.
TEST_DATA_ROOT = "test"

# Characters that Realtime Database rejects inside a key.
FORBIDDEN_KEY_CHARS = frozenset("/.#$[]")

# Alphabet of Realtime Database push ids, ordered by ASCII value.
PUSH_CHARS = "-0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz"
