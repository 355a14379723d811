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

"""
Ownership tokens identify which acquirer wrote the lock key.
"""
import secrets
import time


def generate_token() -> str:
    """
    Returns a value that is unique across processes with overwhelming probability.

    The token combines a nanosecond wall-clock timestamp with 128 bits from the
    OS's cryptographically strong random source, so no coordination between
    processes is needed.
    """
    return f"{time.time_ns()}-{secrets.token_hex(16)}"
