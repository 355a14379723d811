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

from enum import Enum

class ReleaseStatus(Enum):
    """Enumeration for the outcome of a call to `release()`."""
    # The lock was held by this instance and has been deleted from the store.
    SUCCESS = "success"
    # The lock expired or was taken over before release. Another process may
    # be using the resource now.
    ALREADY_RELEASED = "already_released"
    # The lock was not acquired, so nothing was sent to the store.
    NOT_ACQUIRED = "not_acquired"
