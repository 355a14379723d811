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
Exceptions raised by the lock and its store backends.
"""

class LockError(Exception):
    """Base exception for all lock-related errors."""
    pass

class InvalidOptionError(LockError, ValueError):
    """Raised when a lock is configured with unknown options or invalid values."""

    def __init__(self, message: str, options=None):
        super().__init__(message)
        self.options = list(options or [])

class StoreError(LockError):
    """Raised when the backing store is unreachable or a store command fails."""
    pass
