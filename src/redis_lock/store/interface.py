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
Defines the abstract interface for the key-value store behind a lock.

The lock algorithm needs exactly three atomic operations from its store. This
module provides the `LockStore` and `AsyncLockStore` abstract base classes as
the contract for every backend (redis, Google Cloud Storage, or an in-memory
fake for testing), so the lock never depends on a particular client library.
"""

from abc import ABC, abstractmethod
from typing import Optional


class LockStore(ABC):
    """
    A synchronous key-value store with atomic conditional writes and expiry.
    """

    @abstractmethod
    def conditional_set(
        self, key: str, value: str, only_if_absent: bool = True, expire_after: float = 10.0
    ) -> bool:
        """
        Sets `key` to `value` with a time-to-live, as a single atomic operation.

        Args:
            key: The key to write.
            value: The value to store.
            only_if_absent: If True, the write only happens when `key` does not
                            currently exist.
            expire_after: Seconds after which the store removes the key.

        Returns:
            True if the value was written, False if `key` already existed.

        Raises:
            StoreError: If the store cannot be reached or the command fails.
        """
        pass

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Returns the current value of `key`, or None if it does not exist or has
        expired.
        """
        pass

    @abstractmethod
    def compare_and_delete(self, key: str, expected_value: str) -> bool:
        """
        Deletes `key` only if its current value equals `expected_value`.

        The comparison and the delete must happen atomically on the store side;
        a separate read then delete could remove a lock another process has
        acquired in between.

        Returns:
            True if the key was deleted, False if it was absent or held a
            different value.
        """
        pass


class AsyncLockStore(ABC):
    """
    The asynchronous counterpart of `LockStore`, with the same semantics.
    """

    @abstractmethod
    async def conditional_set(
        self, key: str, value: str, only_if_absent: bool = True, expire_after: float = 10.0
    ) -> bool:
        pass

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    async def compare_and_delete(self, key: str, expected_value: str) -> bool:
        pass
