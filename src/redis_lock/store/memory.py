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
In-memory implementation of the store interface for testing purposes.
"""
import logging
import threading
import time
from typing import Callable, Dict, Optional, Tuple

from .interface import AsyncLockStore, LockStore

logger = logging.getLogger(__name__)


class InMemoryStore(LockStore):
    """
    A fake, thread-safe, in-process store that honours expiry times.

    Locks sharing one InMemoryStore behave like processes sharing one redis
    server. Expired entries are evicted lazily on access.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._mutex = threading.Lock()
        self._data: Dict[str, Tuple[str, float]] = {}
        self._fail_next_call: Optional[Exception] = None

    def force_error(self, error: Exception):
        """Force the next store call to raise `error`."""
        self._fail_next_call = error

    def _check_forced_error(self) -> None:
        if self._fail_next_call is not None:
            error, self._fail_next_call = self._fail_next_call, None
            raise error

    def _live_value(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self._clock():
            logger.debug(f"Key {key} expired")
            del self._data[key]
            return None
        return value

    def conditional_set(
        self, key: str, value: str, only_if_absent: bool = True, expire_after: float = 10.0
    ) -> bool:
        with self._mutex:
            self._check_forced_error()
            if only_if_absent and self._live_value(key) is not None:
                return False
            self._data[key] = (value, self._clock() + expire_after)
            return True

    def get(self, key: str) -> Optional[str]:
        with self._mutex:
            self._check_forced_error()
            return self._live_value(key)

    def compare_and_delete(self, key: str, expected_value: str) -> bool:
        with self._mutex:
            self._check_forced_error()
            if self._live_value(key) != expected_value:
                return False
            del self._data[key]
            return True

    def clear(self) -> None:
        with self._mutex:
            self._data.clear()


class AsyncInMemoryStore(AsyncLockStore):
    """
    Asynchronous facade over an `InMemoryStore`.
    """

    def __init__(self, store: Optional[InMemoryStore] = None):
        self.sync_store = store or InMemoryStore()

    async def conditional_set(
        self, key: str, value: str, only_if_absent: bool = True, expire_after: float = 10.0
    ) -> bool:
        return self.sync_store.conditional_set(key, value, only_if_absent, expire_after)

    async def get(self, key: str) -> Optional[str]:
        return self.sync_store.get(key)

    async def compare_and_delete(self, key: str, expected_value: str) -> bool:
        return self.sync_store.compare_and_delete(key, expected_value)
