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
An asyncio variant of the distributed lock.

The protocol is identical to `RedisLock`; only the waiting differs. The pause
between attempts is an `asyncio.sleep`, so other tasks keep running, and
cancelling the awaiting task is how an acquisition is abandoned early.
"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar

from .config import LockConfig
from .lock import BaseLock
from .store.factory import create_async_store
from .store.interface import AsyncLockStore
from .token import generate_token
from .types import ReleaseStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AsyncRedisLock(BaseLock):
    """
    A distributed lock for asyncio code.

    Like `RedisLock`, an instance must be used by one task at a time.
    """

    def _create_store(self, store: Any) -> AsyncLockStore:
        return create_async_store(store)

    async def acquire(self) -> bool:
        """
        Tries to acquire the lock, retrying while it is held elsewhere.

        Returns:
            True if the lock was acquired, False if someone else holds it.

        Raises:
            StoreError: If the store fails.
            asyncio.CancelledError: If the task is cancelled while waiting.
        """
        first_attempt_time = time.monotonic()
        token = generate_token()
        retries = 0

        while True:
            logger.debug(f"[{self.key}] Attempting to acquire lock (retry {retries})")
            if await self.store.conditional_set(
                self.key, token, only_if_absent=True, expire_after=self.autorelease
            ):
                self.acquired_token = token
                logger.info(f"[{self.key}] Lock acquired after {retries} retries.")
                break

            self.acquired_token = None
            if not self._can_retry(first_attempt_time):
                if self.retry:
                    logger.warning(
                        f"[{self.key}] Gave up acquiring lock after {retries} retries."
                    )
                break

            try:
                await asyncio.sleep(self.retry_sleep)
            except asyncio.CancelledError:
                self.last_acquire_retries = retries
                logger.warning(f"[{self.key}] Lock acquisition cancelled.")
                raise
            retries += 1

        self.last_acquire_retries = retries
        return self.acquired

    async def release(self) -> ReleaseStatus:
        """
        Releases the lock if this instance still owns it in the store.

        See `RedisLock.release`.
        """
        if not self.acquired:
            return ReleaseStatus.NOT_ACQUIRED

        token, self.acquired_token = self.acquired_token, None
        if await self.store.compare_and_delete(self.key, token):
            logger.info(f"[{self.key}] Lock released.")
            return ReleaseStatus.SUCCESS

        logger.warning(f"[{self.key}] Lock was already released or expired.")
        return ReleaseStatus.ALREADY_RELEASED

    async def __aenter__(self) -> "AsyncRedisLock":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> bool:
        try:
            await self.release()
        except Exception:
            if exc_type is None:
                raise
            logger.exception(f"[{self.key}] Failed to release lock.")
        return False

    @classmethod
    async def with_lock(
        cls,
        body: Callable[["AsyncRedisLock"], Awaitable[T]],
        config: Optional[LockConfig] = None,
        **options,
    ) -> T:
        """
        Awaits `body(lock)` around an acquire and a guaranteed release.

        See `RedisLock.with_lock`.
        """
        async with cls(config, **options) as lock:
            return await body(lock)
