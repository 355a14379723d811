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
A distributed mutual-exclusion lock on top of a key-value store.

**Core Mechanism**

The lock is a single key in a shared store (redis by default). Acquiring it is
one atomic "set if absent, with expiry" of a fresh ownership token. Releasing it
is one atomic "delete if the value is still my token", so a lock that expired
and was taken over by another process is never deleted by its old owner.

The expiry (`autorelease`) guarantees that a crashed holder cannot keep the lock
forever. The lock is not renewed: work that outlives `autorelease` is no longer
protected.

Example:
    lock = RedisLock(store="redis://localhost:6379/0", key="reports:daily")
    if lock.acquire():
        try:
            build_report()
        finally:
            lock.release()

    # Or, releasing automatically:
    with RedisLock(key="reports:daily") as lock:
        if lock.acquired:
            build_report()
"""
import logging
from abc import ABC, abstractmethod
import threading
import time
from typing import Any, Callable, Optional, TypeVar

from .config import LockConfig, get_defaults
from .store.factory import create_store
from .store.interface import LockStore
from .token import generate_token
from .types import ReleaseStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BaseLock(ABC):
    """
    Configuration and ownership state shared by the sync and async locks.
    """

    def __init__(self, config: Optional[LockConfig] = None, **options):
        """
        Initializes the lock.

        Args:
            config: The base configuration. Defaults to the process-wide
                    defaults at construction time.
            **options: Per-lock overrides: store, key, autorelease, retry,
                       retry_timeout, retry_sleep.

        Raises:
            InvalidOptionError: If an option is unknown or has an invalid value.
        """
        self.config = (config or get_defaults()).replace(**options)
        self.store = self._create_store(self.config.store)
        # The token written by the last successful acquire, None otherwise.
        self.acquired_token: Optional[str] = None
        # Retries needed by the last acquire call. The first try counts as 0.
        self.last_acquire_retries: Optional[int] = None

    @abstractmethod
    def _create_store(self, store: Any):
        """Resolves the `store` option into the store this lock talks to."""
        pass

    @property
    def key(self) -> str:
        return self.config.key

    @property
    def autorelease(self) -> float:
        return self.config.autorelease

    @property
    def retry(self) -> bool:
        return self.config.retry

    @property
    def retry_timeout(self) -> float:
        return self.config.retry_timeout

    @property
    def retry_sleep(self) -> float:
        return self.config.retry_sleep

    @property
    def acquired(self) -> bool:
        """
        Whether the last acquire call succeeded and the lock was not released since.

        The store is not consulted, so this stays True after the key expired.
        """
        return self.acquired_token is not None

    def _can_retry(self, first_attempt_time: float) -> bool:
        return self.retry and time.monotonic() - first_attempt_time < self.retry_timeout

    def __repr__(self) -> str:
        return f"{type(self).__name__}(key={self.key!r}, acquired={self.acquired})"


class RedisLock(BaseLock):
    """
    A blocking distributed lock.

    An instance is a single-owner handle: it must not be used by several
    threads at the same time. Different instances with the same key, in any
    process, contend for the same lock. There is no fairness among waiters.
    """

    def _create_store(self, store: Any) -> LockStore:
        return create_store(store)

    def acquire(self, cancel_event: Optional[threading.Event] = None) -> bool:
        """
        Tries to acquire the lock, retrying while it is held elsewhere.

        Retries stop once `retry_timeout` seconds have elapsed since the first
        attempt. The timeout is only checked between attempts, so the number of
        attempts is approximate, about `retry_timeout / retry_sleep + 1`.

        Args:
            cancel_event: An optional event that stops the retries when set.
                          A store call in progress is never interrupted.

        Returns:
            True if the lock was acquired, False if someone else holds it.

        Raises:
            StoreError: If the store fails. Store failures are not retried.
        """
        first_attempt_time = time.monotonic()
        token = generate_token()
        retries = 0

        while True:
            logger.debug(f"[{self.key}] Attempting to acquire lock (retry {retries})")
            if self.store.conditional_set(
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

            if cancel_event is None:
                time.sleep(self.retry_sleep)
            elif cancel_event.wait(self.retry_sleep):
                logger.warning(f"[{self.key}] Lock acquisition cancelled.")
                break
            retries += 1

        self.last_acquire_retries = retries
        return self.acquired

    def release(self) -> ReleaseStatus:
        """
        Releases the lock if this instance still owns it in the store.

        Returns:
            SUCCESS if the key was deleted, ALREADY_RELEASED if it expired or
            now belongs to someone else, NOT_ACQUIRED if there was nothing to
            release. In every case the instance no longer counts as acquired.
        """
        if not self.acquired:
            return ReleaseStatus.NOT_ACQUIRED

        token, self.acquired_token = self.acquired_token, None
        if self.store.compare_and_delete(self.key, token):
            logger.info(f"[{self.key}] Lock released.")
            return ReleaseStatus.SUCCESS

        logger.warning(f"[{self.key}] Lock was already released or expired.")
        return ReleaseStatus.ALREADY_RELEASED

    def __enter__(self) -> "RedisLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> bool:
        try:
            self.release()
        except Exception:
            if exc_type is None:
                raise
            # Keep the body's exception; it is the one the caller needs.
            logger.exception(f"[{self.key}] Failed to release lock.")
        return False

    @classmethod
    def with_lock(
        cls,
        body: Callable[["RedisLock"], T],
        config: Optional[LockConfig] = None,
        **options,
    ) -> T:
        """
        Runs `body(lock)` around an acquire and a guaranteed release.

        `body` is called whether or not the lock was acquired; it should check
        `lock.acquired`. The lock is released when `body` returns or raises, and
        exceptions from `body` propagate unchanged.

        Returns:
            Whatever `body` returns.
        """
        with cls(config, **options) as lock:
            return body(lock)
