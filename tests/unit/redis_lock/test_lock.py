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

import math
import threading
import time
from unittest.mock import Mock

import pytest

from src.redis_lock.config import LockConfig, configure, reset_defaults
from src.redis_lock.exceptions import InvalidOptionError, StoreError
from src.redis_lock.lock import BaseLock, RedisLock
from src.redis_lock.store.interface import LockStore
from src.redis_lock.store.memory import InMemoryStore
from src.redis_lock.types import ReleaseStatus


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture(autouse=True)
def restore_defaults():
    yield
    reset_defaults()


@pytest.fixture
def store():
    return InMemoryStore()


def test_acquire_release(store):
    lock = RedisLock(store=store, key="lock1")
    assert lock.acquire() is True
    assert lock.acquired
    assert store.get("lock1") == lock.acquired_token
    assert lock.last_acquire_retries == 0

    assert lock.release() == ReleaseStatus.SUCCESS
    assert not lock.acquired
    assert store.get("lock1") is None


def test_lock_uses_built_in_defaults(store):
    lock = RedisLock(store=store)
    assert lock.key == "RedisLock::default"
    assert lock.autorelease == 10.0
    assert lock.retry is True
    assert lock.retry_timeout == 10.0
    assert lock.retry_sleep == 0.1


def test_lock_uses_configured_defaults(store):
    configure(store=store, key="configured", retry_sleep=0.5)
    lock = RedisLock()
    assert lock.store is store
    assert lock.key == "configured"
    assert lock.retry_sleep == 0.5


def test_configure_does_not_affect_existing_locks(store):
    lock = RedisLock(store=store, key="before")
    configure(key="after")
    assert lock.key == "before"
    assert RedisLock(store=store).key == "after"


def test_explicit_config_with_overrides(store):
    config = LockConfig(store=store, key="base", autorelease=3.0)
    lock = RedisLock(config, retry=False)
    assert lock.key == "base"
    assert lock.autorelease == 3.0
    assert lock.retry is False


def test_option_aliases_are_accepted(store):
    lock = RedisLock(store=store, expiry_duration=2.5, retry_enabled=False)
    assert lock.autorelease == 2.5
    assert lock.retry is False


def test_invalid_option_fails_construction(store):
    with pytest.raises(InvalidOptionError) as excinfo:
        RedisLock(store=store, keey="typo", ttl=3)
    assert excinfo.value.options == ["keey", "ttl"]
    assert "keey" in str(excinfo.value)


@pytest.mark.parametrize(
    "options",
    [{"autorelease": math.inf}, {"autorelease": math.nan}, {"retry_sleep": math.nan}],
)
def test_non_finite_durations_fail_construction(store, options):
    with pytest.raises(InvalidOptionError):
        RedisLock(store=store, key="lock1", **options)


def test_base_lock_cannot_be_instantiated(store):
    with pytest.raises(TypeError):
        BaseLock(store=store)


def test_acquire_writes_token_with_expiry():
    store = Mock(spec=LockStore)
    store.conditional_set.return_value = True
    lock = RedisLock(store=store, key="lock1", autorelease=7.0)

    assert lock.acquire()

    assert lock.store is store
    store.conditional_set.assert_called_once_with(
        "lock1", lock.acquired_token, only_if_absent=True, expire_after=7.0
    )


def test_retries_reuse_the_same_token():
    store = Mock(spec=LockStore)
    store.conditional_set.side_effect = [False, False, True]
    lock = RedisLock(store=store, key="lock1", retry_timeout=5.0, retry_sleep=0.001)

    assert lock.acquire()

    tokens = {c.args[1] for c in store.conditional_set.call_args_list}
    assert tokens == {lock.acquired_token}
    assert lock.last_acquire_retries == 2


def test_unsupported_store_is_rejected():
    with pytest.raises(InvalidOptionError):
        RedisLock(store=object())


def test_mutual_exclusion_between_instances(store):
    lock1 = RedisLock(store=store, key="shared", retry=False)
    lock2 = RedisLock(store=store, key="shared", retry=False)

    assert lock1.acquire() is True
    assert lock2.acquire() is False
    assert not lock2.acquired

    assert lock1.release() == ReleaseStatus.SUCCESS
    assert lock2.acquire() is True
    assert lock2.release() == ReleaseStatus.SUCCESS


def test_mutual_exclusion_under_thread_contention(store):
    holders = []
    max_concurrent = []
    outcomes = []
    guard = threading.Lock()

    def work():
        lock = RedisLock(store=store, key="contended", retry_timeout=5.0, retry_sleep=0.001)
        if not lock.acquire():
            outcomes.append(None)
            return
        try:
            with guard:
                holders.append(1)
                max_concurrent.append(len(holders))
            time.sleep(0.005)
            with guard:
                holders.pop()
        finally:
            outcomes.append(lock.release())

    threads = [threading.Thread(target=work) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes == [ReleaseStatus.SUCCESS] * 8
    assert max(max_concurrent) == 1
    assert store.get("contended") is None


def test_each_acquire_uses_a_new_token(store):
    lock = RedisLock(store=store, key="lock1")
    lock.acquire()
    first = lock.acquired_token
    lock.release()
    lock.acquire()
    assert lock.acquired_token != first
    lock.release()


def test_release_after_expiry_returns_already_released():
    clock = FakeClock()
    store = InMemoryStore(clock=clock)
    lock1 = RedisLock(store=store, key="lock1", autorelease=1.0, retry=False)
    lock2 = RedisLock(store=store, key="lock1", autorelease=1.0, retry=False)

    assert lock1.acquire()
    clock.now += 1.5
    # The instance does not notice the expiry.
    assert lock1.acquired

    assert lock2.acquire()
    assert lock1.release() == ReleaseStatus.ALREADY_RELEASED
    assert not lock1.acquired
    # The new owner's key is untouched.
    assert store.get("lock1") == lock2.acquired_token
    assert lock2.release() == ReleaseStatus.SUCCESS


def test_no_retry_mode_returns_immediately(store):
    RedisLock(store=store, key="held").acquire()
    lock = RedisLock(store=store, key="held", retry=False, retry_sleep=5.0)

    start = time.monotonic()
    assert lock.acquire() is False
    assert time.monotonic() - start < 1.0
    assert lock.last_acquire_retries == 0


def test_zero_retry_timeout_makes_a_single_attempt(store):
    RedisLock(store=store, key="held").acquire()
    lock = RedisLock(store=store, key="held", retry_timeout=0, retry_sleep=5.0)
    assert lock.acquire() is False
    assert lock.last_acquire_retries == 0


def test_retry_timeout_bounds_elapsed_time(store):
    RedisLock(store=store, key="held", autorelease=60.0).acquire()
    lock = RedisLock(store=store, key="held", retry_timeout=0.2, retry_sleep=0.05)

    start = time.monotonic()
    assert lock.acquire() is False
    elapsed = time.monotonic() - start

    assert 0.2 <= elapsed < 0.2 + 0.05 + 0.5
    # The count is approximate; only bound it.
    assert 1 <= lock.last_acquire_retries <= 5


def test_retry_succeeds_once_holder_releases(store):
    holder = RedisLock(store=store, key="handoff")
    holder.acquire()
    timer = threading.Timer(0.1, holder.release)
    timer.start()

    waiter = RedisLock(store=store, key="handoff", retry_timeout=5.0, retry_sleep=0.01)
    try:
        assert waiter.acquire() is True
        assert waiter.last_acquire_retries > 0
    finally:
        timer.join()
        waiter.release()


def test_failed_acquire_clears_previous_token(store):
    lock = RedisLock(store=store, key="lock1", retry=False)
    assert lock.acquire()
    # Acquiring again is an independent attempt and the key is taken.
    assert lock.acquire() is False
    assert not lock.acquired


def test_cancel_event_stops_retries(store):
    RedisLock(store=store, key="held").acquire()
    cancel = threading.Event()
    lock = RedisLock(store=store, key="held", retry_timeout=30.0, retry_sleep=0.01)
    threading.Timer(0.05, cancel.set).start()

    start = time.monotonic()
    assert lock.acquire(cancel_event=cancel) is False
    assert time.monotonic() - start < 5.0
    assert not lock.acquired


def test_release_twice(store):
    lock = RedisLock(store=store, key="lock1")
    lock.acquire()
    assert lock.release() == ReleaseStatus.SUCCESS
    assert lock.release() == ReleaseStatus.NOT_ACQUIRED


def test_release_without_acquire_does_not_touch_store():
    store = Mock(spec=LockStore)
    lock = RedisLock(store=store, key="lock1")
    assert lock.release() == ReleaseStatus.NOT_ACQUIRED
    store.compare_and_delete.assert_not_called()


def test_store_error_propagates_from_acquire_without_retry(store):
    lock = RedisLock(store=store, key="lock1", retry_timeout=5.0)
    store.force_error(StoreError("connection refused"))
    with pytest.raises(StoreError):
        lock.acquire()
    # The next call reaches the store again.
    assert lock.acquire()
    lock.release()


def test_release_clears_token_even_if_store_fails(store):
    lock = RedisLock(store=store, key="lock1")
    lock.acquire()
    store.force_error(StoreError("connection reset"))
    with pytest.raises(StoreError):
        lock.release()
    assert not lock.acquired


def test_isolation_by_key(store):
    lock1 = RedisLock(store=store, key="a", retry=False)
    lock2 = RedisLock(store=store, key="b", retry=False)
    assert lock1.acquire()
    assert lock2.acquire()
    assert lock1.release() == ReleaseStatus.SUCCESS
    assert lock2.release() == ReleaseStatus.SUCCESS


def test_with_lock_releases_and_returns_body_result(store):
    def body(lock):
        assert lock.acquired
        assert store.get("scoped") == lock.acquired_token
        return "done"

    assert RedisLock.with_lock(body, store=store, key="scoped") == "done"
    assert store.get("scoped") is None


def test_with_lock_runs_body_when_not_acquired(store):
    RedisLock(store=store, key="scoped").acquire()
    seen = []

    RedisLock.with_lock(lambda lock: seen.append(lock.acquired), store=store, key="scoped", retry=False)

    assert seen == [False]


def test_with_lock_releases_when_body_raises(store):
    captured = []

    def body(lock):
        captured.append(lock)
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        RedisLock.with_lock(body, store=store, key="scoped")

    assert store.get("scoped") is None
    assert not captured[0].acquired


def test_with_lock_keeps_body_error_when_release_fails(store):
    def body(lock):
        store.force_error(StoreError("release failed"))
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        RedisLock.with_lock(body, store=store, key="scoped")


def test_context_manager_propagates_release_error_without_body_error(store):
    with pytest.raises(StoreError):
        with RedisLock(store=store, key="ctx") as lock:
            assert lock.acquired
            store.force_error(StoreError("release failed"))


def test_context_manager_releases(store):
    with RedisLock(store=store, key="ctx") as lock:
        assert lock.acquired
    assert not lock.acquired
    assert store.get("ctx") is None
