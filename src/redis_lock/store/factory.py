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
Resolves the `store` lock option into a store implementation.
"""
from typing import Any

import redis
import redis.asyncio

from ..exceptions import InvalidOptionError
from .gcs import GCSStore
from .interface import AsyncLockStore, LockStore
from .redis import AsyncRedisStore, RedisStore

REDIS_URL_SCHEMES = ("redis://", "rediss://", "unix://")


def create_store(store: Any = None) -> LockStore:
    """
    Returns a LockStore for the given option.

    Accepts a LockStore, a redis client, a dict of redis connection options, a
    `redis://`, `rediss://`, `unix://` or `gs://` URL, or None for a redis
    server on localhost.
    """
    if isinstance(store, LockStore):
        return store
    if store is None:
        return RedisStore(redis.Redis())
    if isinstance(store, dict):
        return RedisStore(redis.Redis(**store))
    if isinstance(store, str):
        if store.startswith(REDIS_URL_SCHEMES):
            return RedisStore.from_url(store)
        if store.startswith("gs://"):
            return GCSStore.from_path(store)
    elif isinstance(store, redis.Redis):
        return RedisStore(store)
    raise InvalidOptionError(f"Unsupported store: {store!r}", ["store"])


def create_async_store(store: Any = None) -> AsyncLockStore:
    """
    Returns an AsyncLockStore for the given option.

    Accepts an AsyncLockStore, a `redis.asyncio` client, a dict of redis
    connection options, a redis URL, or None for a redis server on localhost.
    """
    if isinstance(store, AsyncLockStore):
        return store
    if store is None:
        return AsyncRedisStore(redis.asyncio.Redis())
    if isinstance(store, dict):
        return AsyncRedisStore(redis.asyncio.Redis(**store))
    if isinstance(store, str):
        if store.startswith(REDIS_URL_SCHEMES):
            return AsyncRedisStore.from_url(store)
    elif isinstance(store, redis.asyncio.Redis):
        return AsyncRedisStore(store)
    raise InvalidOptionError(f"Unsupported async store: {store!r}", ["store"])
