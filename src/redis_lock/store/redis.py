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
Implementation of the store interface using redis.
"""
import logging
from typing import Optional, Union

import redis
import redis.asyncio
from redis import exceptions as redis_exceptions

from ..exceptions import StoreError
from .interface import AsyncLockStore, LockStore

logger = logging.getLogger(__name__)

# Deletes KEYS[1] only if it still holds this lock's token (ARGV[1]).
# Returns 1 if the key was deleted, 0 otherwise.
COMPARE_AND_DELETE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


def _to_millis(seconds: float) -> int:
    # PX rejects 0, so sub-millisecond expiries round up to 1ms.
    return max(1, int(round(seconds * 1000)))


def _decode(value: Union[bytes, str, None]) -> Optional[str]:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


class RedisStore(LockStore):
    """
    A store backed by a redis server.

    `conditional_set` maps onto a single `SET key value NX PX <ms>` command, and
    `compare_and_delete` runs a Lua script on the server, so both are atomic.
    The redis client is used but not owned: closing it is up to the caller.
    """

    def __init__(self, client: redis.Redis):
        self._client = client
        self._compare_and_delete = client.register_script(COMPARE_AND_DELETE_SCRIPT)

    @property
    def client(self) -> redis.Redis:
        return self._client

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisStore":
        """
        Creates a RedisStore from a connection URL.

        Example:
            store = RedisStore.from_url("redis://localhost:6379/15")
        """
        return cls(redis.Redis.from_url(url, **kwargs))

    def conditional_set(
        self, key: str, value: str, only_if_absent: bool = True, expire_after: float = 10.0
    ) -> bool:
        try:
            result = self._client.set(
                key, value, nx=only_if_absent, px=_to_millis(expire_after)
            )
        except redis_exceptions.RedisError as e:
            raise StoreError(f"Failed to set key {key}: {e}") from e
        return bool(result)

    def get(self, key: str) -> Optional[str]:
        try:
            return _decode(self._client.get(key))
        except redis_exceptions.RedisError as e:
            raise StoreError(f"Failed to get key {key}: {e}") from e

    def compare_and_delete(self, key: str, expected_value: str) -> bool:
        try:
            deleted = self._compare_and_delete(keys=[key], args=[expected_value])
        except redis_exceptions.RedisError as e:
            raise StoreError(f"Failed to delete key {key}: {e}") from e
        return bool(deleted)


class AsyncRedisStore(AsyncLockStore):
    """
    The asyncio counterpart of `RedisStore`, built on `redis.asyncio.Redis`.
    """

    def __init__(self, client: redis.asyncio.Redis):
        self._client = client
        self._compare_and_delete = client.register_script(COMPARE_AND_DELETE_SCRIPT)

    @property
    def client(self) -> redis.asyncio.Redis:
        return self._client

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "AsyncRedisStore":
        return cls(redis.asyncio.Redis.from_url(url, **kwargs))

    async def conditional_set(
        self, key: str, value: str, only_if_absent: bool = True, expire_after: float = 10.0
    ) -> bool:
        try:
            result = await self._client.set(
                key, value, nx=only_if_absent, px=_to_millis(expire_after)
            )
        except redis_exceptions.RedisError as e:
            raise StoreError(f"Failed to set key {key}: {e}") from e
        return bool(result)

    async def get(self, key: str) -> Optional[str]:
        try:
            return _decode(await self._client.get(key))
        except redis_exceptions.RedisError as e:
            raise StoreError(f"Failed to get key {key}: {e}") from e

    async def compare_and_delete(self, key: str, expected_value: str) -> bool:
        try:
            deleted = await self._compare_and_delete(keys=[key], args=[expected_value])
        except redis_exceptions.RedisError as e:
            raise StoreError(f"Failed to delete key {key}: {e}") from e
        return bool(deleted)
