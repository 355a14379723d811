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
Configuration for distributed locks.

`LockConfig` is immutable. A process-wide default `LockConfig` supplies values
for any option not given when a lock is constructed; `configure()` swaps it for
an updated copy, so locks that already exist keep the snapshot they were built
with.
"""
import dataclasses
import math
import os
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .exceptions import InvalidOptionError

DEFAULT_KEY = "RedisLock::default"

# Alternative option names accepted wherever options are given.
OPTION_ALIASES = {
    "expiry_duration": "autorelease",
    "retry_enabled": "retry",
}


@dataclass(frozen=True)
class LockConfig:
    """
    Settings for a single lock.

    Attributes:
        store: A store instance, a redis client, redis connection options, a
               store URL, or None for a redis server on localhost. Resolved by
               `store.factory.create_store`.
        key: The key holding the lock in the store.
        autorelease: Seconds after which the store drops the key if it is never
                     released.
        retry: False to make `acquire()` try only once.
        retry_timeout: Max seconds to keep retrying while the lock is held
                       elsewhere.
        retry_sleep: Seconds to sleep between two attempts.
    """
    store: Any = None
    key: str = DEFAULT_KEY
    autorelease: float = 10.0
    retry: bool = True
    retry_timeout: float = 10.0
    retry_sleep: float = 0.1

    def __post_init__(self):
        if not isinstance(self.key, str) or not self.key:
            raise InvalidOptionError("key must be a non-empty string", ["key"])
        if not isinstance(self.retry, bool):
            raise InvalidOptionError(f"retry must be a bool, got {self.retry!r}", ["retry"])
        _check_seconds("autorelease", self.autorelease, allow_zero=False)
        _check_seconds("retry_timeout", self.retry_timeout, allow_zero=True)
        _check_seconds("retry_sleep", self.retry_sleep, allow_zero=True)

    @classmethod
    def option_names(cls) -> List[str]:
        return [f.name for f in dataclasses.fields(cls)]

    def replace(self, **options) -> "LockConfig":
        """Returns a validated copy with the given options overridden."""
        return dataclasses.replace(self, **normalize_options(options))

    @classmethod
    def from_env(cls, base: Optional["LockConfig"] = None) -> "LockConfig":
        """
        Creates a LockConfig from environment variables, falling back to `base`
        (or the built-in defaults) for anything that is not set.
        """
        options: Dict[str, Any] = {
            "store": os.environ.get("REDIS_LOCK_STORE"),
            "key": os.environ.get("REDIS_LOCK_KEY"),
            "autorelease": _env_float("REDIS_LOCK_AUTORELEASE"),
            "retry_timeout": _env_float("REDIS_LOCK_RETRY_TIMEOUT"),
            "retry_sleep": _env_float("REDIS_LOCK_RETRY_SLEEP"),
        }
        retry = os.environ.get("REDIS_LOCK_RETRY")
        if retry is not None:
            options["retry"] = retry.lower() in ['true', '1']
        return (base or cls()).replace(**options)


def normalize_options(options: Dict[str, Any]) -> Dict[str, Any]:
    """
    Maps option aliases to field names and drops options set to None, which
    means "use the default".

    Raises:
        InvalidOptionError: If any option name is unknown or given twice.
    """
    allowed = LockConfig.option_names()
    invalid = sorted(
        name for name in options if name not in allowed and name not in OPTION_ALIASES
    )
    if invalid:
        raise InvalidOptionError(
            f"Invalid options: {invalid}. Please use one of {allowed}", invalid
        )

    normalized: Dict[str, Any] = {}
    for name, value in options.items():
        if value is None:
            continue
        field = OPTION_ALIASES.get(name, name)
        if field in normalized:
            raise InvalidOptionError(f"Option {field!r} given more than once", [name])
        normalized[field] = value
    return normalized


def _check_seconds(name: str, value: Any, allow_zero: bool) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidOptionError(f"{name} must be a number of seconds, got {value!r}", [name])
    if not math.isfinite(value) or value < 0 or (value == 0 and not allow_zero):
        raise InvalidOptionError(f"{name} is out of range: {value!r}", [name])


def _env_float(name: str) -> Optional[float]:
    value = os.environ.get(name)
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        raise InvalidOptionError(f"{name} must be a number, got {value!r}", [name])


_defaults_lock = threading.Lock()
_defaults = LockConfig()


def get_defaults() -> LockConfig:
    """Returns the process-wide default configuration."""
    with _defaults_lock:
        return _defaults


def configure(**options) -> LockConfig:
    """
    Updates the process-wide defaults used by locks constructed from now on.

    Example:
        configure(store="redis://localhost:6379/0", autorelease=30.0)
    """
    global _defaults
    with _defaults_lock:
        _defaults = _defaults.replace(**options)
        return _defaults


def reset_defaults() -> LockConfig:
    """Restores the built-in defaults."""
    global _defaults
    with _defaults_lock:
        _defaults = LockConfig()
        return _defaults
