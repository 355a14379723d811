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
This is an example script to demonstrate how RedisLock prevents the dog-pile
effect: several workers find the same cached value missing at the same time,
and only the one holding the lock recomputes it while the others wait for the
result.

**Prerequisites:**

1.  **Redis:** A redis server you can write to. For example:
    ```bash
    docker run --rm -p 6379:6379 redis
    ```

2.  **Environment Variable (optional):** Set `REDIS_URL` if the server is not
    on localhost:
    ```bash
    export REDIS_URL="redis://my-host:6379/15"
    ```

**To Run:**

```bash
python3 -m example.dogpile
```

**Expected Output:**

Exactly one worker logs "Recomputing"; every worker ends up with the same value.
"""
import logging
import os
import threading
import time
import uuid

import redis

log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=log_level,
    format='%(asctime)s - %(levelname)s - %(name)s - %(message)s'
)

from src.redis_lock.config import configure
from src.redis_lock.lock import RedisLock

WORKERS = 5
CACHE_KEY = f"dogpile-demo:value:{uuid.uuid4()}"


def expensive_computation() -> str:
    time.sleep(1)
    return f"computed-at-{time.time():.3f}"


def worker(name: str, client: redis.Redis, results: dict):
    """Reads the cached value, recomputing it under the lock if it is missing."""
    value = client.get(CACHE_KEY)
    if value is None:
        def recompute(lock: RedisLock):
            if not lock.acquired:
                logging.warning(f"[{name}] Could not acquire the lock in time.")
                return None
            # Another worker may have filled the cache while we waited.
            cached = client.get(CACHE_KEY)
            if cached is not None:
                return cached
            logging.info(f"[{name}] Recomputing the cached value...")
            fresh = expensive_computation()
            client.set(CACHE_KEY, fresh, ex=60)
            return fresh

        value = RedisLock.with_lock(recompute, key=f"{CACHE_KEY}:lock")
    results[name] = value.decode() if isinstance(value, bytes) else value
    logging.info(f"[{name}] Got value {results[name]}")


def main():
    client = redis.Redis.from_url(os.environ.get("REDIS_URL", "redis://localhost:6379/0"))
    configure(store=client, autorelease=5.0, retry_timeout=10.0, retry_sleep=0.05)

    results: dict = {}
    threads = [
        threading.Thread(target=worker, args=(f"worker-{i}", client, results))
        for i in range(WORKERS)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    logging.info(f"Distinct values seen: {sorted(set(results.values()))}")
    client.delete(CACHE_KEY)
    client.close()


if __name__ == "__main__":
    main()
