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
Implementation of the store interface using Google Cloud Storage.
"""
import json
import logging
import time
from typing import Optional
from urllib.parse import urlparse

from google.api_core import exceptions as gcs_exceptions
from google.cloud import storage

from ..exceptions import StoreError
from .data import StoredValue
from .interface import LockStore

logger = logging.getLogger(__name__)


class GCSStore(LockStore):
    """
    A store that keeps each key as a small JSON object in a GCS bucket.

    **Core Mechanism**

    The object `<prefix>/<key>` holds:
    - `value`: The stored value (the lock's ownership token).
    - `expiresAt`: A Unix timestamp after which the key counts as absent.

    GCS has no per-object TTL, so expiry is evaluated on read. Atomicity comes
    from generation preconditions: a create uses `if_generation_match=0`, taking
    over an expired object matches that object's generation, and a delete only
    succeeds against the generation that held the expected value. A
    `PreconditionFailed` means another writer got there first.
    """

    def __init__(self, bucket: storage.Bucket, prefix: str = ""):
        """
        Initializes the GCSStore.

        Args:
            bucket: The GCS bucket where the objects reside.
            prefix: An optional object name prefix, e.g. "locks".
        """
        self._bucket = bucket
        self._prefix = prefix.strip("/")

    @classmethod
    def from_path(
        cls,
        gcs_path: str,
        client: Optional[storage.Client] = None,
    ) -> "GCSStore":
        """
        Creates a GCSStore instance from a GCS path string.

        Example:
            store = GCSStore.from_path("gs://my-bucket/locks")

        Args:
            gcs_path: The bucket and optional prefix, as `gs://<bucket>[/<prefix>]`.
            client: An optional GCS storage client.
        """
        parsed_path = urlparse(gcs_path)
        bucket_name = parsed_path.netloc
        if parsed_path.scheme != "gs" or not bucket_name:
            raise ValueError(
                f'Invalid GCS path "{gcs_path}". Path must be in the format "gs://<bucket_name>[/<prefix>]".'
            )

        if not client:
            client = storage.Client()
        return cls(bucket=client.bucket(bucket_name), prefix=parsed_path.path)

    def _blob_name(self, key: str) -> str:
        return f"{self._prefix}/{key}" if self._prefix else key

    def _read(self, key: str) -> Optional[StoredValue]:
        """
        Reads and parses the object for `key`.

        Returns:
            A StoredValue if the object exists (expired or not), otherwise None.
        """
        blob = self._bucket.blob(self._blob_name(key))
        try:
            # download_as_bytes() reloads metadata, so blob.generation is current.
            content = blob.download_as_bytes()
        except gcs_exceptions.NotFound:
            return None
        except gcs_exceptions.GoogleAPIError as e:
            raise StoreError(f"Failed to read key {key}: {e}") from e
        try:
            data = json.loads(content)
            expires_at = data["expiresAt"]
            if not isinstance(data["value"], str):
                raise TypeError(f"value must be a string, got {data['value']!r}")
            if isinstance(expires_at, bool) or not isinstance(expires_at, (int, float)):
                raise TypeError(f"expiresAt must be a number, got {expires_at!r}")
        except (ValueError, TypeError, KeyError) as e:
            raise StoreError(f"Corrupt lock object for key {key}: {e!r}") from e
        data["generation"] = blob.generation
        return StoredValue(raw=data)

    def conditional_set(
        self, key: str, value: str, only_if_absent: bool = True, expire_after: float = 10.0
    ) -> bool:
        current = self._read(key)
        if current is None:
            generation = 0
        elif current.is_expired or not only_if_absent:
            generation = current.generation
        else:
            return False

        blob = self._bucket.blob(self._blob_name(key))
        data = {"value": value, "expiresAt": time.time() + expire_after}
        try:
            blob.upload_from_string(
                json.dumps(data),
                content_type="application/json",
                if_generation_match=generation,
            )
            return True
        except gcs_exceptions.PreconditionFailed:
            # Another writer created or replaced the object after our read.
            logger.debug(f"Lost race to write key {key}")
            return False
        except gcs_exceptions.GoogleAPIError as e:
            raise StoreError(f"Failed to write key {key}: {e}") from e

    def get(self, key: str) -> Optional[str]:
        current = self._read(key)
        if current is None or current.is_expired:
            return None
        return current.value

    def compare_and_delete(self, key: str, expected_value: str) -> bool:
        current = self._read(key)
        if current is None or current.is_expired or current.value != expected_value:
            return False

        blob = self._bucket.blob(self._blob_name(key))
        try:
            blob.delete(if_generation_match=current.generation)
            return True
        except (gcs_exceptions.PreconditionFailed, gcs_exceptions.NotFound):
            # The object changed or vanished between our read and the delete.
            logger.warning(f"Failed to delete key {key} due to contention.")
            return False
        except gcs_exceptions.GoogleAPIError as e:
            raise StoreError(f"Failed to delete key {key}: {e}") from e
