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
Data class for representing a key stored as a JSON object in a GCS bucket.
"""
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class StoredValue:
    """
    Wraps the raw object data dictionary and provides helper properties for easy
    state checking.
    """

    raw: Dict[str, Any]

    @property
    def value(self) -> Optional[str]:
        return self.raw.get("value")

    @property
    def generation(self) -> Optional[int]:
        return self.raw.get("generation")

    @property
    def expires_at(self) -> float:
        return self.raw.get("expiresAt", 0)

    @property
    def is_expired(self) -> bool:
        """Checks if the key's time-to-live has elapsed."""
        return self.expires_at <= time.time()
