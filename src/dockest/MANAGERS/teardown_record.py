# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
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
Tracking of every container created during a run.
"""
import threading
from typing import List


class TeardownRecord:
    """
    Append-only, ordered set of container ids that must be released at the end of a run.
    """
    def __init__(self):
        self._lock = threading.Lock()
        self._container_ids: List[str] = []

    def register(self, container_id: str) -> bool:
        """
        Registers a container id. Ids already known are ignored.

        :return: True if the id was new.
        """
        with self._lock:
            if container_id in self._container_ids:
                return False
            self._container_ids.append(container_id)
            return True

    def snapshot(self) -> List[str]:
        """Ids in registration order."""
        with self._lock:
            return list(self._container_ids)

    def __contains__(self, container_id: str) -> bool:
        with self._lock:
            return container_id in self._container_ids

    def __len__(self) -> int:
        with self._lock:
            return len(self._container_ids)
