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
Stopping and removing containers, one at a time or everything a run created.
"""
import warnings
from typing import List, Optional

from ..errors import RuntimeCommunicationError, TeardownError
from ..RUNNERS.runtime_client import RuntimeClient
from ..UTILS.logger import Logger
from .teardown_record import TeardownRecord

COMPOSE_DOWN_TIMEOUT = 15


class TeardownManager:
    """
    Releases containers and their volumes.
    """
    def __init__(self, runtime: RuntimeClient, logger: Optional[Logger] = None):
        """
        :param runtime: Client used to stop and remove containers.
        :param logger: Progress reporting.
        """
        self.runtime = runtime
        self.logger = logger or Logger()

    async def tear_single(self, container_id: Optional[str], progress: str = "1/1"):
        """
        Stops and removes a single container including its volumes.

        :param container_id: The container to release.
        :param progress: Progress label used in the report, e.g. "2/5".
        :raises TeardownError: If no id is given or the runtime fails.
        """
        if not container_id:
            raise TeardownError("No containerId")

        self._report("loading", "Teardown started")
        await self._release(container_id, progress)
        self._report("success", "Teardown successful")

    async def tear_all(self, record: TeardownRecord) -> List[str]:
        """
        Stops and removes every container in the record, sequentially, in registration order.

        A runtime failure aborts the remaining teardown.

        :param record: Containers known to the current run.
        :return: Ids that were released.
        """
        container_ids = record.snapshot()
        if not container_ids:
            return []

        self._report("loading", "Teardown started")

        released = []
        for i, container_id in enumerate(container_ids, start=1):
            await self._release(container_id, f"{i}/{len(container_ids)}")
            released.append(container_id)

        self._report("success", "Teardown successful")
        return released

    async def compose_down(self, compose_file: str):
        """
        Tears down the whole compose environment.

        Deprecated: prefer tear_all, which only touches containers this run created.
        """
        warnings.warn(
            "compose_down is deprecated, use tear_all instead",
            DeprecationWarning,
            stacklevel=2,
        )
        try:
            await self.runtime.compose_down(compose_file, timeout=COMPOSE_DOWN_TIMEOUT)
        except RuntimeCommunicationError as e:
            raise TeardownError(f"docker-compose down failed: {e}") from e
        self._report("success", "docker-compose: success")

    async def _release(self, container_id: str, progress: str):
        try:
            await self.runtime.stop_container(container_id)
        except RuntimeCommunicationError as e:
            raise TeardownError(
                f"Container #{progress} with id <{container_id}> could not be stopped: {e}",
                container_id=container_id,
            ) from e
        self._report("success", f"Container #{progress} with id <{container_id}> stopped")

        try:
            await self.runtime.remove_container(container_id, volumes=True)
        except RuntimeCommunicationError as e:
            raise TeardownError(
                f"Container #{progress} with id <{container_id}> could not be removed: {e}",
                container_id=container_id,
            ) from e
        self._report("success", f"Container #{progress} with id <{container_id}> removed")

    def _report(self, level: str, message: str):
        # A broken terminal must not stop containers from being released
        try:
            getattr(self.logger, level)(message)
        except (OSError, ValueError):
            pass
