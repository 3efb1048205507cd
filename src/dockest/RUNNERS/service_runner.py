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
Lifecycle of a single declared service: discover, recover, create, verify, set up.
"""
import asyncio
from enum import Enum
from typing import List, Optional

from tenacity import AsyncRetrying, RetryError, retry_if_result, stop_after_delay, wait_fixed

from ..errors import (
    ConnectionTimeoutError,
    ProvisioningError,
    ResponsivenessTimeoutError,
    RetryAttemptsExhaustedError,
    RuntimeCommunicationError,
    SetupCommandError,
    TeardownError,
)
from ..MANAGERS.teardown_manager import TeardownManager
from ..MANAGERS.teardown_record import TeardownRecord
from ..MODELS.service_declaration import ServiceDeclaration
from ..UTILS.logger import Logger
from .readiness_prober import ProbeResult, ReadinessProber
from .runtime_client import RuntimeClient
from .service_kinds import kind_of

DEFAULT_RETRY_ATTEMPTS = 3


class RunnerState(str, Enum):
    """States a ServiceRunner moves through."""

    DISCOVERING = "discovering"
    RECOVERING_UNEXPECTED = "recovering_unexpected"
    CREATING = "creating"
    VERIFYING_RESPONSIVE = "verifying_responsive"
    RUNNING_SETUP = "running_setup"
    READY = "ready"
    FAILED = "failed"


class RetryBudget:
    """
    Number of stale-container recoveries one declaration may go through.
    """
    def __init__(self, attempts: int = DEFAULT_RETRY_ATTEMPTS):
        self.attempts = attempts
        self.remaining = attempts

    def consume(self) -> bool:
        """
        Uses up one attempt.

        :return: True while attempts remain.
        """
        self.remaining -= 1
        return self.remaining > 0

    @property
    def exhausted(self) -> bool:
        return self.remaining <= 0


class ServiceRunner:
    """
    Drives one declaration to READY, or to FAILED with a ProvisioningError.
    """
    def __init__(
        self,
        declaration: ServiceDeclaration,
        runtime: RuntimeClient,
        prober: ReadinessProber,
        teardown: TeardownManager,
        record: TeardownRecord,
        logger: Optional[Logger] = None,
        retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        poll_interval: float = 1.0,
    ):
        """
        :param declaration: The service to provision; its container_id is set by this runner.
        :param runtime: Container runtime client.
        :param prober: Readiness prober for the declaration's kind.
        :param teardown: Used to release stale containers.
        :param record: Every created container is registered here.
        :param logger: Progress reporting.
        :param retry_attempts: Stale-container recoveries allowed before failing.
        :param poll_interval: Seconds between readiness probes.
        """
        self.declaration = declaration
        self.kind = kind_of(declaration)
        self.runtime = runtime
        self.prober = prober
        self.teardown = teardown
        self.record = record
        self.logger = (logger or Logger()).child(declaration.describe())
        self.budget = RetryBudget(retry_attempts)
        self.poll_interval = poll_interval

        self.state: Optional[RunnerState] = None
        self.history: List[RunnerState] = []
        self.error: Optional[BaseException] = None

    @property
    def container_id(self) -> Optional[str]:
        return self.declaration.container_id

    def _enter(self, state: RunnerState):
        self.state = state
        self.history.append(state)
        self.logger.debug(f"-> {state.value}")

    async def run(self) -> str:
        """
        Runs the state machine to completion.

        :return: The id of the ready container.
        :raises ProvisioningError: If the service could not be made ready.
        """
        try:
            container_id = await self._discover_or_create()
            await self._verify_responsive(container_id)
            await self._run_setup(container_id)
        except ProvisioningError as e:
            self._fail(e)
            raise
        except TeardownError as e:
            error = ProvisioningError(f"Could not release stale container for {self.declaration.describe()}: {e}")
            self._fail(error)
            raise error from e
        except asyncio.CancelledError as e:
            self._fail(e)
            raise

        self._enter(RunnerState.READY)
        self.logger.success(f"Ready, container <{container_id}>")
        return container_id

    def _fail(self, error: BaseException):
        self.error = error
        self._enter(RunnerState.FAILED)

    async def _discover_or_create(self) -> str:
        # Existing containers are leftovers from an aborted run and are never reused
        while True:
            self._enter(RunnerState.DISCOVERING)
            existing = await self._discover()
            if not existing:
                break

            self._enter(RunnerState.RECOVERING_UNEXPECTED)
            self.logger.error("Unexpected container found, releasing resources and re-running")
            await self.teardown.tear_single(existing)

            if not self.budget.consume():
                raise RetryAttemptsExhaustedError(
                    f"{self.kind.name.capitalize()} rerun attempts exhausted "
                    f"for label '{self.declaration.label}'"
                )

        self._enter(RunnerState.CREATING)
        return await self._create()

    async def _discover(self) -> Optional[str]:
        timeout = self.declaration.connection_timeout
        try:
            return await asyncio.wait_for(
                self.runtime.find_container_by_label(self.declaration.label), timeout
            )
        except asyncio.TimeoutError as e:
            raise ConnectionTimeoutError(
                f"Discovery of {self.declaration.describe()} timed out after {timeout}s"
            ) from e

    async def _create(self) -> str:
        timeout = self.declaration.connection_timeout
        self.logger.loading(f"Starting {self.kind.name} container")
        try:
            await asyncio.wait_for(self.runtime.start_service(self.declaration), timeout)
        except asyncio.TimeoutError as e:
            await self._claim_leftover()
            raise ConnectionTimeoutError(
                f"Starting {self.declaration.describe()} timed out after {timeout}s"
            ) from e
        except asyncio.CancelledError:
            await self._claim_leftover()
            raise

        try:
            container_id = await self._discover()
        except BaseException:
            # the start went through, so whatever it created must stay tracked
            await self._claim_leftover()
            raise
        if not container_id:
            raise ProvisioningError(
                f"No container labelled '{self.declaration.label}' found after starting it"
            )
        self._attach(container_id)
        return container_id

    async def _claim_leftover(self):
        """
        Registers a container that came up even though starting it was interrupted.
        """
        try:
            container_id = await self.runtime.find_container_by_label(self.declaration.label)
        except RuntimeCommunicationError as e:
            self.logger.warn(f"Could not look for a half-started container: {e}")
            return
        if container_id:
            self._attach(container_id)

    def _attach(self, container_id: str):
        self.declaration.container_id = container_id
        self.record.register(container_id)
        self.logger.debug(f"Tracking container <{container_id}>")

    async def _verify_responsive(self, container_id: str):
        self._enter(RunnerState.VERIFYING_RESPONSIVE)
        timeout = self.declaration.responsiveness_timeout
        self.logger.loading("Waiting for the service to respond")

        retrying = AsyncRetrying(
            stop=stop_after_delay(timeout),
            wait=wait_fixed(self.poll_interval),
            retry=retry_if_result(lambda result: result is not ProbeResult.RESPONSIVE),
        )
        try:
            await asyncio.wait_for(
                retrying(self.prober.probe, container_id, self.declaration),
                timeout + self.poll_interval,
            )
        except (RetryError, asyncio.TimeoutError) as e:
            raise ResponsivenessTimeoutError(
                f"{self.declaration.describe()} did not respond within {timeout}s"
            ) from e

    async def _run_setup(self, container_id: str):
        self._enter(RunnerState.RUNNING_SETUP)
        commands = self.declaration.commands
        if commands:
            self.logger.loading(f"Running {len(commands)} setup command(s)")

        for command in commands:
            try:
                await self.runtime.run_command_in_container(container_id, command)
            except RuntimeCommunicationError as e:
                raise SetupCommandError(
                    f"Setup command '{command}' failed for {self.declaration.describe()}"
                ) from e
            self.logger.debug(f"Ran '{command}'")
