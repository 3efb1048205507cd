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
Orchestration of every declared service around a single test run.
"""
import asyncio
import inspect
import signal
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from ..errors import ProvisioningError, TeardownError
from ..MODELS.global_config import GlobalConfig
from ..RUNNERS.readiness_prober import ReadinessProber
from ..RUNNERS.runtime_client import DockerRuntimeClient, RuntimeClient
from ..RUNNERS.service_runner import DEFAULT_RETRY_ATTEMPTS, ServiceRunner
from ..UTILS.logger import Logger
from .config_store import ConfigStore
from .teardown_manager import TeardownManager
from .teardown_record import TeardownRecord

EXIT_PROVISIONING_FAILURE = 70
EXIT_TEARDOWN_FAILURE = 74
EXIT_CONFIGURATION_ERROR = 78
EXIT_INTERRUPTED = 130


@dataclass
class RunContext:
    """State of one run, passed around explicitly."""

    config: GlobalConfig
    record: TeardownRecord = field(default_factory=TeardownRecord)
    runners: List[ServiceRunner] = field(default_factory=list)
    teardown_errors: List[TeardownError] = field(default_factory=list)


class Orchestrator:
    """
    Provisions every declared service, runs the test engine and tears everything down.
    """
    def __init__(
        self,
        config: GlobalConfig,
        runtime: Optional[RuntimeClient] = None,
        prober: Optional[ReadinessProber] = None,
        logger: Optional[Logger] = None,
        retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        poll_interval: float = 1.0,
    ):
        """
        Initializes the orchestrator.

        :param config: Validated configuration for the run.
        :param runtime: Container runtime client, docker CLI by default.
        :param prober: Readiness prober, built on the runtime by default.
        :param logger: Progress reporting.
        :param retry_attempts: Stale-container recoveries allowed per declaration.
        :param poll_interval: Seconds between readiness probes.
        """
        options = config.dockest
        self.context = RunContext(config=config)
        self.logger = logger or Logger(verbose=options.verbose)
        self.runtime = runtime or DockerRuntimeClient(
            options.compose_file_path, options.compose_command
        )
        self.prober = prober or ReadinessProber(self.runtime)
        self.teardown = TeardownManager(self.runtime, self.logger)

        for declaration in config.declarations():
            self.context.runners.append(ServiceRunner(
                declaration,
                self.runtime,
                self.prober,
                self.teardown,
                self.context.record,
                logger=self.logger,
                retry_attempts=retry_attempts,
                poll_interval=poll_interval,
            ))

    @classmethod
    def from_config(
        cls,
        user_config: Optional[Mapping[str, Any]] = None,
        rc_path: Optional[str] = None,
        **kwargs,
    ) -> "Orchestrator":
        """
        Builds an orchestrator from a user config mapping or the rc file.

        :raises ConfigurationError: If the configuration is invalid.
        """
        store = ConfigStore(user_config, rc_path=rc_path)
        return cls(store.get_config(), **kwargs)

    async def provision(self):
        """
        Drives every runner to READY concurrently.

        On the first failure the other runners are cancelled and the failure is raised.
        """
        runners = self.context.runners
        if not runners:
            return

        self.logger.loading(f"Provisioning {len(runners)} service(s)")
        tasks = [asyncio.ensure_future(runner.run()) for runner in runners]
        try:
            done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        except asyncio.CancelledError:
            await self._cancel(tasks)
            raise

        await self._cancel(pending)

        for task in tasks:
            if task in done and not task.cancelled() and task.exception() is not None:
                raise task.exception()

    @staticmethod
    async def _cancel(tasks):
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def run_tests(self) -> int:
        """
        Hands control to the test engine.

        :return: Exit code derived from the engine's result.
        """
        engine = self.context.config.test_engine
        self.logger.loading("Running test suites")

        run_cli = engine.lib.run_cli
        options = {"silent": engine.silent, "verbose": engine.verbose}
        if inspect.iscoroutinefunction(run_cli):
            result = await run_cli(engine.projects, **options)
        else:
            result = await asyncio.to_thread(run_cli, engine.projects, **options)
            if inspect.isawaitable(result):
                result = await result
        return exit_code_of(result)

    async def run(self) -> int:
        """
        Provisions, runs the tests and always tears down.

        Teardown runs to completion even if the run is cancelled again while it is
        in progress. A cancelled run still reports to the exit handler and then
        re-raises the cancellation.

        :return: Process exit code.
        """
        restore_signals = self._install_signal_handlers()
        failure: Optional[BaseException] = None
        interruption: Optional[asyncio.CancelledError] = None
        try:
            try:
                exit_code = await self._provision_and_test()
            except ProvisioningError as e:
                failure = e
                self.logger.error(f"Provisioning failed: {e}")
                exit_code = EXIT_PROVISIONING_FAILURE
            except asyncio.CancelledError as e:
                failure = interruption = e
                self.logger.warn("Interrupted, releasing containers")
                exit_code = EXIT_INTERRUPTED
        finally:
            try:
                teardown_error, cancelled = await self._tear_down_to_completion()
            finally:
                restore_signals()

        if cancelled and interruption is None:
            failure = interruption = asyncio.CancelledError()
            exit_code = EXIT_INTERRUPTED
        if teardown_error is not None:
            failure = failure or teardown_error
            if exit_code == 0:
                exit_code = EXIT_TEARDOWN_FAILURE

        handler = self.context.config.dockest.exit_handler
        if handler is not None:
            handler(failure)
        if interruption is not None:
            raise interruption
        return exit_code

    async def _provision_and_test(self) -> int:
        await self.provision()
        if self.context.runners:
            self.logger.success("All services ready")
        return await self.run_tests()

    async def _tear_down_to_completion(self):
        """
        Runs tear_down shielded from cancellation of the current task.

        :return: The teardown failure (or None) and whether a cancellation arrived meanwhile.
        """
        teardown = asyncio.ensure_future(self.tear_down())
        cancelled = False
        while not teardown.done():
            try:
                await asyncio.shield(teardown)
            except asyncio.CancelledError:
                if teardown.cancelled():
                    raise
                cancelled = True
                self.logger.warn("Teardown in progress, interruption deferred")
        return teardown.result(), cancelled

    async def tear_down(self) -> Optional[TeardownError]:
        """
        Releases every container the run created.

        :return: The teardown failure, if any, so it can be reported.
        """
        try:
            await self.teardown.tear_all(self.context.record)
        except TeardownError as e:
            self.context.teardown_errors.append(e)
            self.logger.error(f"Teardown failed, container <{e.container_id}> may be leaked: {e}")
            return e
        return None

    def _install_signal_handlers(self):
        """
        Turns SIGTERM into cancellation of the current run so teardown still happens.

        :return: Callable restoring the previous handling.
        """
        loop = asyncio.get_running_loop()
        task = asyncio.current_task()
        try:
            loop.add_signal_handler(signal.SIGTERM, task.cancel)
        except (NotImplementedError, RuntimeError, ValueError):
            # No signal support on this loop or not in the main thread
            return lambda: None
        return lambda: loop.remove_signal_handler(signal.SIGTERM)


def exit_code_of(result: Any) -> int:
    """
    Maps a test engine result to an exit code.

    Accepts an int exit code, a bool, an object with a `success` attribute
    or None (treated as success).
    """
    if result is None:
        return 0
    if isinstance(result, bool):
        return 0 if result else 1
    if isinstance(result, int):
        return int(result)
    success = getattr(result, "success", None)
    if success is not None:
        return 0 if success else 1
    return 0 if result else 1
