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
Exceptions raised while configuring, provisioning and tearing down services.
"""
from typing import List, Optional, Sequence


class DockestError(Exception):
    """Base class for every error raised by dockest."""


class ConfigurationError(DockestError):
    """
    Raised when the configuration is structurally invalid.
    Always raised before any container is touched.
    """

    def __init__(
        self,
        message: str,
        kind: Optional[str] = None,
        index: Optional[int] = None,
        missing_fields: Optional[List[str]] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.index = index
        self.missing_fields = missing_fields or []


class ProvisioningError(DockestError):
    """Raised when a declared service could not be brought up."""


class RuntimeCommunicationError(ProvisioningError):
    """
    Raised when a call into the container runtime fails.
    """

    def __init__(self, command: Sequence[str], returncode: Optional[int], stderr: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip()[:500] if stderr else f"Exit code: {returncode}"
        super().__init__(f"Command '{' '.join(self.command)}' failed: {detail}")


class ConnectionTimeoutError(ProvisioningError):
    """Discovery or creation did not finish within the connection timeout."""


class ResponsivenessTimeoutError(ProvisioningError):
    """The service never answered its readiness probe in time."""


class SetupCommandError(ProvisioningError):
    """A post-start setup command failed."""


class RetryAttemptsExhaustedError(ProvisioningError):
    """Stale containers kept showing up after every recovery attempt."""


class TeardownError(DockestError):
    """
    Raised when a container could not be stopped or removed.
    """

    def __init__(self, message: str, container_id: Optional[str] = None):
        super().__init__(message)
        self.container_id = container_id
