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
Thin asynchronous wrapper over the docker and docker-compose command line tools.
"""
import asyncio
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Sequence

from ..errors import RuntimeCommunicationError
from ..MODELS.service_declaration import ServiceDeclaration
from .service_kinds import kind_of


class RuntimeClient(Protocol):
    """
    The container runtime operations the orchestrator relies on.
    """
    async def find_container_by_label(self, label: str) -> Optional[str]: ...

    async def start_service(self, declaration: ServiceDeclaration) -> None: ...

    async def stop_container(self, container_id: str) -> None: ...

    async def remove_container(self, container_id: str, volumes: bool = True) -> None: ...

    async def run_command_in_container(
        self, container_id: str, command: str, env: Optional[Dict[str, str]] = None
    ) -> str: ...

    async def compose_down(self, compose_file: str, timeout: int = 15) -> None: ...


@dataclass
class CommandResult:
    """Outcome of a finished runtime command."""

    command: List[str]
    returncode: int
    stdout: str
    stderr: str


class DockerRuntimeClient:
    """
    Runs docker commands as subprocesses.
    """
    def __init__(
        self,
        compose_file_path: str = "docker-compose.yml",
        compose_command: Optional[Sequence[str]] = None,
    ):
        """
        :param compose_file_path: Compose file used for compose-backed services.
        :param compose_command: Compose executable, e.g. ["docker", "compose"].
        """
        self.compose_file_path = compose_file_path
        self.compose_command = list(compose_command or ["docker-compose"])

    async def _run(self, command: List[str]) -> CommandResult:
        """
        Runs a command and raises if it exits non-zero.

        :param command: Executable and arguments; never passed through a shell.
        :return: The captured result.
        """
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise RuntimeCommunicationError(command, None, str(e)) from e

        try:
            stdout, stderr = await process.communicate()
        except BaseException:
            # a cancelled caller must not leave the command running
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise
        result = CommandResult(
            command=command,
            returncode=process.returncode,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )
        if result.returncode != 0:
            raise RuntimeCommunicationError(command, result.returncode, result.stderr)
        return result

    async def find_container_by_label(self, label: str) -> Optional[str]:
        result = await self._run(
            ["docker", "ps", "--all", "--quiet", "--filter", f"label={label}"]
        )
        ids = result.stdout.split()
        return ids[0] if ids else None

    async def start_service(self, declaration: ServiceDeclaration) -> None:
        command = kind_of(declaration).start_command(
            declaration, self.compose_command, self.compose_file_path
        )
        await self._run(command)

    async def stop_container(self, container_id: str) -> None:
        await self._run(["docker", "stop", container_id])

    async def remove_container(self, container_id: str, volumes: bool = True) -> None:
        command = ["docker", "rm", container_id]
        if volumes:
            command.append("--volumes")
        await self._run(command)

    async def run_command_in_container(
        self, container_id: str, command: str, env: Optional[Dict[str, str]] = None
    ) -> str:
        """
        Runs a shell command inside a running container.

        :return: The command's standard output.
        """
        exec_command = ["docker", "exec"]
        for key, value in (env or {}).items():
            exec_command += ["--env", f"{key}={value}"]
        exec_command += [container_id, "sh", "-c", command]
        result = await self._run(exec_command)
        return result.stdout

    async def compose_down(self, compose_file: str, timeout: int = 15) -> None:
        await self._run([
            *self.compose_command, "-f", compose_file,
            "down", "--volumes", "--rmi", "local", "--timeout", str(timeout),
        ])
