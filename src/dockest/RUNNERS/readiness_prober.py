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
Readiness probes per service kind.
"""
import asyncio
import shlex
import struct
from enum import Enum

from ..errors import RuntimeCommunicationError
from ..MODELS.service_declaration import (
    KafkaDeclaration,
    PostgresDeclaration,
    RedisDeclaration,
    ServiceDeclaration,
)
from .runtime_client import RuntimeClient

KAFKA_API_VERSIONS = 18
KAFKA_CORRELATION_ID = 0x0D0C


class ProbeResult(str, Enum):
    """Outcome of a single readiness probe."""

    RESPONSIVE = "responsive"
    NOT_YET = "not_yet"


class ReadinessProber:
    """
    Checks once whether a service answers. Polling is left to the caller.
    """
    def __init__(self, runtime: RuntimeClient, host: str = "localhost", socket_timeout: float = 2.0):
        """
        :param runtime: Used to run probes inside containers.
        :param host: Host the published ports are reachable on.
        :param socket_timeout: Upper bound for a single TCP probe.
        """
        self.runtime = runtime
        self.host = host
        self.socket_timeout = socket_timeout

    async def probe(self, container_id: str, declaration: ServiceDeclaration) -> ProbeResult:
        """
        Runs the probe matching the declaration's kind.

        :return: RESPONSIVE if the service answered, NOT_YET otherwise.
        """
        if isinstance(declaration, PostgresDeclaration):
            return await self._probe_postgres(container_id, declaration)
        if isinstance(declaration, RedisDeclaration):
            return await self._probe_redis(declaration)
        if isinstance(declaration, KafkaDeclaration):
            return await self._probe_kafka(declaration)
        raise TypeError(f"No readiness probe for {type(declaration).__name__}")

    async def _probe_postgres(self, container_id: str, declaration: PostgresDeclaration) -> ProbeResult:
        command = (
            f"psql -h {shlex.quote(declaration.host)} -U {shlex.quote(declaration.username)} "
            f"-d {shlex.quote(declaration.db)} -c 'select 1'"
        )
        try:
            await self.runtime.run_command_in_container(
                container_id, command, env={"PGPASSWORD": declaration.password}
            )
        except RuntimeCommunicationError:
            return ProbeResult.NOT_YET
        return ProbeResult.RESPONSIVE

    async def _probe_redis(self, declaration: RedisDeclaration) -> ProbeResult:
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, declaration.port), self.socket_timeout
            )
        except (OSError, asyncio.TimeoutError):
            return ProbeResult.NOT_YET

        try:
            writer.write(b"PING\r\n")
            await writer.drain()
            reply = await asyncio.wait_for(reader.readline(), self.socket_timeout)
        except (OSError, asyncio.TimeoutError):
            return ProbeResult.NOT_YET
        finally:
            writer.close()

        return ProbeResult.RESPONSIVE if reply.startswith(b"+PONG") else ProbeResult.NOT_YET

    async def _probe_kafka(self, declaration: KafkaDeclaration) -> ProbeResult:
        """
        Sends an ApiVersions request; a published port alone does not mean the broker is up.
        """
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, declaration.port), self.socket_timeout
            )
        except (OSError, asyncio.TimeoutError):
            return ProbeResult.NOT_YET

        try:
            writer.write(kafka_api_versions_request(KAFKA_CORRELATION_ID))
            await writer.drain()
            header = await asyncio.wait_for(reader.readexactly(4), self.socket_timeout)
            (size,) = struct.unpack(">i", header)
            if size < 6:
                return ProbeResult.NOT_YET
            body = await asyncio.wait_for(reader.readexactly(6), self.socket_timeout)
        except (OSError, asyncio.TimeoutError, asyncio.IncompleteReadError):
            return ProbeResult.NOT_YET
        finally:
            writer.close()

        correlation_id, error_code = struct.unpack(">ih", body)
        if correlation_id == KAFKA_CORRELATION_ID and error_code == 0:
            return ProbeResult.RESPONSIVE
        return ProbeResult.NOT_YET


def kafka_api_versions_request(correlation_id: int, client_id: bytes = b"dockest") -> bytes:
    """
    Encodes a size-prefixed ApiVersions v0 request.
    """
    payload = struct.pack(">hhih", KAFKA_API_VERSIONS, 0, correlation_id, len(client_id)) + client_id
    return struct.pack(">i", len(payload)) + payload
