"""
Unit tests for the readiness probes.
"""
import asyncio
import socket
import struct

import pytest

from dockest.RUNNERS.readiness_prober import (
    KAFKA_API_VERSIONS,
    KAFKA_CORRELATION_ID,
    ProbeResult,
    ReadinessProber,
    kafka_api_versions_request,
)


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


async def serve(reply: bytes):
    async def handle(reader, writer):
        await reader.readline()
        writer.write(reply)
        await writer.drain()
        writer.close()

    return await asyncio.start_server(handle, "127.0.0.1", 0)


class TestReadinessProber:
    """Tests for ReadinessProber."""

    @pytest.mark.asyncio
    async def test_postgres_runs_query_in_container(self, runtime, postgres_declaration):
        prober = ReadinessProber(runtime)

        result = await prober.probe("abc", postgres_declaration)

        assert result is ProbeResult.RESPONSIVE
        (container_id, command), = runtime.args_of("exec")
        assert container_id == "abc"
        assert "psql -h localhost -U dockest -d test" in command

    @pytest.mark.asyncio
    async def test_postgres_not_yet(self, runtime, postgres_declaration):
        prober = ReadinessProber(runtime)
        runtime.failing_commands = ["psql -h localhost -U dockest -d test -c 'select 1'"]

        assert await prober.probe("abc", postgres_declaration) is ProbeResult.NOT_YET

    @pytest.mark.asyncio
    async def test_redis_pong(self, runtime, redis_declaration):
        server = await serve(b"+PONG\r\n")
        redis_declaration.port = server.sockets[0].getsockname()[1]
        prober = ReadinessProber(runtime, host="127.0.0.1")
        try:
            assert await prober.probe("abc", redis_declaration) is ProbeResult.RESPONSIVE
        finally:
            server.close()
            await server.wait_closed()

    @pytest.mark.asyncio
    async def test_redis_loading(self, runtime, redis_declaration):
        server = await serve(b"-LOADING Redis is loading the dataset in memory\r\n")
        redis_declaration.port = server.sockets[0].getsockname()[1]
        prober = ReadinessProber(runtime, host="127.0.0.1")
        try:
            assert await prober.probe("abc", redis_declaration) is ProbeResult.NOT_YET
        finally:
            server.close()
            await server.wait_closed()

    @pytest.mark.asyncio
    async def test_kafka_api_versions(self, runtime, kafka_declaration):
        requests = []

        async def handle(reader, writer):
            (size,) = struct.unpack(">i", await reader.readexactly(4))
            request = await reader.readexactly(size)
            requests.append(request)
            (correlation_id,) = struct.unpack(">i", request[4:8])
            body = struct.pack(">ihi", correlation_id, 0, 0)
            writer.write(struct.pack(">i", len(body)) + body)
            await writer.drain()
            writer.close()

        server = await asyncio.start_server(handle, "127.0.0.1", 0)
        kafka_declaration.port = server.sockets[0].getsockname()[1]
        prober = ReadinessProber(runtime, host="127.0.0.1")
        try:
            assert await prober.probe("abc", kafka_declaration) is ProbeResult.RESPONSIVE
        finally:
            server.close()
            await server.wait_closed()

        assert requests[0] == kafka_api_versions_request(KAFKA_CORRELATION_ID)[4:]
        assert struct.unpack(">h", requests[0][:2]) == (KAFKA_API_VERSIONS,)

    @pytest.mark.asyncio
    async def test_kafka_port_open_but_broker_down(self, runtime, kafka_declaration):
        # a port proxy accepts the connection and drops it while the broker starts
        async def handle(reader, writer):
            writer.close()

        server = await asyncio.start_server(handle, "127.0.0.1", 0)
        kafka_declaration.port = server.sockets[0].getsockname()[1]
        prober = ReadinessProber(runtime, host="127.0.0.1")
        try:
            assert await prober.probe("abc", kafka_declaration) is ProbeResult.NOT_YET
        finally:
            server.close()
            await server.wait_closed()

    @pytest.mark.asyncio
    async def test_postgres_values_are_quoted(self, runtime, postgres_declaration):
        postgres_declaration.db = "test; rm -rf /"
        prober = ReadinessProber(runtime)

        await prober.probe("abc", postgres_declaration)

        (_, command), = runtime.args_of("exec")
        assert "-d 'test; rm -rf /'" in command

    @pytest.mark.asyncio
    async def test_closed_port(self, runtime, kafka_declaration, redis_declaration):
        prober = ReadinessProber(runtime, host="127.0.0.1", socket_timeout=0.5)
        kafka_declaration.port = free_port()
        redis_declaration.port = free_port()

        assert await prober.probe("abc", kafka_declaration) is ProbeResult.NOT_YET
        assert await prober.probe("abc", redis_declaration) is ProbeResult.NOT_YET
