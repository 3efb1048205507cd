"""
Fakes for the container runtime and readiness prober.
"""
from typing import Dict, List, Optional

import pytest

from dockest.errors import RuntimeCommunicationError
from dockest.MANAGERS.teardown_manager import TeardownManager
from dockest.MANAGERS.teardown_record import TeardownRecord
from dockest.MODELS.service_declaration import (
    KafkaDeclaration,
    PostgresDeclaration,
    RedisDeclaration,
)
from dockest.RUNNERS.readiness_prober import ProbeResult
from dockest.UTILS.logger import Logger


class FakeRuntime:
    """
    In-memory runtime. `discoveries` queues the answers of find_container_by_label
    per label; once a queue is empty the container created for the label (if any) is returned.
    """

    def __init__(self, discoveries: Optional[Dict[str, List[Optional[str]]]] = None):
        self.discoveries = {k: list(v) for k, v in (discoveries or {}).items()}
        self.created: Dict[str, str] = {}
        self.calls: List[tuple] = []
        self.failing_commands: List[str] = []
        self.failing_stops: List[str] = []
        self.failing_starts: List[str] = []

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    def args_of(self, name: str) -> List[tuple]:
        return [call[1:] for call in self.calls if call[0] == name]

    async def find_container_by_label(self, label):
        self.calls.append(("find", label))
        queue = self.discoveries.get(label)
        if queue:
            return queue.pop(0)
        return self.created.get(label)

    async def start_service(self, declaration):
        self.calls.append(("start", declaration.label))
        if declaration.label in self.failing_starts:
            raise RuntimeCommunicationError(["docker", "run"], 1, "boom")
        self.created[declaration.label] = f"{declaration.label}-id"

    async def stop_container(self, container_id):
        self.calls.append(("stop", container_id))
        if container_id in self.failing_stops:
            raise RuntimeCommunicationError(["docker", "stop", container_id], 1, "no such container")

    async def remove_container(self, container_id, volumes=True):
        self.calls.append(("remove", container_id, volumes))
        for label, created_id in list(self.created.items()):
            if created_id == container_id:
                del self.created[label]

    async def run_command_in_container(self, container_id, command, env=None):
        self.calls.append(("exec", container_id, command))
        if command in self.failing_commands:
            raise RuntimeCommunicationError(["docker", "exec", container_id, command], 1, "failed")
        return ""

    async def compose_down(self, compose_file, timeout=15):
        self.calls.append(("compose_down", compose_file, timeout))


class FakeProber:
    """Answers from a script, then `default` forever."""

    def __init__(self, responses=None, default=ProbeResult.RESPONSIVE):
        self.responses = list(responses or [])
        self.default = default
        self.calls: List[str] = []

    async def probe(self, container_id, declaration):
        self.calls.append(container_id)
        if self.responses:
            return self.responses.pop(0)
        return self.default


class FakeEngine:
    """Test engine capability recording its invocations."""

    def __init__(self, result=0):
        self.result = result
        self.calls = []

    def run_cli(self, projects, silent=False, verbose=False):
        self.calls.append(list(projects))
        return self.result


@pytest.fixture
def runtime():
    return FakeRuntime()


@pytest.fixture
def prober():
    return FakeProber()


@pytest.fixture
def record():
    return TeardownRecord()


@pytest.fixture
def logger():
    return Logger(verbose=True)


@pytest.fixture
def teardown(runtime, logger):
    return TeardownManager(runtime, logger)


@pytest.fixture
def postgres_declaration():
    return PostgresDeclaration(
        label="dockest=postgres1",
        service="postgres1",
        host="localhost",
        db="test",
        port=5433,
        password="secret",
        username="dockest",
        commands=["migrate", "seed"],
        connection_timeout=1,
        responsiveness_timeout=1,
    )


@pytest.fixture
def redis_declaration():
    return RedisDeclaration(label="dockest=redis1", port=6380, connection_timeout=1, responsiveness_timeout=1)


@pytest.fixture
def kafka_declaration():
    return KafkaDeclaration(label="dockest=kafka1", topic="events", port=9093, connection_timeout=1, responsiveness_timeout=1)
