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
Models for the merged configuration of a single run.
"""
from typing import Any, Callable, Iterator, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from .service_declaration import (
    KafkaDeclaration,
    PostgresDeclaration,
    RedisDeclaration,
    ServiceDeclaration,
)


class TestEngineConfig(BaseModel):
    """
    Reference to the engine that runs the test suites once every service is ready.
    `lib` must expose a callable `run_cli`.
    """
    __test__ = False  # keep pytest from collecting this class

    model_config = ConfigDict(arbitrary_types_allowed=True)

    lib: Any = None
    projects: List[str] = ["."]
    silent: bool = False
    verbose: bool = False


class OrchestratorOptions(BaseModel):
    """
    Options for the orchestrator itself, stored under the `dockest` key.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    verbose: bool = False
    exit_handler: Optional[Callable[[Optional[BaseException]], Any]] = None
    compose_file_path: str = "docker-compose.yml"
    compose_command: List[str] = ["docker-compose"]


class GlobalConfig(BaseModel):
    """
    Complete configuration for a run.
    Equivalent to a merged and validated .dockestrc.yml file.
    """
    test_engine: Optional[TestEngineConfig] = None
    dockest: OrchestratorOptions = Field(default_factory=OrchestratorOptions)
    postgres: Optional[List[PostgresDeclaration]] = None
    redis: Optional[List[RedisDeclaration]] = None
    kafka: Optional[List[KafkaDeclaration]] = None

    def declarations(self) -> Iterator[ServiceDeclaration]:
        """
        Yields every declared service, kind by kind, in declaration order.
        """
        for group in (self.postgres, self.redis, self.kafka):
            for declaration in group or []:
                yield declaration
