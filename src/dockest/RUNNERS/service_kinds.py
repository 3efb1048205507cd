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
Per-kind capability bundles: required fields, image defaults and start commands.
"""
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Sequence, Tuple, Type

from ..errors import ConfigurationError
from ..MODELS.service_declaration import (
    KafkaDeclaration,
    PostgresDeclaration,
    RedisDeclaration,
    ServiceDeclaration,
)


def _no_environment(declaration: ServiceDeclaration) -> Dict[str, str]:
    return {}


def _postgres_environment(declaration: PostgresDeclaration) -> Dict[str, str]:
    return {
        "POSTGRES_USER": declaration.username,
        "POSTGRES_PASSWORD": declaration.password,
        "POSTGRES_DB": declaration.db,
    }


def _kafka_environment(declaration: KafkaDeclaration) -> Dict[str, str]:
    return {
        "ADVERTISED_HOST": "localhost",
        "ADVERTISED_PORT": str(declaration.port),
    }


@dataclass(frozen=True)
class ServiceKind:
    """
    Everything the generic runner needs to know about one kind of service.
    """
    name: str
    declaration_cls: Type[ServiceDeclaration]
    default_image: str
    container_port: int
    environment: Callable[..., Dict[str, str]] = field(default=_no_environment)

    @property
    def required_fields(self) -> Tuple[str, ...]:
        return self.declaration_cls.REQUIRED_FIELDS

    def start_command(
        self,
        declaration: ServiceDeclaration,
        compose_command: Sequence[str],
        compose_file: str,
    ) -> List[str]:
        """
        Builds the command that starts a labelled container for the declaration.

        Declarations naming a compose service are started through compose,
        everything else through `docker run`.
        """
        service = getattr(declaration, "service", None)
        if service:
            return [
                *compose_command, "-f", compose_file,
                "run", "--detach", "--no-deps",
                "--label", declaration.label,
                "--service-ports", service,
            ]

        command = [
            "docker", "run", "--detach",
            "--label", declaration.label,
            "--publish", f"{declaration.port}:{self.container_port}",
        ]
        for key, value in self.environment(declaration).items():
            command += ["--env", f"{key}={value}"]
        command.append(getattr(declaration, "image", None) or self.default_image)
        return command


KINDS: Dict[str, ServiceKind] = {
    "postgres": ServiceKind("postgres", PostgresDeclaration, "postgres:11-alpine", 5432, _postgres_environment),
    "redis": ServiceKind("redis", RedisDeclaration, "redis:5.0-alpine", 6379),
    "kafka": ServiceKind("kafka", KafkaDeclaration, "spotify/kafka", 9092, _kafka_environment),
}


def get_kind(name: str) -> ServiceKind:
    try:
        return KINDS[name]
    except KeyError:
        raise ConfigurationError(f"Unknown service kind '{name}'") from None


def kind_of(declaration: ServiceDeclaration) -> ServiceKind:
    return get_kind(declaration.kind)
