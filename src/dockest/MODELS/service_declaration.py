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
Models for declaring the backing services a test run needs.
"""
from typing import ClassVar, List, Optional, Tuple
from pydantic import BaseModel, Field

DEFAULT_CONNECTION_TIMEOUT = 30.0
DEFAULT_RESPONSIVENESS_TIMEOUT = 30.0


class ServiceDeclaration(BaseModel):
    """
    One desired backing-service container.

    Required connection fields are optional here; the Validator reports
    which ones are missing.
    """
    kind: ClassVar[str] = ""
    REQUIRED_FIELDS: ClassVar[Tuple[str, ...]] = ("label",)

    label: Optional[str] = None  # used for `docker ps --filter label=...`
    commands: List[str] = []
    connection_timeout: float = DEFAULT_CONNECTION_TIMEOUT
    responsiveness_timeout: float = DEFAULT_RESPONSIVENESS_TIMEOUT

    # Runtime handle, written only by the owning ServiceRunner
    container_id: Optional[str] = Field(default=None, exclude=True)

    def missing_fields(self) -> List[str]:
        """
        Returns the required fields that are unset or empty, in declaration order.
        """
        missing = []
        for name in self.REQUIRED_FIELDS:
            value = getattr(self, name)
            if value is None or value == "":
                missing.append(name)
        return missing

    def describe(self) -> str:
        return f"{self.kind} <{self.label}>"


class PostgresDeclaration(ServiceDeclaration):
    """
    A Postgres database started from a compose service.
    """
    kind: ClassVar[str] = "postgres"
    REQUIRED_FIELDS: ClassVar[Tuple[str, ...]] = (
        "label", "service", "host", "db", "port", "password", "username",
    )

    service: Optional[str] = None
    host: Optional[str] = None
    db: Optional[str] = None
    port: Optional[int] = None
    password: Optional[str] = None
    username: Optional[str] = None
    image: Optional[str] = None


class RedisDeclaration(ServiceDeclaration):
    """
    A Redis cache.
    """
    kind: ClassVar[str] = "redis"
    REQUIRED_FIELDS: ClassVar[Tuple[str, ...]] = ("label", "port")

    port: Optional[int] = None
    service: Optional[str] = None
    image: Optional[str] = None


class KafkaDeclaration(ServiceDeclaration):
    """
    A Kafka broker with a single topic.
    """
    kind: ClassVar[str] = "kafka"
    REQUIRED_FIELDS: ClassVar[Tuple[str, ...]] = ("label", "topic", "port")

    topic: Optional[str] = None
    port: Optional[int] = None
    service: Optional[str] = None
    image: Optional[str] = None
