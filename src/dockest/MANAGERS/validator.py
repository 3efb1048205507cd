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
Structural validation of a run's configuration.
"""
from typing import List, Optional

from ..errors import ConfigurationError
from ..MODELS.global_config import GlobalConfig, TestEngineConfig
from ..MODELS.service_declaration import ServiceDeclaration

KINDS = ("postgres", "redis", "kafka")


class Validator:
    """
    Checks every declaration against the required fields of its kind.
    """
    def validate(self, config: GlobalConfig) -> GlobalConfig:
        """
        Validates the configuration and normalizes missing per-kind lists to [].

        Validation stops at the first incomplete declaration; the error names
        all of that declaration's missing fields.

        :param config: The merged configuration.
        :return: The same configuration object.
        :raises ConfigurationError: If anything is missing.
        """
        has_engine = config.test_engine is not None and config.test_engine.lib is not None
        if not any(getattr(config, kind) for kind in KINDS) and not has_engine:
            raise ConfigurationError("Missing something to dockerize, nothing to provision")

        for kind in KINDS:
            self.validate_declarations(kind, getattr(config, kind) or [])

        self.validate_test_engine(config.test_engine)

        for kind in KINDS:
            if getattr(config, kind) is None:
                setattr(config, kind, [])

        return config

    def validate_declarations(self, kind: str, declarations: List[ServiceDeclaration]):
        for index, declaration in enumerate(declarations, start=1):
            missing = declaration.missing_fields()
            if missing:
                raise ConfigurationError(
                    f"Invalid {kind} configuration (#{index}), "
                    f"missing required fields: [{', '.join(missing)}]",
                    kind=kind,
                    index=index,
                    missing_fields=missing,
                )

    def validate_test_engine(self, test_engine: Optional[TestEngineConfig]):
        if test_engine is None or test_engine.lib is None:
            raise ConfigurationError(
                "Invalid test_engine configuration, missing required fields: [lib]",
                kind="test_engine",
                missing_fields=["lib"],
            )

        if not callable(getattr(test_engine.lib, "run_cli", None)):
            raise ConfigurationError(
                "Invalid test_engine configuration, test engine is missing a run_cli method"
            )
