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
Loading, merging and validation of the run configuration.
"""
import importlib
import os
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import dotenv_values
from pydantic import ValidationError

from ..errors import ConfigurationError
from ..MODELS.global_config import GlobalConfig
from ..UTILS.config_merge import merge_config
from ..UTILS.string_interpolation import EnvironmentInterpolator
from .validator import Validator

RC_FILE_NAME = ".dockestrc.yml"

DEFAULT_CONFIG: Dict[str, Any] = {
    "test_engine": {
        "projects": ["."],
    },
    "dockest": {
        "verbose": False,
    },
    "postgres": [],
    "redis": [],
    "kafka": [],
}


class ConfigStore:
    """
    Holds the normalized, validated configuration tree for a run.
    """
    def __init__(
        self,
        user_config: Optional[Mapping[str, Any]] = None,
        rc_path: Optional[str] = None,
        base_dir: str = ".",
    ):
        """
        :param user_config: Configuration mapping. When omitted the rc file is loaded.
        :param rc_path: Explicit rc file path, defaults to ./.dockestrc.yml.
        :param base_dir: Directory searched for the rc file and .env.
        """
        self.base_dir = base_dir

        if user_config is not None:
            raw = user_config
        else:
            raw = self.load_rc_file(rc_path or os.path.join(base_dir, RC_FILE_NAME))

        if not isinstance(raw, Mapping):
            raise ConfigurationError("Configuration step failed")

        merged = merge_config(DEFAULT_CONFIG, raw)
        self._resolve_test_engine(merged)

        try:
            config = GlobalConfig.model_validate(merged)
        except ValidationError as e:
            locations = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            raise ConfigurationError(f"Configuration step failed, invalid values at: [{locations}]") from e

        self.config = Validator().validate(config)

    def load_rc_file(self, rc_path: str) -> Any:
        """
        Reads the rc file, interpolating ${VAR} from the environment and .env.

        :param rc_path: Path to the rc file.
        :return: The parsed YAML document.
        """
        if not os.path.exists(rc_path):
            raise ConfigurationError(f'Could not find "{os.path.basename(rc_path)}"')

        with open(rc_path, 'r') as f:
            content = f.read()

        context = dict(os.environ)
        env_file = os.path.join(self.base_dir, ".env")
        if os.path.exists(env_file):
            # Process environment wins over .env
            context = {**dotenv_values(env_file), **context}

        content = EnvironmentInterpolator.interpolate(content, context)
        try:
            return yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Configuration step failed: {e}") from e

    @staticmethod
    def _resolve_test_engine(merged: Dict[str, Any]):
        engine = merged.get("test_engine")
        if not isinstance(engine, dict):
            return
        lib = engine.get("lib")
        if isinstance(lib, str):
            engine["lib"] = import_object(lib)

    def get_config(self) -> GlobalConfig:
        return self.config


def import_object(path: str) -> Any:
    """
    Imports `module` or `module:attribute`.

    :param path: Import path of the object.
    :return: The imported module or attribute.
    :raises ConfigurationError: If it cannot be imported.
    """
    module_name, _, attribute = path.partition(":")
    try:
        target = importlib.import_module(module_name)
        for part in filter(None, attribute.split(".")):
            target = getattr(target, part)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(f"Could not import test engine '{path}': {e}") from e
    return target
