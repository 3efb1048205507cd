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
Utilities for interpolating environment variables into rc file contents.
"""
import re
from typing import Mapping, Optional

from ..errors import ConfigurationError

# ${VAR}, ${VAR:-default} or ${VAR:+value}
_PATTERN = re.compile(r'\$\{([^}:]+)(?::(-|\+)([^}]*))?\}')


class EnvironmentInterpolator:
    """
    Interpolates ${VAR} placeholders, compose style.
    """
    @staticmethod
    def interpolate(template: str, context: Mapping[str, Optional[str]]) -> str:
        """
        Interpolates environment variables in the template string using the provided context.

        :param template: The string containing ${VAR} placeholders.
        :param context: The environment variables context.
        :return: The interpolated string.
        :raises ConfigurationError: If a bare ${VAR} is not set.
        """
        def replace(match):
            var_name = match.group(1)
            modifier = match.group(2)
            alt_value = match.group(3)

            value = context.get(var_name)

            if modifier == '-':
                return value if value else alt_value
            if modifier == '+':
                return alt_value if value else ''
            if value is None:
                raise ConfigurationError(f"Variable {var_name} is not set")
            return value

        return _PATTERN.sub(replace, template)
