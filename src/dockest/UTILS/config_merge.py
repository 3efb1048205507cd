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
Merging of user configuration over documented defaults.
"""
from typing import Any, Dict, Mapping


def merge_config(defaults: Mapping[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Merges `overrides` over `defaults` field by field.

    Nested mappings are merged recursively, lists are replaced as a whole and
    any other value from `overrides` wins. Neither input is modified.

    :param defaults: The default configuration.
    :param overrides: User supplied values.
    :return: A new merged dictionary.
    """
    merged: Dict[str, Any] = {}
    for key, value in defaults.items():
        merged[key] = _copy(value)

    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = merge_config(current, value)
        else:
            merged[key] = _copy(value)

    return merged


def _copy(value: Any) -> Any:
    """
    Copies containers so the merged result never aliases an input.
    Leaf objects (e.g. a test engine module) are shared.
    """
    if isinstance(value, Mapping):
        return {k: _copy(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_copy(v) for v in value]
    return value
