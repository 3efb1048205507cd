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
Test engine backed by pytest.

Reference it from the rc file as ``lib: dockest.RUNNERS.pytest_engine``.
"""
from typing import List, Sequence

import pytest


def build_args(projects: Sequence[str], silent: bool = False, verbose: bool = False) -> List[str]:
    args = list(projects)
    if silent:
        args.append("--quiet")
    if verbose:
        args.append("--verbose")
    return args


def run_cli(projects: Sequence[str], silent: bool = False, verbose: bool = False) -> int:
    """
    Runs pytest over the given paths.

    :return: pytest's exit code.
    """
    return int(pytest.main(build_args(projects, silent=silent, verbose=verbose)))
