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
Console reporting for provisioning progress.
"""
import click


class Logger:
    """
    Writes progress lines to the terminal, optionally prefixed with a service name.
    """
    def __init__(self, verbose: bool = False, prefix: str = ""):
        """
        :param verbose: Also print debug lines.
        :param prefix: Tag printed in front of every line, e.g. a service label.
        """
        self.verbose = verbose
        self.prefix = prefix

    def child(self, prefix: str) -> "Logger":
        return Logger(verbose=self.verbose, prefix=prefix)

    def _emit(self, message: str, err: bool = False, **style):
        if self.prefix:
            message = f"[{self.prefix}] {message}"
        click.secho(message, err=err, **style)

    def loading(self, message: str):
        self._emit(f"{message}...", fg="cyan")

    def success(self, message: str):
        self._emit(message, fg="green")

    def info(self, message: str):
        self._emit(message)

    def warn(self, message: str):
        self._emit(message, err=True, fg="yellow")

    def error(self, message: str):
        self._emit(message, err=True, fg="red", bold=True)

    def debug(self, message: str):
        if self.verbose:
            self._emit(message, dim=True)
