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
Command Line Interface for Dockest.
"""
import asyncio
import sys

import click

from ..errors import ConfigurationError, TeardownError
from ..MANAGERS.config_store import RC_FILE_NAME, ConfigStore
from ..MANAGERS.orchestrator import (
    EXIT_CONFIGURATION_ERROR,
    EXIT_INTERRUPTED,
    EXIT_TEARDOWN_FAILURE,
    Orchestrator,
)
from ..MANAGERS.teardown_manager import TeardownManager
from ..RUNNERS.runtime_client import DockerRuntimeClient
from ..UTILS.logger import Logger


@click.group()
@click.option('--config', '-c', default=RC_FILE_NAME, help='Dockest rc file path')
@click.option('--verbose', '-v', is_flag=True, help='Print debug output')
@click.pass_context
def cli(ctx, config, verbose):
    """
    Dockest - Docker services for integration tests.

    Starts the services a test suite depends on, runs the suite and cleans up.
    """
    ctx.ensure_object(dict)
    ctx.obj['rc_path'] = config
    ctx.obj['verbose'] = verbose


def _load(ctx) -> ConfigStore:
    try:
        store = ConfigStore(rc_path=ctx.obj['rc_path'])
    except ConfigurationError as e:
        click.secho(f"Error: {e}", err=True, fg="red")
        sys.exit(EXIT_CONFIGURATION_ERROR)
    if ctx.obj['verbose']:
        store.get_config().dockest.verbose = True
    return store


@cli.command()
@click.pass_context
def run(ctx):
    """Provision services, run the test suites and tear everything down."""
    store = _load(ctx)
    orchestrator = Orchestrator(store.get_config())
    try:
        exit_code = asyncio.run(orchestrator.run())
    except (KeyboardInterrupt, asyncio.CancelledError):
        click.echo("\nInterrupted, containers were released.")
        exit_code = EXIT_INTERRUPTED
    sys.exit(exit_code)


@cli.command()
@click.argument('container_ids', nargs=-1, required=True)
@click.pass_context
def teardown(ctx, container_ids):
    """Stop and remove the given containers and their volumes."""
    manager = TeardownManager(DockerRuntimeClient(), Logger(verbose=ctx.obj['verbose']))

    async def tear():
        for i, container_id in enumerate(container_ids, start=1):
            await manager.tear_single(container_id, progress=f"{i}/{len(container_ids)}")

    try:
        asyncio.run(tear())
    except TeardownError as e:
        click.secho(f"Error: {e}", err=True, fg="red")
        sys.exit(EXIT_TEARDOWN_FAILURE)


@cli.command()
@click.pass_context
def down(ctx):
    """Tear down the whole compose environment (deprecated)."""
    options = _load(ctx).get_config().dockest
    runtime = DockerRuntimeClient(options.compose_file_path, options.compose_command)
    manager = TeardownManager(runtime, Logger(verbose=options.verbose))
    try:
        asyncio.run(manager.compose_down(options.compose_file_path))
    except TeardownError as e:
        click.secho(f"Error: {e}", err=True, fg="red")
        sys.exit(EXIT_TEARDOWN_FAILURE)


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})


if __name__ == '__main__':
    main()
