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
Command line interface: validate a stack, render its compose manifest,
summarize its routes or scaffold a new one.
"""
import os
import sys

import click

from ..BUILDERS.generator import ComposeGenerator
from ..CONVERTERS.to_route_table import RouteTableConverter
from ..CONVERTERS.to_stack_file import InitOptions, StackFileConverter
from ..errors import HarborError
from ..MANAGERS.stack_merger import apply_runtime_overrides, merge_service_stack
from ..MODELS.manifest import GenerateOptions
from ..PARSERS.env_parser import EnvParser
from ..PARSERS.stack_parser import StackParser
from ..UTILS.filesystem import FileSystem
from ..UTILS.logger import get_logger, setup_logging
from ..VALIDATION.stack_validator import StackValidator

logger = get_logger(__name__)

DEFAULT_OUTPUT = os.path.join(".deploy", "compose.generated.yml")


def load_stack(path: str, filesystem: FileSystem):
    """
    Loads, completes and validates a stack file.
    """
    validator = StackValidator()
    stack = validator.apply_defaults(StackParser(filesystem).load(path))
    validator.validate(stack)
    return stack


def write_manifest(data: bytes, output: str, filesystem: FileSystem):
    if output == "-":
        click.echo(data.decode("utf-8"), nl=False)
        return
    filesystem.write_file(output, data)
    click.echo(f"Manifest written to {output}")


def fail(error: Exception):
    click.echo(f"Error: {error}", err=True)
    sys.exit(1)


@click.group()
@click.option('--file', '-f', default='stack.yml', help='Path to the stack file')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, file, verbose):
    """
    Harbor - generates a docker-compose manifest with Traefik routing from a
    declarative stack file.
    """
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj['file'] = file
    ctx.obj.setdefault('filesystem', FileSystem())


@cli.command()
@click.pass_context
def validate(ctx):
    """Validate the stack file."""
    try:
        stack = load_stack(ctx.obj['file'], ctx.obj['filesystem'])
    except HarborError as e:
        fail(e)
    click.echo(f"{ctx.obj['file']} is valid ({len(stack.services)} services).")


@cli.command()
@click.option('--output', '-o', default=DEFAULT_OUTPUT, help="Output path ('-' for stdout)")
@click.option('--no-log-viewer', is_flag=True, help='Do not generate the log viewer')
@click.option('--no-monitoring', is_flag=True, help='Do not generate the monitoring hub and agent')
@click.pass_context
def render(ctx, output, no_log_viewer, no_monitoring):
    """Render the compose manifest."""
    filesystem = ctx.obj['filesystem']
    options = GenerateOptions(disable_log_viewer=no_log_viewer, disable_monitoring=no_monitoring)
    try:
        stack = load_stack(ctx.obj['file'], filesystem)
        data = ComposeGenerator().generate(stack, options)
        write_manifest(data, output, filesystem)
    except HarborError as e:
        fail(e)
    except OSError as e:
        fail(f"cannot write {output}: {e.strerror or e}")


@cli.command(name='render-service')
@click.option('--base', required=True, help='Path to the base (server) stack file')
@click.option('--env-file', default=None, help='Runtime variables merged into every service')
@click.option('--replicas', type=click.IntRange(min=0), default=None, help='Replica count for every service')
@click.option('--output', '-o', default=DEFAULT_OUTPUT, help="Output path ('-' for stdout)")
@click.pass_context
def render_service(ctx, base, env_file, replicas, output):
    """Render a service stack on top of a base stack."""
    filesystem = ctx.obj['filesystem']
    parser = StackParser(filesystem)
    validator = StackValidator()
    try:
        base_stack = validator.apply_defaults(parser.load(base))
        stack = merge_service_stack(parser.load(ctx.obj['file']), base_stack)

        env = {}
        if env_file:
            if not filesystem.exists(env_file):
                fail(f"env file {env_file} not found")
            env = EnvParser.parse(env_file)
        stack = apply_runtime_overrides(stack, env=env, replicas=replicas)
        validator.validate(stack)

        # The base stack already runs the observability add-ons
        options = GenerateOptions(disable_log_viewer=True, disable_monitoring=True)
        data = ComposeGenerator().generate(stack, options)
        write_manifest(data, output, filesystem)
    except HarborError as e:
        fail(e)
    except OSError as e:
        fail(f"cannot write {output}: {e.strerror or e}")


@cli.command()
@click.option('--no-log-viewer', is_flag=True, help='Hide the log viewer route')
@click.option('--no-monitoring', is_flag=True, help='Hide the monitoring route')
@click.pass_context
def routes(ctx, no_log_viewer, no_monitoring):
    """List the URLs exposed through the edge proxy."""
    options = GenerateOptions(disable_log_viewer=no_log_viewer, disable_monitoring=no_monitoring)
    try:
        stack = load_stack(ctx.obj['file'], ctx.obj['filesystem'])
        click.echo(RouteTableConverter(stack, options).render())
    except HarborError as e:
        fail(e)


@cli.command()
@click.option('--domain', required=True, help='Base domain (localhost for local development)')
@click.option('--project', required=True, help='Project name')
@click.option('--email', default='', help='ACME contact email (required in production)')
@click.option('--environment', type=click.Choice(['local', 'production']), default=None,
              help='Environment; detected from the domain when omitted')
@click.option('--no-log-viewer', is_flag=True, help='Do not enable the log viewer')
@click.option('--no-monitoring', is_flag=True, help='Do not enable monitoring')
@click.option('--log-viewer-user', default='', help='Basic auth user for the log viewer')
@click.option('--log-viewer-password-hash', default='', help='htpasswd hash for that user')
@click.option('--force', is_flag=True, help='Overwrite an existing stack file')
@click.pass_context
def init(ctx, domain, project, email, environment, no_log_viewer, no_monitoring,
         log_viewer_user, log_viewer_password_hash, force):
    """Create a starter stack file."""
    options = InitOptions(
        domain=domain,
        project=project,
        email=email,
        environment=environment,
        log_viewer=not no_log_viewer,
        monitoring=not no_monitoring,
        log_viewer_username=log_viewer_user,
        log_viewer_password=log_viewer_password_hash,
    )
    path = ctx.obj['file']
    try:
        StackFileConverter(options).convert(path, ctx.obj['filesystem'], force=force)
    except FileExistsError:
        fail(f"{path} already exists (use --force to overwrite)")
    except HarborError as e:
        fail(e)
    click.echo(f"Created {path}. Add your services, then run: harbor render")


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})


if __name__ == '__main__':
    main()
