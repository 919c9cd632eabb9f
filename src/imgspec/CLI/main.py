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
Command Line Interface for imgspec.
"""
import os
import sys
from pathlib import Path
from typing import Dict, Tuple

import click

from ..BUILDERS.image_builder import ImageBuilder
from ..config import Settings
from ..CONVERTERS.to_dockerfile import DockerfileConverter
from ..errors import BuildError, ImgspecError
from ..MODELS.image_spec import ImageBuildSpec
from ..PARSERS.spec_loader import SpecLoader
from ..REGISTRY.image_store import ImageStore, format_size
from ..RUNNERS.container_runner import ContainerRunner


def _key_values(pairs: Tuple[str, ...], option: str) -> Dict[str, str]:
    values = {}
    for pair in pairs:
        key, sep, value = pair.partition('=')
        if not key:
            raise click.BadParameter(f"expected KEY=VALUE, got {pair!r}", param_hint=option)
        if not sep:
            # Bare KEY takes the value from the calling environment
            if key not in os.environ:
                continue
            value = os.environ[key]
        values[key] = value
    return values


@click.group()
@click.option('--home', envvar='IMGSPEC_HOME', default=None, help='Image store directory')
@click.pass_context
def cli(ctx, home):
    """
    imgspec - build image descriptors into native images and run them.

    Dockerfiles are built into a directory holding the copied sources and a
    Python virtual environment, and run as host processes.
    """
    ctx.ensure_object(dict)
    settings = Settings.load()
    if home:
        settings = settings.model_copy(update={"home": Path(home)})
    ctx.obj['settings'] = settings


def _store(ctx) -> ImageStore:
    return ImageStore(str(ctx.obj['settings'].home))


@cli.command()
@click.argument('context', default='.', type=click.Path(file_okay=False))
@click.option('--file', '-f', 'dockerfile', default=None, help='Dockerfile or YAML descriptor (default: CONTEXT/Dockerfile)')
@click.option('--tag', '-t', 'tags', multiple=True, help='Name and optionally a tag (name:tag)')
@click.option('--build-arg', 'build_args', multiple=True, help='Set a build-time variable (KEY=VALUE)')
@click.option('--no-cache', is_flag=True, help='Rebuild even if an identical image exists')
@click.option('--python', default=None, help='Interpreter the image runtime is created from')
@click.pass_context
def build(ctx, context, dockerfile, tags, build_args, no_cache, python):
    """Build an image from a Dockerfile."""
    settings = ctx.obj['settings']
    dockerfile = dockerfile or os.path.join(context, 'Dockerfile')
    name = tags[0] if tags else os.path.basename(os.path.abspath(context)).lower() or 'image'

    try:
        loader = SpecLoader()
        if dockerfile.endswith(('.yml', '.yaml')):
            spec = loader.from_yaml(dockerfile, name)
            for key in sorted(_key_values(build_args, '--build-arg')):
                click.echo(f"Warning: build argument {key} is ignored for YAML descriptors")
        else:
            if not os.path.isfile(dockerfile):
                raise click.ClickException(f"{dockerfile} not found.")
            spec = loader.from_dockerfile(dockerfile, name, _key_values(build_args, '--build-arg'))
        if tags:
            spec.name = tags[0]

        builder = ImageBuilder(_store(ctx), python=python or settings.python, with_pip=settings.with_pip)
        image = builder.build(spec, context, no_cache=no_cache, tags=list(tags[1:]))
    except BuildError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(e.exit_code)
    except (ImgspecError, OSError) as e:
        raise click.ClickException(str(e))

    click.echo(image.id)


@cli.command(context_settings={'ignore_unknown_options': True, 'allow_interspersed_args': False})
@click.argument('image')
@click.argument('command', nargs=-1, type=click.UNPROCESSED)
@click.option('--env', '-e', 'env', multiple=True, help='Set environment variables (KEY=VALUE)')
@click.option('--env-file', 'env_files', multiple=True, type=click.Path(exists=True, dir_okay=False), help='Read environment variables from a file')
@click.option('--timeout', type=float, default=None, help='Stop the container after this many seconds')
@click.pass_context
def run(ctx, image, command, env, env_files, timeout):
    """Run a container from an image; exits with the container's exit code."""
    try:
        built = _store(ctx).get(image)
    except ImgspecError as e:
        raise click.ClickException(str(e))

    runner = ContainerRunner()
    code = runner.run(
        built,
        command=list(command) or None,
        env=_key_values(env, '--env'),
        env_files=list(env_files),
        timeout=timeout,
    )
    sys.exit(code)


@cli.command()
@click.pass_context
def images(ctx):
    """List images"""
    store = _store(ctx)
    click.echo(f"{'REPOSITORY':30} {'TAG':12} {'IMAGE ID':14} {'CREATED':22} {'SIZE':>10}")
    for image in store.list():
        size = format_size(store.size(image))
        for tag in image.tags or ['<none>:<none>']:
            repo, _, version = tag.rpartition(':')
            click.echo(f"{repo:30} {version:12} {image.short_id:14} {image.created[:19]:22} {size:>10}")


@cli.command()
@click.argument('image')
@click.pass_context
def inspect(ctx, image):
    """Show the record of an image as JSON"""
    try:
        built = _store(ctx).get(image)
    except ImgspecError as e:
        raise click.ClickException(str(e))
    click.echo(built.model_dump_json(indent=2))


@cli.command()
@click.argument('images', nargs=-1, required=True)
@click.pass_context
def rmi(ctx, images):
    """Remove one or more images"""
    store = _store(ctx)
    failed = False
    for reference in images:
        try:
            removed = store.remove(reference)
        except ImgspecError as e:
            click.echo(f"Error: {e}", err=True)
            failed = True
            continue
        for tag in removed.tags:
            click.echo(f"Untagged: {tag}")
        click.echo(f"Deleted: {removed.id}")
    if failed:
        sys.exit(1)


@cli.command()
@click.argument('directory', default='.', type=click.Path(file_okay=False))
@click.option('--package', '-p', default='flask', help='Package the image installs')
@click.option('--script', '-s', default='main.py', help='Script the image starts')
@click.option('--force', is_flag=True, help='Overwrite an existing Dockerfile')
def init(directory, package, script, force):
    """Write the reference Dockerfile for a Python service."""
    path = os.path.join(directory, 'Dockerfile')
    if os.path.exists(path) and not force:
        raise click.ClickException(f"{path} already exists, use --force to overwrite.")
    spec = ImageBuildSpec.default(os.path.basename(os.path.abspath(directory)), package=package, script=script)
    DockerfileConverter().convert(spec, directory)
    if not os.path.exists(os.path.join(directory, script)):
        click.echo(f"Warning: {script} does not exist in {directory} yet.")


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})

if __name__ == '__main__':
    main()
