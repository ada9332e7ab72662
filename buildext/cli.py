"""
Command-line interface for the build tasks.
"""

import json
from typing import Dict, Optional, Tuple

import click

from . import __version__
from .engine import Engine
from .errors import BuildTaskError, BuildExecutionError
from .loggingx import setup_logging
from .settings import load_settings


def parse_assignments(values: Tuple[str, ...]) -> Dict[str, str]:
    """Turn KEY=VALUE strings into a dictionary."""
    parsed = {}
    for item in values:
        if '=' not in item:
            raise click.BadParameter(f"Expected KEY=VALUE, got: {item}")
        key, value = item.split('=', 1)
        parsed[key.strip()] = value
    return parsed


@click.group()
@click.version_option(version=__version__)
@click.option('--config', 'config_file', type=click.Path(exists=True, dir_okay=False),
              help='YAML settings file')
@click.option('--log-level', default=None, help='Logging level (DEBUG, INFO, ...)')
@click.option('-v', '--verbose', is_flag=True, help='Human-readable console logs')
@click.option('--log-file', default=None, help='Also write logs to this file')
@click.pass_context
def cli(ctx: click.Context, config_file: Optional[str], log_level: Optional[str],
        verbose: bool, log_file: Optional[str]):
    """Build Extension Tasks - environment, service and SourceSafe automation."""
    try:
        settings = load_settings(config_file)
    except BuildTaskError as e:
        raise click.ClickException(str(e))

    setup_logging(level=log_level or settings.log_level, verbose=verbose, log_file=log_file)
    ctx.obj = Engine(settings)


@cli.command()
@click.argument('build_file', type=click.Path(exists=True, dir_okay=False))
@click.option('-p', '--property', 'properties', multiple=True, help='Build property KEY=VALUE')
@click.option('--dry-run', is_flag=True, help='Show what would be executed without running')
@click.pass_obj
def run(engine: Engine, build_file: str, properties: Tuple[str, ...], dry_run: bool):
    """Run the tasks of a YAML build file."""
    overrides = parse_assignments(properties)
    try:
        if dry_run:
            build_config = engine.load_build_file(build_file)
            click.echo(f"Would run build: {build_config.get('name', 'Unknown')}")
            for task_cfg in build_config['tasks']:
                click.echo(f"  {task_cfg.get('name', task_cfg['type'])} ({task_cfg['type']})")
            return

        summary = engine.run_build_file(build_file, overrides)
        click.echo(f"Build {summary['build_name']} completed: "
                   f"{summary['completed_tasks']}/{summary['total_tasks']} tasks")
    except BuildExecutionError as e:
        click.echo(f"Build failed: {e}", err=True)
        raise SystemExit(1)
    except BuildTaskError as e:
        raise click.ClickException(str(e))


@cli.command()
@click.argument('task_type')
@click.option('-p', '--param', 'params', multiple=True, help='Task parameter KEY=VALUE')
@click.pass_obj
def task(engine: Engine, task_type: str, params: Tuple[str, ...]):
    """Run a single task and print its output parameters as JSON."""
    if not engine.registry.has_task(task_type):
        raise click.ClickException(f"Unknown task type: {task_type}")

    try:
        result = engine.run_task(task_type, parse_assignments(params))
    except BuildTaskError as e:
        raise click.ClickException(str(e))

    metadata = result.pop('_metadata')
    click.echo(json.dumps(result, indent=2, default=str))

    if metadata['status'] != 'completed':
        for error in metadata['errors']:
            click.echo(f"Error: {error}", err=True)
        raise SystemExit(1)


@cli.command(name='list-tasks')
@click.pass_obj
def list_tasks(engine: Engine):
    """List all available tasks."""
    click.echo("Available tasks:")
    for task_type, task_info in sorted(engine.registry.list_tasks().items()):
        click.echo(f"  {task_type}: {task_info['description']}")
        click.echo(f"    actions: {', '.join(task_info['actions'])}")


def main():
    cli()


if __name__ == '__main__':
    main()
