# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
CLI commands for managing ciaudit configuration.

Users can configure any AuditConfig key, for example:
- repository (owner/name of the audited repository)
- min_manifest_size, manifest_formats, required_formats
- ignore_prs (comma-separated PR numbers)
"""

import sys

import click
from rich.console import Console
from rich.table import Table

from ciaudit.config import CONFIG_FILE, ConfigError, coerce_config_value, config_keys, load_config_file, save_config_file

console = Console()


@click.group(name='config', invoke_without_command=True)
@click.pass_context
def config_group(ctx):
    """CLI configuration management.

    Show current configuration (default) or set config values.

    \b
    Subcommands:
        set <key> <value>    Set a config value
    """
    # If no subcommand, show config
    if ctx.invoked_subcommand is None:
        show_config()


def show_config():
    """Display current configuration."""
    try:
        config = load_config_file(CONFIG_FILE)
    except ConfigError as e:
        console.print(f'[red]Error: {e}[/red]')
        sys.exit(1)

    if not config:
        console.print('\n[yellow]No configuration set.[/yellow]')
        console.print('[dim]Use "ciaudit config set <key> <value>" to set values.[/dim]')
        console.print(f'\n[dim]Available keys: {", ".join(config_keys())}[/dim]')
        return

    console.print('\n[bold cyan]ciaudit Configuration[/bold cyan]\n')

    table = Table(show_header=True, header_style='bold magenta')
    table.add_column('Setting', style='cyan')
    table.add_column('Value', style='green')

    for key, value in sorted(config.items()):
        table.add_row(key, str(value))

    console.print(table)
    console.print(f'\n[dim]Config file: {CONFIG_FILE}[/dim]')


@config_group.command('set')
@click.argument('key', type=str)
@click.argument('value', type=str)
def config_set(key: str, value: str):
    """Set a configuration value.

    \b
    Examples:
        ciaudit config set repository web-platform-tests/wpt
        ciaudit config set min_manifest_size 2000000
        ciaudit config set ignore_prs 11678,12011
    """
    if key not in config_keys():
        console.print(f'[red]Unknown key {key!r}.[/red] Available keys: {", ".join(config_keys())}')
        sys.exit(1)

    try:
        coerce_config_value(key, value)
        config = load_config_file(CONFIG_FILE)
    except ConfigError as e:
        console.print(f'[red]Error: {e}[/red]')
        sys.exit(1)

    # Set the value
    old_value = config.get(key)
    config[key] = value
    save_config_file(config, CONFIG_FILE)

    if old_value is not None:
        console.print(f'[green]Updated {key}:[/green] {old_value} → {value}')
    else:
        console.print(f'[green]Set {key}:[/green] {value}')
