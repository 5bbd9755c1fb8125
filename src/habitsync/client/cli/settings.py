"""Backend settings commands for HabitSync CLI.

Commands:
- config show: Print the backend configuration
- config set: Change one backend setting
"""

from __future__ import annotations

import sys

import click

from habitsync.client.cli.config import (
    get_backend_config,
    get_config_file,
    load_config,
    parse_config_value,
    save_config,
)


@click.group("config")
def config_group() -> None:
    """Show or change backend settings."""


@config_group.command("show")
def show() -> None:
    """Print the backend configuration."""
    try:
        backend = get_backend_config()
    except ValueError as e:
        click.echo(f"Error: invalid config file {get_config_file()}: {e}", err=True)
        sys.exit(1)

    click.echo(f"Config file: {get_config_file()}")
    click.echo(f"Backend:     {backend.mode.value}")
    click.echo(f"API base:    {backend.api_base or '(not set)'}")
    click.echo(f"Table URL:   {backend.table_url or '(not set)'}")
    click.echo(f"Table key:   {'(set)' if backend.table_key else '(not set)'}")
    click.echo(f"Timeout:     {backend.timeout}s")
    click.echo(f"Verify SSL:  {'yes' if backend.verify_ssl else 'no'}")
    click.echo(f"Configured:  {'yes' if backend.is_configured else 'no'}")


@config_group.command("set")
@click.argument("key")
@click.argument("value")
def set_value(key: str, value: str) -> None:
    """Change one backend setting.

    Keys: backend (rest|table), api_base, table_url, table_key,
    timeout, verify_ssl.

    Examples:

        habitsync config set api_base https://sync.example.com

        habitsync config set backend table
    """
    try:
        parsed = parse_config_value(key, value)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    config = load_config()
    config[key] = parsed
    save_config(config)
    click.echo(f"Set {key}")
