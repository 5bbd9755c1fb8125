"""Command-line interface for HabitSync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- config show|set: Backend settings
- link / unlink: Choose or forget the sync code
- status: Show local document and sync settings
- sync: Run one sync exchange
- watch: Keep syncing until interrupted
- habit: Manage habits
- mood: Log mood and motivation
- serve: Run the reference sync server
"""

from __future__ import annotations

import click

from habitsync.client.cli.config import (
    get_config_dir,
    get_config_file,
    get_state_path,
    load_config,
    save_config,
)
from habitsync.client.cli.server import serve
from habitsync.client.cli.settings import config_group
from habitsync.client.cli.sync import link, status, sync, unlink, watch
from habitsync.client.cli.tracker import habit, mood


@click.group()
@click.version_option(package_name="habitsync")
def cli() -> None:
    """HabitSync - offline-first habit and mood tracker sync."""


# Settings
cli.add_command(config_group)

# Sync commands
cli.add_command(link)
cli.add_command(unlink)
cli.add_command(status)
cli.add_command(sync)
cli.add_command(watch)

# Tracker commands
cli.add_command(habit)
cli.add_command(mood)

# Server
cli.add_command(serve)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "cli",
    "main",
    "get_config_dir",
    "get_config_file",
    "get_state_path",
    "load_config",
    "save_config",
]
