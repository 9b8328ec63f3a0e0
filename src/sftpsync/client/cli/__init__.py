"""Command-line interface for sftpsync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- run: Start the sync agent (or run a single cycle with --once)
- config: Inspect and edit the configuration file
- key: Manage the cached private key passphrase
- decompress: Restore a downloaded .gz artifact locally
"""

from __future__ import annotations

import click

from sftpsync.client.cli.config import config
from sftpsync.client.cli.key import key
from sftpsync.client.cli.run import decompress, run, setup_logging


@click.group()
@click.version_option(package_name="sftpsync")
def cli() -> None:
    """sftpsync - Incremental, compressed directory mirroring over SFTP."""


# Agent commands
cli.add_command(run)
cli.add_command(decompress)

# Configuration commands
cli.add_command(config)
cli.add_command(key)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "cli",
    "main",
    "setup_logging",
]
