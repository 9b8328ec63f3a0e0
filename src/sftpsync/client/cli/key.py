"""Private key commands for the sftpsync CLI.

Commands:
- key check: Load the configured private key
- key set-passphrase: Cache the key passphrase in the OS keyring
- key forget-passphrase: Remove the cached passphrase
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from sftpsync.client.cli.config import config_file_option
from sftpsync.client.keystore import (
    KeyStoreError,
    delete_passphrase,
    load_credentials,
    load_private_key,
    set_passphrase,
)
from sftpsync.core.config import ConfigError, get_config_file, load_settings


def _configured_key_path(ctx: click.Context) -> Path:
    try:
        return load_settings(ctx.obj["config_file"]).private_key_path
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@click.group()
@config_file_option
@click.pass_context
def key(ctx: click.Context, config_path: Path | None) -> None:
    """Manage the SSH private key used for every target."""
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_path or get_config_file()


@key.command("check")
@click.pass_context
def key_check(ctx: click.Context) -> None:
    """Load the configured private key and print its fingerprint."""
    key_path = _configured_key_path(ctx)
    try:
        private_key = load_credentials(key_path)
    except KeyStoreError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"{key_path}: {private_key.get_name()} {private_key.fingerprint}")


@key.command("set-passphrase")
@click.pass_context
def key_set_passphrase(ctx: click.Context) -> None:
    """Store the private key passphrase in the OS keyring."""
    key_path = _configured_key_path(ctx)
    passphrase = click.prompt("Key passphrase", hide_input=True, confirmation_prompt=True)
    try:
        load_private_key(key_path, passphrase)
        set_passphrase(key_path, passphrase)
    except KeyStoreError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"Passphrase for {key_path} stored in keyring")


@key.command("forget-passphrase")
@click.pass_context
def key_forget_passphrase(ctx: click.Context) -> None:
    """Remove the cached passphrase from the OS keyring."""
    key_path = _configured_key_path(ctx)
    if delete_passphrase(key_path):
        click.echo(f"Passphrase for {key_path} removed")
    else:
        click.echo(f"No passphrase stored for {key_path}")
