"""Configuration commands for the sftpsync CLI.

Commands:
- config path: Print the configuration file location
- config init: Create an empty configuration file
- config show: Print the effective configuration
- config add-folder: Add a folder to mirror
- config add-target: Add a remote target
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from sftpsync.core.config import (
    AgentSettings,
    ConfigError,
    FolderKind,
    SyncFolder,
    SyncTarget,
    ensure_config_file,
    get_config_file,
    load_settings,
    save_settings,
)


def _load_or_exit(config_file: Path) -> AgentSettings:
    try:
        return load_settings(config_file)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


# Shared by every command that reads or writes the configuration file
config_file_option = click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Configuration file (defaults to ~/.sftpsync/config.json).",
)


@click.group()
@config_file_option
@click.pass_context
def config(ctx: click.Context, config_path: Path | None) -> None:
    """Inspect and edit the agent configuration."""
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_path or get_config_file()


@config.command("path")
@click.pass_context
def config_path(ctx: click.Context) -> None:
    """Print the configuration file location."""
    click.echo(str(ctx.obj["config_file"]))


@config.command("init")
@click.pass_context
def config_init(ctx: click.Context) -> None:
    """Create an empty configuration file if none exists."""
    config_file = ctx.obj["config_file"]
    existed = config_file.exists()
    ensure_config_file(config_file)
    if existed:
        click.echo(f"Configuration already exists: {config_file}")
    else:
        click.echo(f"Created {config_file}")


@config.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Print the effective configuration as JSON."""
    settings = _load_or_exit(ctx.obj["config_file"])
    click.echo(json.dumps(settings.to_dict(), indent=2))


@config.command("add-folder")
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.argument("name")
@click.option(
    "--kind",
    type=click.Choice([k.value for k in FolderKind]),
    default=FolderKind.PROJECTS_ROOT.value,
    show_default=True,
    help="Traversal strategy.",
)
@click.pass_context
def config_add_folder(ctx: click.Context, path: Path, name: str, kind: str) -> None:
    """Mirror local folder PATH under remote name NAME."""
    config_file = ctx.obj["config_file"]
    settings = _load_or_exit(config_file)
    folder = SyncFolder(local_path=str(path.resolve()), remote_name=name, kind=FolderKind(kind))
    if any(f.local_path == folder.local_path for f in settings.folders):
        click.echo(f"Error: {folder.local_path} is already configured", err=True)
        sys.exit(1)
    settings.folders.append(folder)
    save_settings(settings, config_file)
    click.echo(f"Added folder {folder.local_path} as {name}")


@config.command("add-target")
@click.argument("host")
@click.argument("user")
@click.argument("folder")
@click.option("--port", type=click.IntRange(1, 65535), default=22, show_default=True)
@click.pass_context
def config_add_target(ctx: click.Context, host: str, user: str, folder: str, port: int) -> None:
    """Add remote target USER@HOST storing files under FOLDER."""
    config_file = ctx.obj["config_file"]
    settings = _load_or_exit(config_file)
    target = SyncTarget(host=host, user=user, remote_base_folder=folder, port=port)
    if target in settings.targets:
        click.echo(f"Error: {target.display_name} is already configured", err=True)
        sys.exit(1)
    settings.targets.append(target)
    save_settings(settings, config_file)
    click.echo(f"Added target {target.display_name}:{target.remote_base_folder}")
