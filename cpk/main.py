"""
cpk — CRUX Package Keeper, CLI entrypoint.

Usage:
    cpk --help
    cpk update
    cpk install <package>
    python -m cpk.main search <term>
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path

import click

from cpk import __version__
from cpk.core.config.loader import default_config_path, load_config
from cpk.core.errors import ConfigError, CpkError, DownloadFailed
from cpk.core.models.config import INDEX_FILE, CpkConfig
from cpk.core.observability.logging_config import (
    FILE_ENV_VAR,
    FILE_LEVEL_ENV_VAR,
    LEVEL_ENV_VAR,
    resolve_level,
    setup_logging,
)
from cpk.core.persistence.index_store import IndexStore
from cpk.core.services.fetch import download_file
from cpk.ui.cli.helpers import fail, get_config, say
from cpk.ui.cli.packages import build, info, install, list_packages, search, uninstall, upgrade
from cpk.ui.cli.repo import index

_CONFIG_OPTIONAL = ("index",)


@click.group()
@click.version_option(version=__version__, prog_name="cpk")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config-file",
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to cpk.conf (default: $CPK_CONFIG or /etc/cpk.conf).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: Path | None,
) -> None:
    """cpk — CRUX Package Keeper."""
    ctx.ensure_object(dict)

    setup_logging(
        level=resolve_level(
            debug=debug,
            verbose=verbose,
            quiet=quiet,
            env_level=os.environ.get(LEVEL_ENV_VAR),
        ),
        log_file=os.environ.get(FILE_ENV_VAR),
        log_file_level=os.environ.get(FILE_LEVEL_ENV_VAR),
    )

    path = config_path or default_config_path()
    if config_path is None and not path.is_file() and ctx.invoked_subcommand in _CONFIG_OPTIONAL:
        # Publishing a repository does not need a client configuration
        ctx.obj["config"] = CpkConfig()
        return

    try:
        ctx.obj["config"] = load_config(path)
    except ConfigError as e:
        fail(ctx, f"Failed to load configuration file: {path} ({e})")


@cli.command()
@click.pass_context
def update(ctx: click.Context) -> None:
    """Update the package index from the repository."""
    config = get_config(ctx)
    index_store = IndexStore(config.index_path)

    say(ctx, "Updating index for packages...", "progress")
    say(ctx, f"Fetching: {config.index_url}")

    try:
        download_file(config.index_url, config.index_path, timeout=config.fetch_timeout)
    except DownloadFailed as e:
        fail(ctx, f"Failed to update index file: {config.index_path} ({e})")

    try:
        available = index_store.count()
    except CpkError as e:
        fail(ctx, f"Failed to read index file: {e}")

    say(ctx, f"Update successful ({available} packages available)", "ok")


@cli.command()
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
def clean(ctx: click.Context, yes: bool) -> None:
    """Delete cached packages (the index is kept)."""
    home = get_config(ctx).home_dir

    if not home.is_dir():
        fail(ctx, f"Path does not exist or is not a directory: {home}")

    if not yes and not click.confirm(f"Delete cache contents of {home}?", default=False):
        return

    for entry in home.iterdir():
        if entry.name == INDEX_FILE:
            continue
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()

    say(ctx, "Cache contents deleted successfully", "ok")


cli.add_command(search)
cli.add_command(info)
cli.add_command(install)
cli.add_command(install, name="add")
cli.add_command(uninstall)
cli.add_command(uninstall, name="del")
cli.add_command(upgrade)
cli.add_command(list_packages)
cli.add_command(build)
cli.add_command(index)


if __name__ == "__main__":
    cli()
