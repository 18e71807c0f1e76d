"""
Shared CLI helpers — config access, colored status lines, wiring.
"""

from __future__ import annotations

import sys
from typing import NoReturn

import click

from cpk.adapters.base import Adapter
from cpk.adapters.shell.command import ToolAdapter
from cpk.core.models.config import CpkConfig
from cpk.core.persistence.index_store import IndexStore
from cpk.core.services.install import Installer
from cpk.core.services.resolver import PackageResolver

_COLORS = {
    "progress": "blue",
    "ok": "green",
    "warn": "yellow",
    "error": "red",
}


def get_config(ctx: click.Context) -> CpkConfig:
    """The CpkConfig loaded by the root command."""
    return ctx.find_root().obj["config"]


def say(ctx: click.Context, message: str, level: str = "plain") -> None:
    """Print one status line, colored when color_mode is on."""
    obj = ctx.find_root().obj or {}
    config = obj.get("config")
    color = None if config is None or config.color_mode else False
    click.secho(message, fg=_COLORS.get(level), color=color)


def fail(ctx: click.Context, message: str) -> NoReturn:
    """Print a red diagnostic and exit 1."""
    say(ctx, message, "error")
    sys.exit(1)


def require_index(ctx: click.Context) -> IndexStore:
    """The local index, or exit with a hint to run ``cpk update``."""
    index = IndexStore(get_config(ctx).index_path)
    if not index.exists():
        fail(ctx, "Package index not found. Run `cpk update` first")
    return index


def _adapter(ctx: click.Context) -> Adapter:
    # Tests inject a MockAdapter through ctx.obj
    adapter = ctx.find_root().obj.get("adapter")
    if adapter is None:
        adapter = ToolAdapter(echo=lambda line: click.echo(line, nl=False))
    return adapter


def make_installer(ctx: click.Context, index: IndexStore | None = None) -> Installer:
    """Wire an Installer to this invocation's config and console."""
    config = get_config(ctx)
    resolver = PackageResolver(config, index=index)
    return Installer(
        config,
        adapter=_adapter(ctx),
        resolver=resolver,
        notify=lambda message, level: say(ctx, message, level),
    )
