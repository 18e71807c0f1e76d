"""
CLI commands for package management — search, info, install, uninstall,
upgrade, list, build.

Thin wrappers over ``cpk.core.services.install`` and the index store.
"""

from __future__ import annotations

import click

from cpk.core.errors import CpkError
from cpk.ui.cli.helpers import fail, make_installer, require_index, say


@click.command()
@click.argument("term")
@click.pass_context
def search(ctx: click.Context, term: str) -> None:
    """Search the index for a package name or fragment."""
    index = require_index(ctx)

    try:
        matches = list(index.search(term))
    except CpkError as e:
        fail(ctx, str(e))

    if not matches:
        fail(ctx, f"No packages found matching: {term}")
    for line in matches:
        say(ctx, line)


@click.command()
@click.argument("name")
@click.pass_context
def info(ctx: click.Context, name: str) -> None:
    """Show information about a package."""
    index = require_index(ctx)
    installer = make_installer(ctx, index)

    try:
        pkg = installer.info(name)
    except CpkError as e:
        fail(ctx, str(e))

    if pkg.package_file is None:
        say(ctx, f"No package file for {pkg.identity} in {pkg.staged_dir}", "warn")

    meta = pkg.metadata
    say(ctx, f"Name         | {pkg.identity.name}")
    say(ctx, f"Version      | {pkg.identity.version_tag}")
    say(ctx, f"Arch         | {pkg.identity.arch}")
    say(ctx, f"Description  | {meta.description}")
    say(ctx, f"URL          | {meta.url}")
    say(ctx, f"Dependencies | {', '.join(meta.dependencies)}")


@click.command()
@click.argument("name")
@click.option("--force", "-f", is_flag=True, help="Install even if already installed.")
@click.pass_context
def install(ctx: click.Context, name: str, force: bool) -> None:
    """Install a package (alias: add)."""
    index = require_index(ctx)
    installer = make_installer(ctx, index)

    try:
        result = installer.install(name, force=force)
    except CpkError as e:
        fail(ctx, str(e))

    if result.skipped:
        say(ctx, result.skipped, "warn")
        return

    if result.readme is not None:
        say(ctx, "Printing README", "progress")
        click.echo(result.readme, nl=not result.readme.endswith("\n"))

    if not result.ok:
        fail(ctx, "Failed to install package")
    say(ctx, "Package installed successfully", "ok")


@click.command()
@click.argument("name")
@click.pass_context
def uninstall(ctx: click.Context, name: str) -> None:
    """Uninstall a package (alias: del)."""
    installer = make_installer(ctx)
    try:
        installer.uninstall(name)
    except CpkError as e:
        fail(ctx, str(e))
    say(ctx, f"Package uninstalled: {name}", "ok")


@click.command()
@click.argument("names", nargs=-1)
@click.pass_context
def upgrade(ctx: click.Context, names: tuple[str, ...]) -> None:
    """Upgrade installed packages that have a newer index entry."""
    index = require_index(ctx)
    installer = make_installer(ctx, index)

    try:
        report = installer.upgrade(list(names) or None)
    except CpkError as e:
        fail(ctx, str(e))

    for name in report.upgraded:
        say(ctx, f"Upgraded {name}", "ok")
    if not report.upgraded and not report.failed:
        say(ctx, "All packages up to date", "ok")
    if report.failed:
        fail(ctx, f"Failed to upgrade: {', '.join(report.failed)}")


@click.command("list")
@click.pass_context
def list_packages(ctx: click.Context) -> None:
    """List installed packages."""
    installer = make_installer(ctx)
    try:
        installer.list_installed()
    except CpkError as e:
        fail(ctx, str(e))


@click.command()
@click.argument("name")
@click.pass_context
def build(ctx: click.Context, name: str) -> None:
    """Build a package from its port with pkgmk."""
    index = require_index(ctx)
    installer = make_installer(ctx, index)
    try:
        installer.build(name)
    except CpkError as e:
        fail(ctx, str(e))
    say(ctx, f"Package built: {name}", "ok")
