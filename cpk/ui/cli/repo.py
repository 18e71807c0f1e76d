"""
CLI command for publishing a repository from a ports tree.

Thin wrapper over ``cpk.core.services.repository``.
"""

from __future__ import annotations

import platform
from pathlib import Path

import click

from cpk.core.errors import CpkError
from cpk.core.services.repository import build_repository
from cpk.ui.cli.helpers import fail, say


@click.command()
@click.argument("ports_dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.argument("output_dir", type=click.Path(file_okay=False, path_type=Path))
@click.option("--arch", default=None, help="Architecture tag (default: this machine's).")
@click.pass_context
def index(ctx: click.Context, ports_dir: Path, output_dir: Path, arch: str | None) -> None:
    """Build .cpk archives and CPKINDEX from built ports."""
    arch = arch or platform.machine()
    say(ctx, f"Indexing {ports_dir} → {output_dir} ({arch})", "progress")

    try:
        report = build_repository(ports_dir, output_dir, arch)
    except (CpkError, OSError) as e:
        fail(ctx, f"Failed to build repository: {e}")

    for name in report.built:
        say(ctx, f"  {name}")
    if report.skipped:
        say(ctx, f"Skipped {len(report.skipped)} package(s) not matching their Pkgfile", "warn")
    say(ctx, f"Index written with {len(report.index_entries)} package(s)", "ok")
