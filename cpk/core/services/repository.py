"""
Repository builder — turn a ports tree into ``.cpk`` archives + CPKINDEX.

For every built tarball found in the ports tree whose name agrees with
its Pkgfile, the port's files are staged under ``output/name/tag/``,
packed into ``output/name#tag.arch.cpk`` and the index is regenerated
from every archive in the output directory.

Running twice over an unchanged tree gives byte-identical archives
and the same index.
"""

from __future__ import annotations

import logging
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from cpk.core.models.config import INDEX_FILE
from cpk.core.models.identity import CPK_SUFFIX, PackageIdentity
from cpk.core.persistence.index_store import IndexStore
from cpk.core.services import archive

logger = logging.getLogger(__name__)

TARBALL_RE = re.compile(r"\.pkg\.tar\.(gz|bz2|xz)$")
REMOTE_SOURCE_RE = re.compile(r"^(https?|ftp)://")

# Port files that travel with every archive when present
STAGED_FILES = ("Pkgfile", ".footprint", ".signature", "pre-install", "post-install", "README")

_PORT_VARS = ("name", "version", "release")
_VAR_RE = re.compile(r"\$\{(\w+)\}|\$(\w+)")


@dataclass
class BuildReport:
    """What one repository build did."""

    built: list[str] = field(default_factory=list)      # archive filenames
    skipped: list[str] = field(default_factory=list)    # tarball paths
    index_entries: list[str] = field(default_factory=list)


def read_port_vars(pkgfile: Path) -> dict[str, str]:
    """Plain ``key=value`` scan of a Pkgfile for name, version and release."""
    values: dict[str, str] = {}
    for line in pkgfile.read_text(encoding="utf-8", errors="replace").splitlines():
        key, sep, value = line.partition("=")
        if sep and key in _PORT_VARS:
            values[key] = value.strip().strip("\"'")
    return values


def package_prefix(tarball_name: str) -> str:
    """``foo#1.0-1.pkg.tar.gz`` → ``foo#1.0-1``."""
    return tarball_name[: tarball_name.rfind(".pkg.")]


def expand_source(entry: str, port_vars: dict[str, str]) -> str:
    """Substitute ``$name``/``${version}``-style references in a source entry."""
    def _sub(match: re.Match[str]) -> str:
        var = match.group(1) or match.group(2)
        return port_vars.get(var, match.group(0))

    return _VAR_RE.sub(_sub, entry)


def local_sources(sources: list[str], port_vars: dict[str, str]) -> list[str]:
    """File names of the non-URL entries of ``source=(...)``."""
    names = []
    for entry in sources:
        if REMOTE_SOURCE_RE.match(entry):
            continue
        expanded = expand_source(entry, port_vars)
        names.append(Path(expanded).name)
    return names


def staged_file_set(port_dir: Path, port_vars: dict[str, str]) -> list[Path]:
    """Files from ``port_dir`` to ship in the archive: fixed set plus local sources."""
    metadata = archive.parse_metadata(port_dir / "Pkgfile")
    wanted = list(STAGED_FILES)
    for name in local_sources(metadata.sources, port_vars):
        if name not in wanted:
            wanted.append(name)

    files = []
    for name in wanted:
        path = port_dir / name
        if path.is_file():
            files.append(path)
        elif name not in STAGED_FILES:
            logger.warning("Local source %s missing in %s", name, port_dir)
    return files


def find_tarballs(ports_dir: Path) -> list[Path]:
    """Every built package tarball under ``ports_dir``, sorted."""
    return sorted(
        p for p in ports_dir.rglob("*.pkg.tar.*")
        if p.is_file() and TARBALL_RE.search(p.name)
    )


def _stage_port(tarball: Path, output_dir: Path, arch: str) -> PackageIdentity | None:
    """Stage one port into ``output_dir/name/tag``; None when it is skipped."""
    port_dir = tarball.parent
    pkgfile = port_dir / "Pkgfile"
    if not pkgfile.is_file():
        logger.info("Skipping %s: no Pkgfile", tarball)
        return None

    port_vars = read_port_vars(pkgfile)
    name = port_vars.get("name", "")
    version = port_vars.get("version", "")
    release = port_vars.get("release", "")

    expected = f"{name}#{version}-{release}"
    prefix = package_prefix(tarball.name)
    if not name or prefix != expected:
        logger.info("Skipping %s: Pkgfile declares %s", tarball.name, expected)
        return None

    identity = PackageIdentity(name=name, version=version, release=release, arch=arch)
    stage_dir = identity.staged_path(output_dir)
    if stage_dir.exists():
        shutil.rmtree(stage_dir)
    stage_dir.mkdir(parents=True)

    for path in [*staged_file_set(port_dir, port_vars), tarball]:
        shutil.copy2(path, stage_dir / path.name)

    return identity


def regenerate_index(output_dir: Path) -> list[str]:
    """Rewrite ``output_dir/CPKINDEX`` from the archives in ``output_dir``.

    Entries are sorted descending.
    """
    entries = sorted(
        (p.name for p in output_dir.iterdir() if p.is_file() and p.name.endswith(CPK_SUFFIX)),
        reverse=True,
    )
    IndexStore(output_dir / INDEX_FILE).regenerate(entries)
    logger.info("Index regenerated with %d entries", len(entries))
    return entries


def build_repository(ports_dir: Path, output_dir: Path, arch: str) -> BuildReport:
    """Build archives for every self-consistent port and regenerate the index.

    Args:
        ports_dir: Root of the ports tree (searched recursively).
        output_dir: Repository directory receiving archives and CPKINDEX.
        arch: Architecture tag written into every identity.

    Returns:
        BuildReport listing built archives, skipped tarballs and the
        final index entries.
    """
    report = BuildReport()
    output_dir.mkdir(parents=True, exist_ok=True)

    for tarball in find_tarballs(ports_dir):
        identity = _stage_port(tarball, output_dir, arch)
        if identity is None:
            report.skipped.append(str(tarball))
            continue
        archive_path = archive.build(identity, output_dir, output_dir)
        report.built.append(archive_path.name)

    report.index_entries = regenerate_index(output_dir)
    return report
