"""
Archive codec — Pkgfile metadata, ``.cpk`` creation and extraction.

A ``.cpk`` is a pax-restricted tar whose members sit under
``name/version-release/`` relative to the repository root. Built
tarballs (``.pkg.tar.gz|bz2|xz``) go through the same extractor with
compression auto-detected.
"""

from __future__ import annotations

import logging
import lzma
import re
import shutil
import tarfile
import tempfile
import zlib
from pathlib import Path

from cpk.core.errors import ArchiveError, ExtractionFailed, MetadataError
from cpk.core.models.identity import CPK_SUFFIX, PackageIdentity
from cpk.core.models.metadata import PkgMetadata

logger = logging.getLogger(__name__)

# Errors a tar stream can raise while decoding or writing
_EXTRACT_ERRORS = (tarfile.TarError, OSError, EOFError, zlib.error, lzma.LZMAError)

_WHITESPACE = " \t"


# ═══════════════════════════════════════════════════════════════════
#  Pkgfile
# ═══════════════════════════════════════════════════════════════════


def _unquote(value: str) -> str:
    value = value.strip(_WHITESPACE)
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value


def _source_entries(line: str) -> list[str]:
    """Entries of a single-line ``source=(...)``."""
    body = line[len("source=("):]
    end = body.rfind(")")
    if end != -1:
        body = body[:end]
    return [_unquote(entry) for entry in body.split()]


def parse_metadata(pkgfile_path: Path) -> PkgMetadata:
    """Scan a Pkgfile for the fields cpk cares about.

    This is a line scanner, not a shell: only fixed-prefix lines are
    read, the last occurrence of each wins and absent fields stay empty.

    Raises:
        MetadataError: the file cannot be read.
    """
    try:
        text = pkgfile_path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise MetadataError(f"Failed to parse Pkgfile {pkgfile_path}: {e}") from e

    fields: dict[str, object] = {}
    for raw in text.splitlines():
        line = raw.strip(_WHITESPACE)

        if line.startswith("name="):
            fields["name"] = _unquote(line[len("name="):])
        elif line.startswith("version="):
            fields["version"] = _unquote(line[len("version="):])
        elif line.startswith("release="):
            fields["release"] = _unquote(line[len("release="):])
        elif line.startswith("# Description:"):
            fields["description"] = line[len("# Description:"):].strip(_WHITESPACE)
        elif line.startswith("# URL:"):
            fields["url"] = line[len("# URL:"):].strip(_WHITESPACE)
        elif line.startswith("# Depends on:"):
            deps = line[len("# Depends on:"):]
            fields["dependencies"] = [d for d in re.split(r"[,\s]+", deps) if d]
        elif line.startswith("source=("):
            fields["sources"] = _source_entries(line)

    return PkgMetadata.model_validate(fields)


# ═══════════════════════════════════════════════════════════════════
#  Extraction
# ═══════════════════════════════════════════════════════════════════


def extract(archive_path: Path, dest_root: Path) -> list[str]:
    """Stream ``archive_path`` into ``dest_root``.

    Each member lands at ``dest_root/<member path>``. Modification
    times are kept; ownership is not. Members that would escape
    ``dest_root`` are refused. Entries already written before a
    failure are left in place.

    Returns:
        Member names in archive order.

    Raises:
        ExtractionFailed: destination missing, or any member fails to
            decode or write.
    """
    if not dest_root.is_dir():
        raise ExtractionFailed(f"Destination is not a directory: {dest_root}")

    # .cpk is always plain tar; built packages carry their own compression
    mode = "r|" if archive_path.name.endswith(CPK_SUFFIX) else "r|*"

    names: list[str] = []
    try:
        with tarfile.open(archive_path, mode) as tar:
            for member in tar:
                logger.info("Extracting: %s", member.name)
                tar.extract(member, path=dest_root, filter="data")
                names.append(member.name)
    except _EXTRACT_ERRORS as e:
        raise ExtractionFailed(f"Failed to extract {archive_path.name}: {e}") from e

    logger.debug("Extracted %d entries from %s", len(names), archive_path)
    return names


# ═══════════════════════════════════════════════════════════════════
#  Creation
# ═══════════════════════════════════════════════════════════════════


def _regular_files(root: Path) -> list[Path]:
    """Regular files under ``root``, sorted by path. Symlinks are skipped."""
    files = [p for p in root.rglob("*") if p.is_file() and not p.is_symlink()]
    return sorted(files, key=lambda p: p.relative_to(root).as_posix())


def _normalized_info(tar: tarfile.TarFile, path: Path, arcname: str) -> tarfile.TarInfo:
    info = tar.gettarinfo(str(path), arcname=arcname)
    info.mtime = int(info.mtime)
    info.uid = info.gid = 0
    info.uname = info.gname = "root"
    return info


def build(identity: PackageIdentity, staging_root: Path, output_dir: Path) -> Path:
    """Pack ``staging_root/<name>/<tag>`` into ``output_dir/<identity>.cpk``.

    Member paths are relative to ``staging_root``. Only regular files
    are stored, in sorted order with normalised owner and integer
    mtimes, so the same input always gives the same bytes. The staged
    ``<name>/<tag>`` subtree is removed once the archive is in place;
    ``<name>`` goes too if nothing else is left in it.

    Raises:
        ArchiveError: nothing to pack, or the archive cannot be written.
    """
    staged = identity.staged_path(staging_root)
    if not staged.is_dir():
        raise ArchiveError(f"Nothing staged for {identity.name} in {staging_root}")

    archive_path = output_dir / identity.filename
    files = _regular_files(staged)

    try:
        fd, tmp_path = tempfile.mkstemp(dir=output_dir, prefix=".", suffix=".cpk.tmp")
    except OSError as e:
        raise ArchiveError(f"Cannot create archive {archive_path}: {e}") from e

    tmp = Path(tmp_path)
    try:
        with open(fd, "wb") as f, tarfile.open(fileobj=f, mode="w", format=tarfile.PAX_FORMAT) as tar:
            for path in files:
                arcname = path.relative_to(staging_root).as_posix()
                info = _normalized_info(tar, path, arcname)
                with path.open("rb") as data:
                    tar.addfile(info, data)
        tmp.chmod(0o644)
        tmp.replace(archive_path)
    except (OSError, tarfile.TarError) as e:
        tmp.unlink(missing_ok=True)
        raise ArchiveError(f"Cannot write archive {archive_path}: {e}") from e

    shutil.rmtree(staged)
    package_root = staged.parent
    if not any(package_root.iterdir()):
        package_root.rmdir()

    logger.info("Built %s (%d files)", archive_path.name, len(files))
    return archive_path
