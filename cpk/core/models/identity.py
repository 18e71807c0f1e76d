"""
Package identity — the ``name#version-release.arch.cpk`` naming scheme.

Every line of CPKINDEX and every archive filename is one identity.
Parsing is strict: a line missing any delimiter is rejected, never
guessed.

    foo#1.2.3-1.x86_64.cpk
    └┬┘ └──┬──┘ └─┬──┘
    name  tag    arch      (tag = version-release)
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel

from cpk.core.errors import MalformedIndexLine, NotFound

CPK_SUFFIX = ".cpk"


class PackageIdentity(BaseModel):
    """The tuple naming one package build."""

    model_config = {"frozen": True}

    name: str
    version: str
    release: str | None = None      # None: the tag has no "-"; "" keeps a bare "-"
    arch: str

    @property
    def version_tag(self) -> str:
        """``version-release``, the form used for lookups and staging paths."""
        if self.release is not None:
            return f"{self.version}-{self.release}"
        return self.version

    @property
    def filename(self) -> str:
        return format_identity(self)

    def staged_path(self, home: Path) -> Path:
        """Where this package's files live once fetched: ``home/name/tag``."""
        return home / self.name / self.version_tag

    def __str__(self) -> str:
        return self.filename


def split_version_release(version_tag: str) -> tuple[str, str | None]:
    """Split ``version-release`` on the last ``-``.

    A tag without ``-`` has no release (None); ``1.0-`` has an empty one.
    """
    version, sep, release = version_tag.rpartition("-")
    if not sep:
        return version_tag, None
    return version, release


def parse_identity(line: str, needle: str | None = None) -> PackageIdentity:
    """Parse one index line into a PackageIdentity.

    Args:
        line: A single CPKINDEX line (surrounding whitespace is ignored).
        needle: Optional search term (bare name or ``name#``). When given,
            a line that does not contain it raises NotFound.

    Raises:
        NotFound: ``needle`` is not in the line.
        MalformedIndexLine: a delimiter is missing or misplaced.
    """
    line = line.strip()
    if needle is not None and needle not in line:
        raise NotFound(f"Package not found: {needle.rstrip('#')}")

    cpk_pos = line.rfind(CPK_SUFFIX)
    if cpk_pos == -1 or cpk_pos + len(CPK_SUFFIX) != len(line):
        raise MalformedIndexLine(f"Invalid package format (no {CPK_SUFFIX} suffix): {line!r}")

    hash_pos = line.find("#")
    if hash_pos == -1:
        raise MalformedIndexLine(f"Invalid package format (no '#'): {line!r}")

    last_dot = line.rfind(".", 0, cpk_pos)
    if last_dot <= hash_pos:
        raise MalformedIndexLine(f"Invalid package format (no architecture): {line!r}")

    name = line[:hash_pos]
    version_tag = line[hash_pos + 1:last_dot]
    arch = line[last_dot + 1:cpk_pos]
    if not name or not version_tag or not arch:
        raise MalformedIndexLine(f"Invalid package format (empty field): {line!r}")

    version, release = split_version_release(version_tag)
    return PackageIdentity(name=name, version=version, release=release, arch=arch)


def format_identity(identity: PackageIdentity) -> str:
    """Inverse of parse_identity."""
    return f"{identity.name}#{identity.version_tag}.{identity.arch}{CPK_SUFFIX}"
