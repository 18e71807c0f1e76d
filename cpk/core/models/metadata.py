"""
Pkgfile metadata — what a port says about itself.

Parsed on demand from the ``Pkgfile`` of a port or staged package;
never persisted on its own.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class PkgMetadata(BaseModel):
    """Fields scanned out of a Pkgfile."""

    name: str = ""
    version: str = ""
    release: str = ""
    description: str = ""
    url: str = ""
    dependencies: list[str] = Field(default_factory=list)
    sources: list[str] = Field(default_factory=list)

    @property
    def version_tag(self) -> str:
        # pkgmk always names tarballs version-release, even with an empty release
        return f"{self.version}-{self.release}"

    @property
    def package_prefix(self) -> str:
        """``name#version-release``, the stem of the built tarball."""
        return f"{self.name}#{self.version_tag}"
