"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest

from cpk.core.models.config import CpkConfig
from cpk.core.models.identity import PackageIdentity
from cpk.core.services import archive

PKGFILE_TEMPLATE = """\
# Description: Test package {name}
# URL: https://example.org/{name}
# Maintainer: Test Person
# Depends on: zlib, openssl

name={name}
version={version}
release={release}
source=(https://example.org/$name-$version.tar.gz $name.patch)

build() {{
    make
}}
"""


def pkgfile_text(name: str, version: str, release: str = "1") -> str:
    return PKGFILE_TEMPLATE.format(name=name, version=version, release=release)


@pytest.fixture
def repo_dir(tmp_path: Path) -> Path:
    """A directory served as the remote repository (via file:// URLs)."""
    path = tmp_path / "repo"
    path.mkdir()
    return path


@pytest.fixture
def cpk_config(tmp_path: Path, repo_dir: Path) -> CpkConfig:
    """Config pointing at a temp home and the file:// repository."""
    return CpkConfig(
        home_dir=tmp_path / "home",
        repo_url=repo_dir.as_uri(),
        pubkey_dir=tmp_path / "keys",
        color_mode=False,
    )


@pytest.fixture
def config_file(tmp_path: Path, cpk_config: CpkConfig) -> Path:
    """cpk.conf matching ``cpk_config``."""
    content = textwrap.dedent(f"""\
        home_dir: {cpk_config.home_dir}
        repo_url: {cpk_config.repo_url}
        color_mode: false
        pubkey_dir: {cpk_config.pubkey_dir}
    """)
    path = tmp_path / "cpk.conf"
    path.write_text(content)
    return path


@pytest.fixture
def make_cpk(repo_dir: Path) -> Callable[..., PackageIdentity]:
    """Publish a package archive into ``repo_dir``.

    Extra files are given as ``{relative name: content}``; a Pkgfile and
    a built tarball are always included.
    """

    def _make(
        name: str,
        version: str,
        release: str = "1",
        arch: str = "x86_64",
        files: dict[str, str] | None = None,
    ) -> PackageIdentity:
        identity = PackageIdentity(name=name, version=version, release=release, arch=arch)
        staged = identity.staged_path(repo_dir)
        staged.mkdir(parents=True)
        (staged / "Pkgfile").write_text(pkgfile_text(name, version, release))
        (staged / f"{name}#{identity.version_tag}.pkg.tar.gz").write_bytes(b"tarball")
        for rel, content in (files or {}).items():
            (staged / rel).write_text(content)
        archive.build(identity, repo_dir, repo_dir)
        return identity

    return _make


@pytest.fixture
def write_index(cpk_config: CpkConfig) -> Callable[..., Path]:
    """Write the local CPKINDEX from identities or raw lines."""

    def _write(*entries: PackageIdentity | str) -> Path:
        cpk_config.home_dir.mkdir(parents=True, exist_ok=True)
        lines = [str(e) for e in entries]
        cpk_config.index_path.write_text("".join(f"{line}\n" for line in lines))
        return cpk_config.index_path

    return _write
