"""
Tests for the repository builder — ports tree → .cpk archives + CPKINDEX.
"""

import tarfile
from pathlib import Path

import pytest

from cpk.core.models.identity import parse_identity
from cpk.core.services.archive import extract
from cpk.core.services.repository import (
    build_repository,
    expand_source,
    local_sources,
    package_prefix,
    read_port_vars,
)
from cpk.core.services.resolver import find_package_file
from tests.conftest import pkgfile_text


def _port(ports: Path, name: str, version: str, release: str = "1", *, tarball: str | None = None) -> Path:
    port_dir = ports / "opt" / name
    port_dir.mkdir(parents=True)
    (port_dir / "Pkgfile").write_text(pkgfile_text(name, version, release))
    (port_dir / ".footprint").write_text("-rw-r--r-- root/root usr/bin/x\n")
    (port_dir / ".signature").write_text("untrusted comment: test\n")
    (port_dir / "README").write_text(f"Read me, {name}\n")
    (port_dir / f"{name}.patch").write_text("--- a\n+++ b\n")
    (port_dir / "unrelated.txt").write_text("not staged\n")
    (port_dir / tarball if tarball else port_dir / f"{name}#{version}-{release}.pkg.tar.gz").write_bytes(b"pkg")
    return port_dir


@pytest.fixture
def ports(tmp_path: Path) -> Path:
    path = tmp_path / "ports"
    path.mkdir()
    return path


class TestHelpers:
    def test_package_prefix(self):
        assert package_prefix("foo#1.0-1.pkg.tar.xz") == "foo#1.0-1"

    def test_read_port_vars(self, tmp_path: Path):
        pkgfile = tmp_path / "Pkgfile"
        pkgfile.write_text(pkgfile_text("foo", "2.1", "4"))
        assert read_port_vars(pkgfile) == {"name": "foo", "version": "2.1", "release": "4"}

    def test_expand_source(self):
        port_vars = {"name": "foo", "version": "1.0"}
        assert expand_source("$name-${version}.conf", port_vars) == "foo-1.0.conf"
        assert expand_source("$unknown.txt", port_vars) == "$unknown.txt"

    def test_remote_sources_excluded(self):
        sources = [
            "https://example.org/foo.tar.gz",
            "http://example.org/foo.tar.gz",
            "ftp://example.org/foo.tar.gz",
            "fix.patch",
            "$name.conf",
        ]
        assert local_sources(sources, {"name": "foo"}) == ["fix.patch", "foo.conf"]


class TestBuildRepository:
    def test_builds_archive_and_index(self, ports: Path, tmp_path: Path):
        _port(ports, "foo", "1.0")
        out = tmp_path / "out"

        report = build_repository(ports, out, "x86_64")

        assert report.built == ["foo#1.0-1.x86_64.cpk"]
        assert (out / "CPKINDEX").read_text() == "foo#1.0-1.x86_64.cpk\n"
        assert not (out / "foo").exists()

    def test_staged_file_set(self, ports: Path, tmp_path: Path):
        _port(ports, "foo", "1.0")
        out = tmp_path / "out"
        build_repository(ports, out, "x86_64")

        with tarfile.open(out / "foo#1.0-1.x86_64.cpk") as tar:
            names = tar.getnames()
        assert names == [
            "foo/1.0-1/.footprint",
            "foo/1.0-1/.signature",
            "foo/1.0-1/Pkgfile",
            "foo/1.0-1/README",
            "foo/1.0-1/foo#1.0-1.pkg.tar.gz",
            "foo/1.0-1/foo.patch",
        ]

    def test_mismatched_tarball_skipped(self, ports: Path, tmp_path: Path):
        _port(ports, "foo", "1.0", tarball="foo#0.9-1.pkg.tar.gz")
        out = tmp_path / "out"

        report = build_repository(ports, out, "x86_64")

        assert report.built == []
        assert len(report.skipped) == 1
        assert (out / "CPKINDEX").read_text() == ""

    def test_tarball_without_pkgfile_skipped(self, ports: Path, tmp_path: Path):
        (ports / "stray").mkdir()
        (ports / "stray" / "x#1-1.pkg.tar.xz").write_bytes(b"pkg")
        report = build_repository(ports, tmp_path / "out", "x86_64")
        assert report.built == []

    def test_index_sorted_descending(self, ports: Path, tmp_path: Path):
        for name in ("alpha", "zeta", "mid"):
            _port(ports, name, "1.0")
        out = tmp_path / "out"

        build_repository(ports, out, "x86_64")

        assert (out / "CPKINDEX").read_text().splitlines() == [
            "zeta#1.0-1.x86_64.cpk",
            "mid#1.0-1.x86_64.cpk",
            "alpha#1.0-1.x86_64.cpk",
        ]

    def test_existing_archives_kept_in_index(self, ports: Path, tmp_path: Path):
        out = tmp_path / "out"
        out.mkdir()
        (out / "old#0.1-1.x86_64.cpk").write_bytes(b"")
        _port(ports, "foo", "1.0")

        report = build_repository(ports, out, "x86_64")

        assert report.index_entries == ["old#0.1-1.x86_64.cpk", "foo#1.0-1.x86_64.cpk"]

    def test_rebuild_is_byte_identical(self, ports: Path, tmp_path: Path):
        _port(ports, "foo", "1.0")
        _port(ports, "bar", "2.0", "3")
        out = tmp_path / "out"

        build_repository(ports, out, "x86_64")
        first = {p.name: p.read_bytes() for p in out.iterdir()}
        build_repository(ports, out, "x86_64")
        second = {p.name: p.read_bytes() for p in out.iterdir()}

        assert first == second
        assert set(first) == {"CPKINDEX", "foo#1.0-1.x86_64.cpk", "bar#2.0-3.x86_64.cpk"}

    def test_empty_release_keeps_dash(self, ports: Path, tmp_path: Path):
        _port(ports, "foo", "1.0", "")
        out = tmp_path / "out"

        report = build_repository(ports, out, "x86_64")

        assert report.built == ["foo#1.0-.x86_64.cpk"]
        dest = tmp_path / "dest"
        dest.mkdir()
        extract(out / "foo#1.0-.x86_64.cpk", dest)
        ident = parse_identity(report.index_entries[0])
        staged = ident.staged_path(dest)
        assert find_package_file(staged, ident.name, ident.version_tag) == staged / "foo#1.0-.pkg.tar.gz"

    def test_output_inside_ports_tree_keeps_ports(self, ports: Path):
        port_dir = ports / "foo"
        port_dir.mkdir()
        (port_dir / "Pkgfile").write_text(pkgfile_text("foo", "1.0"))
        (port_dir / "foo#1.0-1.pkg.tar.gz").write_bytes(b"pkg")

        report = build_repository(ports, ports, "x86_64")

        assert report.built == ["foo#1.0-1.x86_64.cpk"]
        assert (port_dir / "Pkgfile").is_file()
        assert (port_dir / "foo#1.0-1.pkg.tar.gz").is_file()
        assert not (port_dir / "1.0-1").exists()
        with tarfile.open(ports / "foo#1.0-1.x86_64.cpk") as tar:
            assert tar.getnames() == ["foo/1.0-1/Pkgfile", "foo/1.0-1/foo#1.0-1.pkg.tar.gz"]
