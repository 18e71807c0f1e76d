"""
Tests for the resolver — name → identity → staged directory.
"""

import io
import tarfile
from pathlib import Path

import pytest

from cpk.core.errors import DownloadFailed, ExtractionFailed, NotFound
from cpk.core.models.identity import PackageIdentity
from cpk.core.services.fetch import download_file
from cpk.core.services.resolver import PackageResolver, find_package_file


class CountingDownloader:
    def __init__(self):
        self.urls: list[str] = []

    def __call__(self, url, dest, timeout=None):
        self.urls.append(url)
        return download_file(url, dest, timeout=timeout)


def _leftover_scratch(home: Path) -> list[Path]:
    return [p for p in home.iterdir() if p.name.startswith(".extract-")]


class TestFindPackageFile:
    def test_none_when_absent(self, tmp_path: Path):
        assert find_package_file(tmp_path, "foo", "1.0-1") is None

    def test_single_match(self, tmp_path: Path):
        (tmp_path / "foo#1.0-1.pkg.tar.bz2").write_bytes(b"")
        assert find_package_file(tmp_path, "foo", "1.0-1").name == "foo#1.0-1.pkg.tar.bz2"

    def test_last_mode_wins(self, tmp_path: Path):
        (tmp_path / "foo#1.0-1.pkg.tar.gz").write_bytes(b"")
        (tmp_path / "foo#1.0-1.pkg.tar.xz").write_bytes(b"")
        assert find_package_file(tmp_path, "foo", "1.0-1").name == "foo#1.0-1.pkg.tar.xz"

    def test_other_version_ignored(self, tmp_path: Path):
        (tmp_path / "foo#0.9-1.pkg.tar.gz").write_bytes(b"")
        assert find_package_file(tmp_path, "foo", "1.0-1") is None


class TestMaterialize:
    def test_fetch_and_stage(self, cpk_config, make_cpk, write_index):
        ident = make_cpk("foo", "1.0", files={"README": "hello\n"})
        write_index(ident)

        identity, staged = PackageResolver(cpk_config).resolve_and_materialize("foo")

        assert identity == ident
        assert staged == cpk_config.home_dir / "foo" / "1.0-1"
        assert (staged / "README").read_text() == "hello\n"
        assert (staged / "foo#1.0-1.pkg.tar.gz").is_file()
        assert (cpk_config.home_dir / "foo#1.0-1.x86_64.cpk").is_file()
        assert _leftover_scratch(cpk_config.home_dir) == []

    def test_second_call_does_not_download(self, cpk_config, make_cpk, write_index):
        write_index(make_cpk("foo", "1.0"))
        downloader = CountingDownloader()
        resolver = PackageResolver(cpk_config, downloader=downloader)

        resolver.resolve_and_materialize("foo")
        resolver.resolve_and_materialize("foo")

        assert len(downloader.urls) == 1
        assert downloader.urls[0].endswith("/foo%231.0-1.x86_64.cpk")

    def test_is_staged(self, cpk_config, make_cpk, write_index):
        ident = make_cpk("foo", "1.0")
        write_index(ident)
        resolver = PackageResolver(cpk_config)
        assert not resolver.is_staged(ident)
        resolver.materialize(ident)
        assert resolver.is_staged(ident)

    def test_unknown_name(self, cpk_config, write_index):
        write_index("bar#1.0-1.x86_64.cpk")
        with pytest.raises(NotFound):
            PackageResolver(cpk_config).resolve_and_materialize("foo")

    def test_download_failure(self, cpk_config, write_index):
        write_index("foo#1.0-1.x86_64.cpk")
        with pytest.raises(DownloadFailed):
            PackageResolver(cpk_config).resolve_and_materialize("foo")
        assert not (cpk_config.home_dir / "foo").exists()

    def test_corrupt_archive_leaves_nothing_staged(self, cpk_config, repo_dir, write_index):
        (repo_dir / "foo#1.0-1.x86_64.cpk").write_bytes(b"garbage" * 100)
        write_index("foo#1.0-1.x86_64.cpk")

        with pytest.raises(ExtractionFailed):
            PackageResolver(cpk_config).resolve_and_materialize("foo")

        assert not (cpk_config.home_dir / "foo").exists()
        assert _leftover_scratch(cpk_config.home_dir) == []

    def test_archive_without_package_dir(self, cpk_config, repo_dir, write_index):
        with tarfile.open(repo_dir / "foo#1.0-1.x86_64.cpk", "w") as tar:
            info = tarfile.TarInfo("bar/2.0-1/Pkgfile")
            info.size = 1
            tar.addfile(info, io.BytesIO(b"x"))
        write_index("foo#1.0-1.x86_64.cpk")

        with pytest.raises(ExtractionFailed, match="foo/1.0-1"):
            PackageResolver(cpk_config).resolve_and_materialize("foo")

        assert not (cpk_config.home_dir / "foo").exists()
        assert not (cpk_config.home_dir / "bar").exists()
        assert _leftover_scratch(cpk_config.home_dir) == []

    def test_last_index_entry_is_fetched(self, cpk_config, make_cpk, write_index):
        old = make_cpk("foo", "1.0")
        new = make_cpk("foo", "2.0")
        write_index(old, new)

        identity, staged = PackageResolver(cpk_config).resolve_and_materialize("foo")

        assert identity == new
        assert staged.name == "2.0-1"
        assert isinstance(identity, PackageIdentity)
