"""
Package resolver — from a user-supplied name to a staged directory.

    name ──IndexStore.resolve──▶ identity ──download+extract──▶ home/name/tag/

A staged directory only ever appears by atomic rename of a fully
extracted tree, so "the directory exists" reliably means "the fetch
completed".
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from collections.abc import Callable
from pathlib import Path

from cpk.core.errors import ExtractionFailed
from cpk.core.models.config import CpkConfig
from cpk.core.models.identity import PackageIdentity
from cpk.core.persistence.index_store import IndexStore
from cpk.core.services import archive
from cpk.core.services.fetch import download_file, repo_file_url

logger = logging.getLogger(__name__)

# Tried in this order; a later match replaces an earlier one
COMPRESSION_MODES = ("gz", "bz2", "xz")

_EXTRACT_PREFIX = ".extract-"

Downloader = Callable[..., Path]


def find_package_file(staged_dir: Path, name: str, version_tag: str) -> Path | None:
    """Locate the built tarball ``name#tag.pkg.tar.<ext>`` in a staged dir.

    Every compression mode is checked; when several variants coexist
    the last one in COMPRESSION_MODES wins.
    """
    matched: Path | None = None
    for mode in COMPRESSION_MODES:
        candidate = staged_dir / f"{name}#{version_tag}.pkg.tar.{mode}"
        if candidate.exists():
            matched = candidate
    return matched


class PackageResolver:
    """Resolve names against the local index and fetch what is missing."""

    def __init__(
        self,
        config: CpkConfig,
        index: IndexStore | None = None,
        downloader: Downloader = download_file,
    ):
        self.config = config
        self.index = index or IndexStore(config.index_path)
        self._download = downloader

    @property
    def home(self) -> Path:
        return self.config.home_dir

    def resolve(self, name: str) -> PackageIdentity:
        return self.index.resolve(name)

    def staged_dir(self, identity: PackageIdentity) -> Path:
        return identity.staged_path(self.home)

    def is_staged(self, identity: PackageIdentity) -> bool:
        return self.staged_dir(identity).is_dir()

    def materialize(self, identity: PackageIdentity) -> Path:
        """Make sure ``home/name/tag`` holds the package's files.

        Downloads the archive and extracts it into a scratch directory
        under home; the package tree is renamed into place only after
        extraction succeeded.

        Raises:
            DownloadFailed: the archive could not be fetched.
            ExtractionFailed: the archive could not be unpacked, or does
                not contain ``name/tag``.
        """
        staged = self.staged_dir(identity)
        if staged.is_dir():
            logger.debug("Already staged: %s", staged)
            return staged

        self.home.mkdir(parents=True, exist_ok=True)
        archive_path = self.home / identity.filename
        url = repo_file_url(self.config.repo_url, identity.filename)

        logger.info("Fetching %s", url)
        self._download(url, archive_path, timeout=self.config.fetch_timeout)

        scratch = Path(tempfile.mkdtemp(dir=self.home, prefix=_EXTRACT_PREFIX))
        try:
            archive.extract(archive_path, scratch)
            extracted = identity.staged_path(scratch)
            if not extracted.is_dir():
                raise ExtractionFailed(
                    f"Archive {identity.filename} does not contain "
                    f"{identity.name}/{identity.version_tag}"
                )
            staged.parent.mkdir(parents=True, exist_ok=True)
            try:
                extracted.rename(staged)
            except OSError as e:
                raise ExtractionFailed(f"Cannot stage {staged}: {e}") from e
        finally:
            shutil.rmtree(scratch, ignore_errors=True)

        logger.info("Package source extracted to %s", staged)
        return staged

    def resolve_and_materialize(self, name: str) -> tuple[PackageIdentity, Path]:
        """Resolve ``name`` and stage its files, fetching on first use."""
        identity = self.resolve(name)
        return identity, self.materialize(identity)
