"""
Index store — the flat-text CPKINDEX file.

One package identity per line, UTF-8, no header. Lookups are linear
substring scans that re-read the file on every call; nothing is cached.
Writes are atomic (write to temp file, then rename) so a crash never
leaves a half-written index.
"""

from __future__ import annotations

import logging
import tempfile
from collections.abc import Iterable, Iterator
from pathlib import Path

from cpk.core.errors import MalformedIndexLine, NotFound
from cpk.core.models.identity import PackageIdentity, parse_identity

logger = logging.getLogger(__name__)


class IndexStore:
    """Read/write access to one CPKINDEX file."""

    def __init__(self, path: Path):
        self.path = path

    def exists(self) -> bool:
        return self.path.is_file()

    def lines(self) -> Iterator[str]:
        """Yield every non-empty line, stripped of its newline.

        Raises:
            MalformedIndexLine: the file is not valid UTF-8.
        """
        try:
            with self.path.open(encoding="utf-8") as f:
                for raw in f:
                    line = raw.rstrip("\r\n")
                    if line.strip():
                        yield line
        except UnicodeDecodeError as e:
            raise MalformedIndexLine(f"Index {self.path} is not valid UTF-8 ({e.reason})") from e

    def search(self, term: str) -> Iterator[str]:
        """Yield raw lines containing ``term`` (case-sensitive)."""
        for line in self.lines():
            if term in line:
                yield line

    def resolve(self, name: str) -> PackageIdentity:
        """Turn a bare package name into its identity.

        Every line containing ``name#`` is parsed; the last one whose
        parsed name equals ``name`` exactly wins, so a later entry
        overrides an earlier one.

        Raises:
            NotFound: no line parses to exactly ``name``.
        """
        needle = f"{name}#"
        found: PackageIdentity | None = None

        for line in self.search(needle):
            try:
                identity = parse_identity(line, needle)
            except MalformedIndexLine as e:
                logger.warning("%s", e)
                continue
            if identity.name == name:
                found = identity

        if found is None:
            raise NotFound(f"Package not found: {name}")

        logger.debug("Resolved %s → %s", name, found)
        return found

    def count(self) -> int:
        """Number of non-empty lines."""
        return sum(1 for _ in self.lines())

    def regenerate(self, entries: Iterable[str]) -> None:
        """Replace the whole index with ``entries``, one per line, in order.

        Uses write-to-temp-then-rename; on failure the live index is
        left as it was.
        """
        content = "".join(f"{entry}\n" for entry in entries)

        self.path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(
            dir=self.path.parent,
            prefix=".CPKINDEX_",
            suffix=".tmp",
        )
        tmp = Path(tmp_path)
        try:
            with open(fd, "w", encoding="utf-8") as f:
                f.write(content)
            tmp.chmod(0o644)
            tmp.replace(self.path)
        except Exception:
            tmp.unlink(missing_ok=True)
            logger.error("Failed to write index %s", self.path)
            raise

        logger.debug("Index written to %s", self.path)
