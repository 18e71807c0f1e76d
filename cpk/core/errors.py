"""
Error kinds raised by core components.

Components raise these; adapters never do (they return Receipts).
The CLI layer catches ``CpkError``, prints one line and exits 1.
"""

from __future__ import annotations


class CpkError(Exception):
    """Base class for all cpk failures surfaced to the operator."""


class NotFound(CpkError):
    """A package name is absent from the index."""


class MalformedIndexLine(CpkError):
    """An index line violates the ``name#version-release.arch.cpk`` format."""


class DownloadFailed(CpkError):
    """The network layer could not fetch a file."""


class ExtractionFailed(CpkError):
    """An archive could not be decoded or written to disk."""


class ArchiveError(CpkError):
    """A ``.cpk`` archive could not be created."""


class MetadataError(CpkError):
    """A ``Pkgfile`` could not be read."""


class ToolFailed(CpkError):
    """An external tool exited non-zero."""


class ConfigError(CpkError):
    """Raised when cpk configuration is invalid or missing."""
