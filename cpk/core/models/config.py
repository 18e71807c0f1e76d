"""
Configuration model — everything cpk needs to know about its host.

Loaded once from cpk.conf at startup and passed explicitly to every
component. Frozen: nothing mutates it after construction.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

INDEX_FILE = "CPKINDEX"


class ToolNames(BaseModel):
    """External executables cpk shells out to."""

    model_config = {"frozen": True, "extra": "forbid"}

    pkgadd: str = "pkgadd"
    pkgrm: str = "pkgrm"
    pkginfo: str = "pkginfo"
    pkgmk: str = "pkgmk"
    signify: str = "signify"
    shell: str = "sh"


class CpkConfig(BaseModel):
    """Root configuration — loaded from cpk.conf."""

    model_config = {"frozen": True, "extra": "forbid"}

    home_dir: Path = Path("/var/lib/cpk")
    repo_url: str = "https://cpk.user.ninja"
    color_mode: bool = True

    root: Path | None = None            # install root passed to pkgadd/pkgrm/pkginfo
    pubkey_dir: Path = Path("/etc/ports")
    verify_signatures: bool = False
    fetch_timeout: float | None = None  # seconds; None blocks indefinitely

    tools: ToolNames = Field(default_factory=ToolNames)

    @property
    def index_path(self) -> Path:
        return self.home_dir / INDEX_FILE

    @property
    def index_url(self) -> str:
        return f"{self.repo_url.rstrip('/')}/{INDEX_FILE}"

    def root_args(self) -> list[str]:
        """``-r ROOT`` for the pkgutils, or nothing when installing to /."""
        if self.root is None:
            return []
        return ["-r", str(self.root)]
