"""
Install orchestrator — sequence the external pkgutils around a package.

    install:  [signify] → pre-install → pkgadd → post-install → README

Each external step is an Action run through an Adapter. A failing
step marks that step (and the overall result) as failed; later steps
still run, the way the pkgutils are driven by hand.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from cpk.adapters.base import Adapter, ExecutionContext
from cpk.adapters.shell.command import ToolAdapter
from cpk.core.errors import CpkError, NotFound, ToolFailed
from cpk.core.models.action import Action, Receipt
from cpk.core.models.config import CpkConfig, ToolNames
from cpk.core.models.identity import PackageIdentity
from cpk.core.models.metadata import PkgMetadata
from cpk.core.services import archive
from cpk.core.services.resolver import PackageResolver, find_package_file

logger = logging.getLogger(__name__)

PUBKEY_SUFFIX = ".pub"
SIGNED_FILES = ("Pkgfile", ".footprint")

# notify(message, level) with level in {"progress", "ok", "warn", "error", "plain"}
Notifier = Callable[[str, str], None]


def _log_notify(message: str, level: str) -> None:
    if level == "error":
        logger.error("%s", message)
    elif level == "warn":
        logger.warning("%s", message)
    else:
        logger.info("%s", message)


@dataclass
class PackageInfo:
    """What ``cpk info`` shows."""

    identity: PackageIdentity
    metadata: PkgMetadata
    staged_dir: Path
    package_file: Path | None


@dataclass
class InstallResult:
    """Outcome of one install or upgrade."""

    identity: PackageIdentity
    package_file: Path | None = None
    metadata: PkgMetadata | None = None
    receipts: list[Receipt] = field(default_factory=list)
    readme: str | None = None
    skipped: str = ""

    @property
    def failed_steps(self) -> list[str]:
        return [r.action_id for r in self.receipts if r.failed]

    @property
    def ok(self) -> bool:
        return self.package_file is not None and not self.failed_steps


@dataclass
class UpgradeReport:
    upgraded: list[str] = field(default_factory=list)
    up_to_date: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def parse_pkginfo_installed(output: str) -> dict[str, str]:
    """``pkginfo -i`` lines (``name version-release``) → {name: tag}."""
    installed: dict[str, str] = {}
    for line in output.splitlines():
        parts = line.split()
        if len(parts) >= 2:
            installed[parts[0]] = parts[1]
    return installed


class Installer:
    """Drives pkgadd/pkgrm/pkginfo/pkgmk/signify for resolved packages."""

    def __init__(
        self,
        config: CpkConfig,
        adapter: Adapter | None = None,
        resolver: PackageResolver | None = None,
        notify: Notifier | None = None,
    ):
        self.config = config
        self.adapter = adapter or ToolAdapter()
        self.resolver = resolver or PackageResolver(config)
        self._notify = notify or _log_notify

    @property
    def tools(self) -> ToolNames:
        return self.config.tools

    # ── Plumbing ───────────────────────────────────────────────────

    def _run(
        self,
        action_id: str,
        program: str,
        args: list[str],
        *,
        cwd: Path | None = None,
        stream: bool = True,
    ) -> Receipt:
        action = Action(
            id=action_id,
            program=program,
            args=args,
            cwd=str(cwd) if cwd else None,
            stream=stream,
        )
        receipt = self.adapter.run(ExecutionContext(action=action))
        if receipt.failed:
            logger.debug("Step %s failed: %s", action_id, receipt.error)
        return receipt

    def run_script(self, staged_dir: Path, script: str) -> Receipt | None:
        """Run a lifecycle script with ``sh -x`` if the package ships one."""
        path = staged_dir / script
        if not path.is_file():
            return None
        self._notify(f"Running {script}", "progress")
        receipt = self._run(script, self.tools.shell, ["-x", str(path)], cwd=staged_dir)
        if receipt.failed:
            self._notify(f"Failed to run {script}", "error")
        return receipt

    @staticmethod
    def read_readme(staged_dir: Path) -> str | None:
        path = staged_dir / "README"
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8", errors="replace")

    # ── Queries ────────────────────────────────────────────────────

    def installed_packages(self) -> dict[str, str]:
        """Installed packages as reported by ``pkginfo -i``.

        Raises:
            ToolFailed: pkginfo exited non-zero.
        """
        receipt = self._run(
            "pkginfo", self.tools.pkginfo, [*self.config.root_args(), "-i"], stream=False,
        )
        if receipt.failed:
            raise ToolFailed(f"Failed to list installed packages: {receipt.error}")
        return parse_pkginfo_installed(receipt.output)

    def is_installed(self, name: str) -> bool:
        return name in self.installed_packages()

    def list_installed(self) -> Receipt:
        """Run ``pkginfo -i`` with its output streamed to the console."""
        receipt = self._run("pkginfo", self.tools.pkginfo, [*self.config.root_args(), "-i"])
        if receipt.failed:
            raise ToolFailed("Failed to list installed packages")
        return receipt

    def info(self, name: str) -> PackageInfo:
        identity, staged = self.resolver.resolve_and_materialize(name)
        pkgfile = staged / "Pkgfile"
        if not pkgfile.is_file():
            raise NotFound(f"Pkgfile not found in {staged}")
        metadata = archive.parse_metadata(pkgfile)
        return PackageInfo(
            identity=identity,
            metadata=metadata,
            staged_dir=staged,
            package_file=find_package_file(staged, identity.name, identity.version_tag),
        )

    # ── Signatures ─────────────────────────────────────────────────

    def public_keys(self) -> list[Path]:
        """``*.pub`` files directly in pubkey_dir, in directory order."""
        key_dir = self.config.pubkey_dir
        if not key_dir.is_dir():
            return []
        return [p for p in key_dir.iterdir() if p.is_file() and p.name.endswith(PUBKEY_SUFFIX)]

    def verify_signature(self, staged_dir: Path) -> Path:
        """Check ``.signature`` against each trusted key until one verifies.

        Returns:
            The key that verified.

        Raises:
            ToolFailed: no signature, no keys, or no key verifies.
        """
        if not (staged_dir / ".signature").is_file():
            raise ToolFailed(f"No .signature in {staged_dir}")

        keys = self.public_keys()
        if not keys:
            raise ToolFailed(f"No public keys in {self.config.pubkey_dir}")

        signed = [name for name in SIGNED_FILES if (staged_dir / name).is_file()]
        for key in keys:
            receipt = self._run(
                "signify",
                self.tools.signify,
                ["-q", "-C", "-p", str(key), "-x", ".signature", *signed],
                cwd=staged_dir,
                stream=False,
            )
            if receipt.ok:
                logger.info("Signature verified with %s", key.name)
                return key

        raise ToolFailed(f"Signature verification failed for {staged_dir}")

    # ── Commands ───────────────────────────────────────────────────

    def install(self, name: str, *, force: bool = False, upgrade: bool = False) -> InstallResult:
        """Fetch (if needed) and install one package.

        Raises:
            NotFound, DownloadFailed, ExtractionFailed, MetadataError:
                the package could not be staged.
            ToolFailed: signature verification is enabled and fails.
        """
        identity, staged = self.resolver.resolve_and_materialize(name)
        result = InstallResult(identity=identity)

        pkgfile = staged / "Pkgfile"
        if not pkgfile.is_file():
            raise NotFound(f"Pkgfile not found in {staged}")
        result.metadata = archive.parse_metadata(pkgfile)

        result.package_file = find_package_file(staged, identity.name, identity.version_tag)
        if result.package_file is None:
            self._notify(f"No package file for {identity} in {staged}", "error")
            return result

        if not upgrade and not force and self.is_installed(identity.name):
            result.skipped = f"{identity.name} is already installed"
            return result

        if self.config.verify_signatures:
            self.verify_signature(staged)

        receipt = self.run_script(staged, "pre-install")
        if receipt:
            result.receipts.append(receipt)

        verb = "Upgrading" if upgrade else "Installing"
        summary = f": {result.metadata.description}" if result.metadata.description else ""
        self._notify(f"{verb} {identity}{summary}", "progress")
        args = [*self.config.root_args()]
        if upgrade:
            args.append("-u")
        elif force:
            args.append("-f")
        args.append(str(result.package_file))
        receipt = self._run("pkgadd", self.tools.pkgadd, args)
        if receipt.failed:
            self._notify("Failed to run pkgadd", "error")
        result.receipts.append(receipt)

        receipt = self.run_script(staged, "post-install")
        if receipt:
            result.receipts.append(receipt)

        result.readme = self.read_readme(staged)
        return result

    def uninstall(self, name: str) -> Receipt:
        receipt = self._run("pkgrm", self.tools.pkgrm, [*self.config.root_args(), name])
        if receipt.failed:
            raise ToolFailed(f"Failed to uninstall package: {name}")
        return receipt

    def upgrade(self, names: list[str] | None = None) -> UpgradeReport:
        """Upgrade installed packages whose index version differs.

        Args:
            names: Restrict to these packages; default is everything installed.
        """
        report = UpgradeReport()
        installed = self.installed_packages()

        for name in names or sorted(installed):
            current = installed.get(name)
            if current is None:
                self._notify(f"{name} is not installed", "warn")
                report.skipped.append(name)
                continue
            try:
                identity = self.resolver.resolve(name)
            except NotFound:
                report.skipped.append(name)
                continue
            if identity.version_tag == current:
                report.up_to_date.append(name)
                continue
            try:
                result = self.install(name, upgrade=True)
            except CpkError as e:
                self._notify(str(e), "error")
                report.failed.append(name)
                continue
            (report.upgraded if result.ok else report.failed).append(name)

        return report

    def build(self, name: str) -> Receipt:
        """Build a package from its staged port with ``pkgmk -d``."""
        _identity, staged = self.resolver.resolve_and_materialize(name)
        if self.config.verify_signatures:
            self.verify_signature(staged)
        self._notify(f"Building {name}", "progress")
        receipt = self._run("pkgmk", self.tools.pkgmk, ["-d"], cwd=staged)
        if receipt.failed:
            raise ToolFailed(f"Failed to build package: {name}")
        return receipt
