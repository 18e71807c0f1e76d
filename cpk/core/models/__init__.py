"""
Domain models — Pydantic types for cpk.

All models are re-exported here for convenient access:

    from cpk.core.models import PackageIdentity, PkgMetadata, CpkConfig, Action, Receipt
"""

from cpk.core.models.action import Action, Receipt
from cpk.core.models.config import CpkConfig, ToolNames
from cpk.core.models.identity import (
    PackageIdentity,
    format_identity,
    parse_identity,
    split_version_release,
)
from cpk.core.models.metadata import PkgMetadata

__all__ = [
    # action.py
    "Action",
    # config.py
    "CpkConfig",
    # identity.py
    "PackageIdentity",
    # metadata.py
    "PkgMetadata",
    "Receipt",
    "ToolNames",
    "format_identity",
    "parse_identity",
    "split_version_release",
]
