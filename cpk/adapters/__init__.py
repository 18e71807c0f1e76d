"""Adapters — bindings for the external pkgutils, pkgmk and signify.

Public re-exports for convenient access.
"""

from cpk.adapters.base import Adapter, ExecutionContext
from cpk.adapters.mock import MockAdapter
from cpk.adapters.shell.command import ToolAdapter

__all__ = [
    "Adapter",
    "ExecutionContext",
    "MockAdapter",
    "ToolAdapter",
]
