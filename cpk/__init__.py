"""cpk — CRUX Package Keeper."""

__version__ = "0.1.0"
