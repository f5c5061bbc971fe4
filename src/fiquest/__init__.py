"""
FIQuest player persistence.

This package provides the headless persistence layer for the FIQuest planner:
- Player profile and net-worth ledger models
- A session manager mirroring game data into a key/value store
- Versioned export/import with backup-before-overwrite and optional obfuscation
- A file delivery chain that degrades down to a clipboard copy

UI layers compose these services through :class:`fiquest.app.FiquestApp`.
"""
from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("fiquest")
except PackageNotFoundError:  # pragma: no cover - during tests without packaging
    __version__ = "0.0.0"

__all__ = ["__version__"]
