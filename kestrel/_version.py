"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Version information for Kestrel.

Source checkouts read the VERSION file next to the package; installed
distributions fall back to the package metadata.
"""

from importlib import metadata
from pathlib import Path

_VERSION_FILE = Path(__file__).parent.parent / "VERSION"


def get_version() -> str:
    """Return the Kestrel version string, or "unknown" outside any install."""
    if _VERSION_FILE.exists():
        return _VERSION_FILE.read_text().strip()
    try:
        return metadata.version("kestrel")
    except metadata.PackageNotFoundError:
        return "unknown"


__version__ = get_version()
