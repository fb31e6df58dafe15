"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Kestrel - Key Transparency Verification Core

Kestrel verifies the proofs a key transparency log returns for search,
update and monitoring requests, and keeps the client's trusted state
(tree heads and monitoring pointers) consistent across sessions.
"""

from kestrel._version import __version__

__all__ = ["__version__"]
