"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Verification engines for search, tree head consistency and monitoring.
"""

from kestrel.verify.consistency import ConsistencyEngine, TrustedHead
from kestrel.verify.monitor import MonitorEngine, MonitorOutcome, monitoring_path
from kestrel.verify.search import BinarySearchVerifier, SearchOutcome

__all__ = [
    "BinarySearchVerifier",
    "ConsistencyEngine",
    "MonitorEngine",
    "MonitorOutcome",
    "SearchOutcome",
    "TrustedHead",
    "monitoring_path",
]
