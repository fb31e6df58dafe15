"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Merkle tree verification for the log tree and the prefix trees.
"""

from kestrel.merkle.log import (
    evaluate_batch_proof,
    search_path,
    verify_consistency,
    verify_inclusion,
)
from kestrel.merkle.prefix import PrefixTreeVerifier

__all__ = [
    "PrefixTreeVerifier",
    "evaluate_batch_proof",
    "search_path",
    "verify_consistency",
    "verify_inclusion",
]
