"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Hash domain for the log tree, the prefix tree and value commitments.

Every node kind hashes under its own one-byte prefix so that a leaf of one
tree can never be reinterpreted as an inner node or as a node of the other
tree:

    log leaf       SHA256(0x00 || prefix_root || commitment)
    log inner      SHA256(0x01 || left || right)
    prefix leaf    SHA256(0x02 || index || u32be(counter))
    prefix inner   SHA256(0x03 || left || right)
    prefix empty   SHA256(0x04)

Commitments are HMAC-SHA256 keyed with the random opening over the
length-prefixed search key and value.
"""

import hashlib
import hmac
import struct
from abc import ABC, abstractmethod


LOG_LEAF_PREFIX = b"\x00"
LOG_INNER_PREFIX = b"\x01"
PREFIX_LEAF_PREFIX = b"\x02"
PREFIX_INNER_PREFIX = b"\x03"
PREFIX_EMPTY_PREFIX = b"\x04"

MIN_OPENING_SIZE = 16
MAX_OPENING_SIZE = 64


class HashDomain(ABC):
    """
    Abstract hash domain used by every verifier.
    
    Implementations must be deterministic and side-effect free; verifiers
    share one instance across threads.
    """
    
    #: Size in bytes of every node hash produced by this domain.
    digest_size: int = 32
    
    @abstractmethod
    def log_leaf(self, prefix_root: bytes, commitment: bytes) -> bytes:
        """Hash of the log leaf that binds a prefix-tree root to a commitment."""
        pass
    
    @abstractmethod
    def log_inner(self, left: bytes, right: bytes) -> bytes:
        pass
    
    @abstractmethod
    def prefix_leaf(self, index: bytes, counter: int) -> bytes:
        pass
    
    @abstractmethod
    def prefix_inner(self, left: bytes, right: bytes) -> bytes:
        pass
    
    @abstractmethod
    def prefix_empty(self) -> bytes:
        """Hash standing in for an empty prefix-tree leaf."""
        pass
    
    @abstractmethod
    def commit(self, search_key: bytes, value: bytes, opening: bytes) -> bytes:
        """
        Compute the commitment to a (search_key, value) pair.
        
        Args:
            search_key: Search key bytes
            value: Value bytes
            opening: Random opening chosen by the log for this entry
            
        Returns:
            Commitment bytes
        """
        pass
    
    def commitment_matches(
        self, commitment: bytes, search_key: bytes, value: bytes, opening: bytes
    ) -> bool:
        """Constant-time comparison of a logged commitment with a recomputed one."""
        return hmac.compare_digest(commitment, self.commit(search_key, value, opening))


class Sha256HashDomain(HashDomain):
    """SHA-256 hash domain with one-byte node prefixes."""
    
    digest_size = 32
    
    def __init__(self) -> None:
        self._empty = hashlib.sha256(PREFIX_EMPTY_PREFIX).digest()
    
    def log_leaf(self, prefix_root: bytes, commitment: bytes) -> bytes:
        return hashlib.sha256(LOG_LEAF_PREFIX + prefix_root + commitment).digest()
    
    def log_inner(self, left: bytes, right: bytes) -> bytes:
        return hashlib.sha256(LOG_INNER_PREFIX + left + right).digest()
    
    def prefix_leaf(self, index: bytes, counter: int) -> bytes:
        return hashlib.sha256(PREFIX_LEAF_PREFIX + index + struct.pack(">I", counter)).digest()
    
    def prefix_inner(self, left: bytes, right: bytes) -> bytes:
        return hashlib.sha256(PREFIX_INNER_PREFIX + left + right).digest()
    
    def prefix_empty(self) -> bytes:
        return self._empty
    
    def commit(self, search_key: bytes, value: bytes, opening: bytes) -> bytes:
        if not MIN_OPENING_SIZE <= len(opening) <= MAX_OPENING_SIZE:
            raise ValueError(
                f"Opening must be {MIN_OPENING_SIZE}-{MAX_OPENING_SIZE} bytes, got {len(opening)}"
            )
        message = (
            struct.pack(">I", len(search_key)) + search_key
            + struct.pack(">I", len(value)) + value
        )
        return hmac.new(opening, message, hashlib.sha256).digest()
