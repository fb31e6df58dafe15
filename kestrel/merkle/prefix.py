"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Prefix tree verification.

Every log entry commits to a prefix tree: a full-depth sparse Merkle tree
indexed by the VRF output of each search key, whose leaf for a key records
how many versions of the key exist. A proof lists the sibling hashes from
the leaf up to the root; bit i of the index (most significant bit first)
chooses the side at depth i.
"""

from typing import Optional

from kestrel.crypto.hashing import HashDomain, Sha256HashDomain
from kestrel.exceptions import MalformedProofError, ProofMismatchError
from kestrel.logging_config import get_logger
from kestrel.wire.messages import PrefixProof

logger = get_logger(__name__)


def index_bit(index: bytes, depth: int) -> int:
    """Bit of index that selects the child at depth (0 = left)."""
    return (index[depth // 8] >> (7 - depth % 8)) & 1


class PrefixTreeVerifier:
    """
    Recomputes prefix-tree roots from proofs.
    
    Stateless; safe to share between threads.
    """
    
    def __init__(self, domain: Optional[HashDomain] = None):
        self.domain = domain or Sha256HashDomain()
    
    def evaluate(self, index: bytes, proof: PrefixProof, claimed_present: bool) -> bytes:
        """
        Compute the prefix-tree root implied by proof.
        
        Args:
            index: VRF output of the search key
            proof: Sibling hashes (leaf to root) and version counter
            claimed_present: Whether the proof is expected to show the key
        
        Returns:
            Prefix-tree root hash
        
        Raises:
            MalformedProofError: If the proof shape or counter contradicts claimed_present
        """
        if not index:
            raise MalformedProofError("Empty prefix tree index")
        depth = 8 * len(index)
        if len(proof.proof) != depth:
            raise MalformedProofError(
                f"Prefix proof has {len(proof.proof)} siblings, expected {depth}"
            )
        if claimed_present and proof.counter == 0:
            raise MalformedProofError("Prefix proof claims presence with a zero counter")
        if not claimed_present and proof.counter != 0:
            raise MalformedProofError(
                f"Prefix proof claims absence with counter {proof.counter}"
            )
        
        if claimed_present:
            node = self.domain.prefix_leaf(index, proof.counter)
        else:
            node = self.domain.prefix_empty()
        
        for level, sibling in enumerate(proof.proof):
            if len(sibling) != self.domain.digest_size:
                raise MalformedProofError(
                    f"Prefix proof sibling {level} is {len(sibling)} bytes"
                )
            if index_bit(index, depth - 1 - level):
                node = self.domain.prefix_inner(sibling, node)
            else:
                node = self.domain.prefix_inner(node, sibling)
        return node
    
    def evaluate_step(self, index: bytes, proof: PrefixProof) -> bytes:
        """Evaluate a proof whose presence is implied by its counter."""
        return self.evaluate(index, proof, proof.counter > 0)
    
    def verify(
        self,
        root_hash: bytes,
        index: bytes,
        proof: PrefixProof,
        claimed_present: bool,
        counter: Optional[int] = None,
    ) -> None:
        """
        Verify a prefix proof against a known prefix-tree root.
        
        Args:
            root_hash: Trusted prefix-tree root
            index: VRF output of the search key
            proof: Prefix proof
            claimed_present: Whether the key must be present
            counter: Expected version counter, if known
        
        Raises:
            MalformedProofError: If the proof is malformed or its counter is unexpected
            ProofMismatchError: If the proof leads to a different root
        """
        if counter is not None and counter != proof.counter:
            raise MalformedProofError(
                f"Prefix proof counter {proof.counter}, expected {counter}"
            )
        computed = self.evaluate(index, proof, claimed_present)
        if computed != root_hash:
            logger.debug(f"Prefix root mismatch for index {index.hex()[:16]}...")
            raise ProofMismatchError("Prefix proof does not match prefix-tree root")
