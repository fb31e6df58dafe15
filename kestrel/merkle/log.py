"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Log tree verification.

The log is an append-only, left-balanced Merkle tree (RFC 6962 section 2.1)
whose leaves bind each entry's prefix-tree root to its commitment. This
module verifies:
- Batch inclusion proofs for several positions at once
- Consistency proofs between two tree sizes (RFC 9162 section 2.1.4.2)
- The binary search path clients walk through the log
"""

from bisect import bisect_left
from typing import List, Mapping, Sequence

from kestrel.crypto.hashing import HashDomain
from kestrel.exceptions import (
    MalformedProofError,
    PositionOutOfRangeError,
    ProofMismatchError,
)
from kestrel.logging_config import get_logger

logger = get_logger(__name__)


def split_point(size: int) -> int:
    """Largest power of two strictly smaller than size (size >= 2)."""
    k = 1
    while k << 1 < size:
        k <<= 1
    return k


def is_power_of_two(value: int) -> bool:
    return value > 0 and value & (value - 1) == 0


def search_path(tree_size: int, position: int) -> List[int]:
    """
    Positions visited by a binary search for position in a log of tree_size.
    
    The search probes the midpoint of the remaining range and stops when the
    midpoint is the target, so the last element is always position.
    
    Raises:
        PositionOutOfRangeError: If position is not inside the log
    """
    if not 0 <= position < tree_size:
        raise PositionOutOfRangeError(
            f"Position {position} outside log of size {tree_size}"
        )
    path = []
    lo, hi = 0, tree_size
    while True:
        mid = (lo + hi) // 2
        path.append(mid)
        if position < mid:
            hi = mid
        elif position > mid:
            lo = mid + 1
        else:
            return path


def _check_nodes(nodes: Sequence[bytes], domain: HashDomain, what: str) -> None:
    for i, node in enumerate(nodes):
        if len(node) != domain.digest_size:
            raise MalformedProofError(
                f"{what} node {i} is {len(node)} bytes, expected {domain.digest_size}"
            )


def evaluate_batch_proof(
    tree_size: int,
    leaves: Mapping[int, bytes],
    proof: Sequence[bytes],
    domain: HashDomain,
) -> bytes:
    """
    Compute the log root implied by a batch inclusion proof.
    
    Walking the tree from the root, a subtree without any proven position is
    taken from the proof, in order. Subtrees holding proven positions are
    expanded first (left before right) and their siblings are read after, so
    a single-position proof is the ordinary leaf-to-root audit path.
    
    Args:
        tree_size: Number of leaves in the log
        leaves: Position -> leaf hash for every proven position
        proof: Hashes of the subtrees not covered by leaves
        domain: Hash domain
    
    Returns:
        Root hash
    
    Raises:
        PositionOutOfRangeError: If a position lies outside the log
        MalformedProofError: If the proof has the wrong number or size of nodes
    """
    if not leaves:
        raise MalformedProofError("Inclusion proof covers no positions")
    positions = sorted(leaves)
    if positions[0] < 0 or positions[-1] >= tree_size:
        raise PositionOutOfRangeError(
            f"Inclusion positions {positions[0]}..{positions[-1]} outside log of size {tree_size}"
        )
    _check_nodes(proof, domain, "Inclusion")
    
    cursor = 0
    
    def take() -> bytes:
        nonlocal cursor
        if cursor >= len(proof):
            raise MalformedProofError(f"Inclusion proof too short ({len(proof)} nodes)")
        node = proof[cursor]
        cursor += 1
        return node
    
    def walk(start: int, end: int, lo: int, hi: int) -> bytes:
        # positions[lo:hi] are exactly the proven positions within [start, end)
        if lo == hi:
            return take()
        if end - start == 1:
            return leaves[positions[lo]]
        middle = start + split_point(end - start)
        split = bisect_left(positions, middle, lo, hi)
        if split == lo:
            right = walk(middle, end, lo, hi)
            left = take()
        elif split == hi:
            left = walk(start, middle, lo, hi)
            right = take()
        else:
            left = walk(start, middle, lo, split)
            right = walk(middle, end, split, hi)
        return domain.log_inner(left, right)
    
    root = walk(0, tree_size, 0, len(positions))
    if cursor != len(proof):
        raise MalformedProofError(
            f"Inclusion proof has {len(proof) - cursor} unused nodes"
        )
    return root


def verify_inclusion(
    tree_size: int,
    position: int,
    leaf_hash: bytes,
    proof: Sequence[bytes],
    root: bytes,
    domain: HashDomain,
) -> None:
    """
    Verify a single-leaf inclusion proof against a known root.
    
    Raises:
        ProofMismatchError: If the proof leads to a different root
    """
    computed = evaluate_batch_proof(tree_size, {position: leaf_hash}, proof, domain)
    if computed != root:
        raise ProofMismatchError(
            f"Inclusion proof for position {position} does not match root"
        )


def verify_consistency(
    old_size: int,
    new_size: int,
    old_root: bytes,
    new_root: bytes,
    proof: Sequence[bytes],
    domain: HashDomain,
) -> None:
    """
    Verify that the log of new_size is an append-only extension of old_size.
    
    Args:
        old_size: Earlier tree size
        new_size: Later tree size
        old_root: Root at old_size
        new_root: Root at new_size
        proof: RFC 6962 consistency proof
        domain: Hash domain
    
    Raises:
        MalformedProofError: If the proof does not have the expected shape
        ProofMismatchError: If the proof does not reproduce both roots
    """
    _check_nodes(proof, domain, "Consistency")
    
    if old_size > new_size:
        raise MalformedProofError(
            f"Consistency from size {old_size} to smaller size {new_size}"
        )
    if old_size == 0:
        if proof:
            raise MalformedProofError("Consistency proof from an empty log must be empty")
        return
    if old_size == new_size:
        if proof:
            raise MalformedProofError("Consistency proof between equal sizes must be empty")
        if old_root != new_root:
            raise ProofMismatchError(f"Different roots for the same tree size {old_size}")
        return
    
    nodes = list(proof)
    if is_power_of_two(old_size):
        nodes.insert(0, old_root)
    if not nodes:
        raise MalformedProofError("Consistency proof is empty")
    
    fn, sn = old_size - 1, new_size - 1
    while fn & 1:
        fn >>= 1
        sn >>= 1
    
    first = second = nodes[0]
    for node in nodes[1:]:
        if sn == 0:
            raise MalformedProofError("Consistency proof too long")
        if fn & 1 or fn == sn:
            first = domain.log_inner(node, first)
            second = domain.log_inner(node, second)
            while fn != 0 and not fn & 1:
                fn >>= 1
                sn >>= 1
        else:
            second = domain.log_inner(second, node)
        fn >>= 1
        sn >>= 1
    
    if sn != 0:
        raise MalformedProofError("Consistency proof too short")
    if first != old_root:
        raise ProofMismatchError(
            f"Consistency proof does not reproduce the root of size {old_size}"
        )
    if second != new_root:
        raise ProofMismatchError(
            f"Consistency proof does not reproduce the root of size {new_size}"
        )
