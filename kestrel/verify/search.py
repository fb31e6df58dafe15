"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Binary search proof verification.

A search proof shows where a version of a key first appears in the log.
The client replays the binary search the log performed: at every visited
position it checks the prefix proof's version counter against the target,
which proves that no earlier position already held the version and that
the reported position does. The visited leaves are then proven included
in the log with one batch inclusion proof, yielding the log root.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from kestrel.crypto.hashing import HashDomain, Sha256HashDomain
from kestrel.exceptions import (
    CommitmentMismatchError,
    MalformedProofError,
    PositionOutOfRangeError,
    ProofMismatchError,
    SearchPathInvalidError,
)
from kestrel.logging_config import get_logger
from kestrel.merkle.log import evaluate_batch_proof, search_path
from kestrel.merkle.prefix import PrefixTreeVerifier
from kestrel.verify.consistency import TrustedHead
from kestrel.wire.messages import ProofStep, SearchProof

logger = get_logger(__name__)


@dataclass(frozen=True)
class SearchOutcome:
    """
    Result of evaluating a search proof.
    
    Attributes:
        root: Log root implied by the proof
        position: Log position holding the found version
        counter: Version counter at that position (version + 1)
        leaves: Log leaf hash of every visited position
    """
    root: bytes
    position: int
    counter: int
    leaves: Dict[int, bytes]
    
    @property
    def version(self) -> int:
        return self.counter - 1


class BinarySearchVerifier:
    """Verifies search proofs for fixed-version and greatest-version lookups."""
    
    def __init__(self, domain: Optional[HashDomain] = None):
        self.domain = domain or Sha256HashDomain()
        self.prefix_verifier = PrefixTreeVerifier(self.domain)
    
    def _leaf(self, index: bytes, step: ProofStep) -> bytes:
        prefix_root = self.prefix_verifier.evaluate_step(index, step.prefix)
        return self.domain.log_leaf(prefix_root, step.commitment)
    
    def _add_leaf(self, leaves: Dict[int, bytes], position: int, leaf: bytes) -> None:
        existing = leaves.get(position)
        if existing is not None and existing != leaf:
            raise ProofMismatchError(f"Conflicting steps for log position {position}")
        leaves[position] = leaf
    
    def _split_steps(
        self, steps: List[ProofStep], version: Optional[int]
    ) -> Tuple[int, List[ProofStep]]:
        """Resolve the target counter and separate the frontier step, if any."""
        if version is not None:
            return version + 1, steps
        if not steps:
            raise SearchPathInvalidError("Greatest-version search has no frontier step")
        frontier, rest = steps[0], steps[1:]
        if frontier.prefix.counter < 1:
            raise SearchPathInvalidError("Key is not present at the end of the log")
        return frontier.prefix.counter, rest
    
    def evaluate(
        self,
        tree_size: int,
        index: bytes,
        search_key: bytes,
        proof: SearchProof,
        opening: bytes,
        value: bytes,
        version: Optional[int] = None,
    ) -> SearchOutcome:
        """
        Evaluate a search proof and return the log root it implies.
        
        Args:
            tree_size: Size of the log the proof was produced for
            index: VRF output of the search key
            search_key: Search key bytes (committed to in the log)
            proof: Search proof
            opening: Commitment opening of the found entry
            value: Value of the found entry
            version: Requested version, or None for the greatest version
        
        Returns:
            SearchOutcome with the implied root
        
        Raises:
            PositionOutOfRangeError: If proof.pos is not inside the log
            SearchPathInvalidError: If the steps do not form a valid search
            CommitmentMismatchError: If value and opening do not match the commitment
            MalformedProofError: If a prefix or inclusion proof is malformed
            ProofMismatchError: If two steps disagree about one position
        """
        if tree_size <= 0 or proof.pos >= tree_size:
            raise PositionOutOfRangeError(
                f"Search position {proof.pos} outside log of size {tree_size}"
            )
        if version is not None and version < 0:
            raise SearchPathInvalidError(f"Invalid version {version}")
        
        target, steps = self._split_steps(proof.steps, version)
        leaves: Dict[int, bytes] = {}
        path = search_path(tree_size, proof.pos)
        if len(steps) != len(path):
            raise SearchPathInvalidError(
                f"Search proof has {len(steps)} steps, expected {len(path)}"
            )
        
        if version is None:
            self._add_leaf(leaves, tree_size - 1, self._leaf(index, proof.steps[0]))
        
        for position, step in zip(path, steps):
            counter = step.prefix.counter
            if position < proof.pos and counter >= target:
                raise SearchPathInvalidError(
                    f"Version {target - 1} already present at earlier position {position}"
                )
            if position > proof.pos and counter < target:
                raise SearchPathInvalidError(
                    f"Version {target - 1} missing at later position {position}"
                )
            if position == proof.pos:
                if counter != target:
                    raise SearchPathInvalidError(
                        f"Position {position} has counter {counter}, expected {target}"
                    )
                try:
                    matches = self.domain.commitment_matches(
                        step.commitment, search_key, value, opening
                    )
                except ValueError as e:
                    raise MalformedProofError(str(e)) from e
                if not matches:
                    raise CommitmentMismatchError(
                        f"Commitment at position {position} does not match value"
                    )
            self._add_leaf(leaves, position, self._leaf(index, step))
        
        root = evaluate_batch_proof(tree_size, leaves, proof.inclusion, self.domain)
        return SearchOutcome(root=root, position=proof.pos, counter=target, leaves=leaves)
    
    def verify(
        self,
        head: TrustedHead,
        index: bytes,
        search_key: bytes,
        proof: SearchProof,
        opening: bytes,
        value: bytes,
        version: Optional[int] = None,
    ) -> SearchOutcome:
        """
        Verify a search proof against an already trusted tree head.
        
        Raises:
            ProofMismatchError: If the proof implies a different root
        """
        outcome = self.evaluate(
            head.tree_size, index, search_key, proof, opening, value, version
        )
        if outcome.root != head.root:
            raise ProofMismatchError("Search proof does not match trusted log root")
        return outcome
