"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Key monitoring.

A client that has seen a key at some log position keeps a pointer
(position -> version counter). Later binary searches for that key pass
through the positions to the right of the pointer on its search path, so
the log must keep proving that the key is present there with at least the
counter seen before. Any regression means the log showed different
histories to different clients.

For keys the client owns, the newest log entry is also checked: its
counter must equal the highest version the owner knows about, otherwise
someone else changed the key.

A key whose pointers all sit at the end of their search paths is checked
at the newest entry instead, so every response proves at least one position.
"""

import concurrent.futures
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from kestrel.crypto.hashing import HashDomain, Sha256HashDomain
from kestrel.exceptions import (
    MalformedProofError,
    MonitoringInvariantViolatedError,
    ProofMismatchError,
)
from kestrel.logging_config import get_logger
from kestrel.merkle.log import evaluate_batch_proof, search_path
from kestrel.merkle.prefix import PrefixTreeVerifier
from kestrel.verify.consistency import TrustedHead
from kestrel.wire.messages import MonitorKey, MonitorProof, StoredMonitoringData

logger = get_logger(__name__)


@dataclass(frozen=True)
class MonitorOutcome:
    """
    Result of evaluating one key's monitoring proof.
    
    Attributes:
        data: Updated monitoring data (a new snapshot)
        leaves: Log leaf hash of every checked position
    """
    data: StoredMonitoringData
    leaves: Dict[int, bytes]


def monitoring_path(position: int, tree_size: int) -> List[int]:
    """Positions right of position on the binary search path leading to it."""
    return [q for q in search_path(tree_size, position) if q > position]


def merge_leaves(outcomes: Sequence[MonitorOutcome]) -> Dict[int, bytes]:
    """
    Union of the leaves of several outcomes.
    
    Raises:
        ProofMismatchError: If two keys disagree about the leaf at one position
    """
    leaves: Dict[int, bytes] = {}
    for outcome in outcomes:
        for position, leaf in outcome.leaves.items():
            if leaves.setdefault(position, leaf) != leaf:
                raise ProofMismatchError(f"Conflicting leaves for log position {position}")
    return leaves


class MonitorEngine:
    """
    Verifies monitoring proofs and advances monitoring pointers.
    
    evaluate() is a pure function of its inputs; the engine keeps no state.
    """
    
    def __init__(
        self,
        domain: Optional[HashDomain] = None,
        parallel_threshold: int = 8,
        max_workers: int = 4,
    ):
        self.domain = domain or Sha256HashDomain()
        self.prefix_verifier = PrefixTreeVerifier(self.domain)
        self.parallel_threshold = parallel_threshold
        self.max_workers = max_workers
    
    def _frontier(self, stored: StoredMonitoringData, tree_size: int) -> Optional[int]:
        frontier = tree_size - 1
        if stored.owned and frontier > max(stored.ptrs):
            return frontier
        return None
    
    def _requirements(self, stored: StoredMonitoringData, tree_size: int) -> Dict[int, int]:
        """Position -> minimum counter the log must prove there."""
        if not stored.ptrs:
            raise MalformedProofError("Monitoring data has no pointers")
        required: Dict[int, int] = {}
        for position, counter in stored.ptrs.items():
            if position >= tree_size:
                raise MonitoringInvariantViolatedError(
                    f"Pointer {position} lies beyond log of size {tree_size}"
                )
            for q in monitoring_path(position, tree_size):
                required[q] = max(required.get(q, 0), counter)
        
        frontier = self._frontier(stored, tree_size)
        if frontier is not None:
            required[frontier] = max(required.get(frontier, 0), stored.max_counter)
        if not required:
            # Every pointer ends its search path; the newest entry still ties
            # the proof to a log root.
            required[tree_size - 1] = stored.max_counter
        return required
    
    def expected_positions(self, stored: StoredMonitoringData, tree_size: int) -> List[int]:
        """Log positions a monitoring proof for stored must cover, ascending."""
        return sorted(self._requirements(stored, tree_size))
    
    def evaluate(
        self,
        stored: StoredMonitoringData,
        key: MonitorKey,
        proof: MonitorProof,
        tree_size: int,
    ) -> MonitorOutcome:
        """
        Check one key's monitoring proof and compute its new pointers.
        
        Args:
            stored: Monitoring data before this response
            key: The MonitorKey sent in the request
            proof: The key's monitoring proof
            tree_size: Size of the log the proof was produced for
        
        Returns:
            MonitorOutcome with the advanced monitoring data
        
        Raises:
            MalformedProofError: If the request or proof shape does not match stored
            MonitoringInvariantViolatedError: If a counter regressed or the key vanished
        """
        if list(key.entries) != stored.entries:
            raise MalformedProofError(
                f"Monitor request entries {list(key.entries)} do not match pointers {stored.entries}"
            )
        
        required = self._requirements(stored, tree_size)
        positions = sorted(required)
        if len(proof.steps) != len(positions):
            raise MalformedProofError(
                f"Monitoring proof has {len(proof.steps)} steps, expected {len(positions)}"
            )
        
        frontier = self._frontier(stored, tree_size)
        leaves: Dict[int, bytes] = {}
        counters: Dict[int, int] = {}
        for position, step in zip(positions, proof.steps):
            counter = step.prefix.counter
            if counter == 0:
                raise MonitoringInvariantViolatedError(
                    f"Monitored key missing at log position {position}"
                )
            if counter < required[position]:
                raise MonitoringInvariantViolatedError(
                    f"Counter at position {position} regressed to {counter}, "
                    f"expected at least {required[position]}"
                )
            if stored.owned and position == tree_size - 1 and counter != stored.max_counter:
                raise MonitoringInvariantViolatedError(
                    f"Owned key has counter {counter} at the end of the log, "
                    f"expected {stored.max_counter}"
                )
            prefix_root = self.prefix_verifier.evaluate(stored.index, step.prefix, True)
            leaves[position] = self.domain.log_leaf(prefix_root, step.commitment)
            counters[position] = counter
        
        ptrs: Dict[int, int] = {}
        for position, counter in stored.ptrs.items():
            path = monitoring_path(position, tree_size)
            if path:
                position = max(path)
                counter = counters[position]
            ptrs[position] = max(ptrs.get(position, 0), counter)
        if frontier is not None:
            ptrs[frontier] = max(ptrs.get(frontier, 0), counters[frontier])
        
        return MonitorOutcome(data=stored.with_pointers(ptrs), leaves=leaves)
    
    def evaluate_all(
        self,
        items: Sequence[Tuple[StoredMonitoringData, MonitorKey, MonitorProof]],
        tree_size: int,
    ) -> List[MonitorOutcome]:
        """
        Evaluate many keys, in parallel once the batch reaches the threshold.
        
        Results are returned in the order of items. The first failure is
        raised after all workers finished.
        """
        if len(items) < self.parallel_threshold:
            return [self.evaluate(stored, key, proof, tree_size) for stored, key, proof in items]
        
        logger.debug(f"Evaluating {len(items)} monitoring proofs in parallel")
        with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [
                executor.submit(self.evaluate, stored, key, proof, tree_size)
                for stored, key, proof in items
            ]
        return [future.result() for future in futures]
    
    def verify(
        self,
        stored: StoredMonitoringData,
        key: MonitorKey,
        proof: MonitorProof,
        head: TrustedHead,
        inclusion: Sequence[bytes],
    ) -> StoredMonitoringData:
        """
        Verify a single key's monitoring proof against a trusted head.
        
        Raises:
            ProofMismatchError: If the inclusion proof implies a different root
        """
        outcome = self.evaluate(stored, key, proof, head.tree_size)
        root = evaluate_batch_proof(head.tree_size, outcome.leaves, inclusion, self.domain)
        if root != head.root:
            raise ProofMismatchError("Monitoring proof does not match trusted log root")
        return outcome.data
