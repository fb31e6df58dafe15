"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Tree head verification.

Decides whether the full tree head in a response can be trusted given the
client's stored history: it must not regress, must be fresh, must carry a
valid operator signature, must be provably consistent with the last trusted
head and the distinguished head, and, where an auditor is involved, must be
vouched for by a consistent auditor tree head.
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional

from kestrel.config.settings import DeploymentMode, VerificationConfig
from kestrel.crypto.hashing import HashDomain, Sha256HashDomain
from kestrel.crypto.keys import PublicConfig
from kestrel.crypto.signatures import TreeHeadRole
from kestrel.exceptions import (
    ClockSkewError,
    MalformedProofError,
    SignatureInvalidError,
    StaleTreeHeadError,
)
from kestrel.logging_config import get_logger
from kestrel.merkle.log import verify_consistency
from kestrel.wire.messages import AuditorTreeHead, FullTreeHead, StoredTreeHead, TreeHead

logger = get_logger(__name__)


def current_time_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class TrustedHead:
    """
    A tree head that passed verification, with the root it commits to.
    
    Attributes:
        tree_head: Operator-signed tree head
        root: Log root at tree_head.tree_size
        auditor_tree_head: Auditor-signed tree head accepted with it, if any
    """
    tree_head: TreeHead
    root: bytes
    auditor_tree_head: Optional[TreeHead] = None
    
    @property
    def tree_size(self) -> int:
        return self.tree_head.tree_size
    
    @property
    def timestamp(self) -> int:
        return self.tree_head.timestamp
    
    def to_stored(self) -> StoredTreeHead:
        return StoredTreeHead(tree_head=self.tree_head, root=self.root)


class ConsistencyEngine:
    """
    Verifies incoming full tree heads against stored history.
    
    The engine holds no state of its own; callers pass the stored heads in
    and commit the returned TrustedHead themselves.
    """
    
    def __init__(
        self,
        public_config: PublicConfig,
        settings: Optional[VerificationConfig] = None,
        domain: Optional[HashDomain] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        """
        Initialize the engine.
        
        Args:
            public_config: Trusted keys and deployment mode
            settings: Clock and freshness tolerances
            domain: Hash domain of the log tree
            clock: Returns the current time in milliseconds
        """
        self.public_config = public_config
        self.settings = settings or VerificationConfig()
        self.domain = domain or Sha256HashDomain()
        self.clock = clock or current_time_ms
    
    def verify(
        self,
        prior: Optional[StoredTreeHead],
        incoming: FullTreeHead,
        root: bytes,
        distinguished: Optional[StoredTreeHead] = None,
        last_auditor: Optional[TreeHead] = None,
    ) -> TrustedHead:
        """
        Verify an incoming full tree head.
        
        Args:
            prior: Last trusted tree head, None on first contact
            incoming: Full tree head from the response
            root: Log root computed from the response's key-specific proofs
            distinguished: Stored distinguished tree head, if any
            last_auditor: Last accepted auditor tree head, if any
        
        Returns:
            TrustedHead for the incoming tree head
        
        Raises:
            StaleTreeHeadError: If the head regresses or is too old
            ClockSkewError: If the head is too far in the future
            SignatureInvalidError: If a signature does not verify
            MalformedProofError: If a proof has the wrong shape
            ProofMismatchError: If a consistency proof does not hold
        """
        head = incoming.tree_head
        if head.tree_size <= 0:
            raise MalformedProofError("Tree head describes an empty log")
        
        self.check_freshness(prior, head)
        
        if not self.public_config.signature_verifier.verify_tree_head(
            TreeHeadRole.OPERATOR, head.tree_size, head.timestamp, root, head.signature
        ):
            raise SignatureInvalidError(
                f"Operator signature invalid for tree size {head.tree_size}"
            )
        
        if prior is None:
            if incoming.consistency:
                raise MalformedProofError("Unexpected consistency proof on first contact")
        else:
            verify_consistency(
                prior.tree_size, head.tree_size, prior.root, root,
                incoming.consistency, self.domain,
            )
        
        if distinguished is None:
            if incoming.distinguished:
                raise MalformedProofError("Unexpected distinguished consistency proof")
        else:
            if distinguished.tree_size > head.tree_size:
                raise StaleTreeHeadError(
                    f"Tree size {head.tree_size} is behind distinguished head "
                    f"{distinguished.tree_size}"
                )
            verify_consistency(
                distinguished.tree_size, head.tree_size, distinguished.root, root,
                incoming.distinguished, self.domain,
            )
        
        auditor_head = self._verify_auditor(head, root, incoming.auditor_tree_head, last_auditor)
        
        return TrustedHead(tree_head=head, root=root, auditor_tree_head=auditor_head)
    
    def check_freshness(self, prior: Optional[StoredTreeHead], head: TreeHead) -> None:
        """
        Check an incoming tree head against the last trusted head and the clock.
        
        Needs no proofs, so callers run it before evaluating anything else.
        
        Raises:
            StaleTreeHeadError: If the head regresses or is too old
            ClockSkewError: If the head is too far in the future
        """
        if prior is not None:
            if head.tree_size < prior.tree_size:
                raise StaleTreeHeadError(
                    f"Tree size regressed from {prior.tree_size} to {head.tree_size}"
                )
            if head.timestamp < prior.timestamp:
                raise StaleTreeHeadError(
                    f"Tree head timestamp regressed from {prior.timestamp} to {head.timestamp}"
                )
        
        now = self.clock()
        if head.timestamp > now + self.settings.max_ahead_ms:
            raise ClockSkewError(
                f"Tree head timestamp {head.timestamp} is {head.timestamp - now}ms ahead"
            )
        if now - head.timestamp > self.settings.max_behind_ms:
            raise StaleTreeHeadError(
                f"Tree head timestamp {head.timestamp} is {now - head.timestamp}ms old"
            )
    
    def _verify_auditor(
        self,
        head: TreeHead,
        root: bytes,
        auditor: Optional[AuditorTreeHead],
        last_auditor: Optional[TreeHead],
    ) -> Optional[TreeHead]:
        verifier = self.public_config.auditor_verifier
        
        if auditor is None:
            if self.public_config.mode == DeploymentMode.THIRD_PARTY_AUDITING:
                raise MalformedProofError("Missing auditor tree head")
            return None
        if verifier is None:
            raise MalformedProofError("Auditor tree head present but no auditor is configured")
        
        auditor_head = auditor.tree_head
        if auditor_head.tree_size <= 0 or auditor_head.tree_size > head.tree_size:
            raise MalformedProofError(
                f"Auditor tree size {auditor_head.tree_size} invalid for log size {head.tree_size}"
            )
        
        if auditor_head.tree_size == head.tree_size:
            if auditor.root_value is not None or auditor.consistency:
                raise MalformedProofError(
                    "Auditor head for the same tree size must not carry a root or proof"
                )
            auditor_root = root
        else:
            if auditor.root_value is None:
                raise MalformedProofError("Auditor head for an older tree size needs its root")
            auditor_root = auditor.root_value
            verify_consistency(
                auditor_head.tree_size, head.tree_size, auditor_root, root,
                auditor.consistency, self.domain,
            )
        
        if not verifier.verify_tree_head(
            TreeHeadRole.AUDITOR, auditor_head.tree_size, auditor_head.timestamp,
            auditor_root, auditor_head.signature,
        ):
            raise SignatureInvalidError(
                f"Auditor signature invalid for tree size {auditor_head.tree_size}"
            )
        
        if last_auditor is not None and (
            auditor_head.tree_size < last_auditor.tree_size
            or auditor_head.timestamp < last_auditor.timestamp
        ):
            raise StaleTreeHeadError(
                f"Auditor tree head regressed from size {last_auditor.tree_size} "
                f"to {auditor_head.tree_size}"
            )
        
        if head.timestamp - auditor_head.timestamp > self.settings.max_auditor_lag_ms:
            raise StaleTreeHeadError(
                f"Auditor tree head lags the log by {head.timestamp - auditor_head.timestamp}ms"
            )
        
        return auditor_head
