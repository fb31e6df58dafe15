"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Session orchestration.

SessionOrchestrator builds requests from the stored state and verifies the
matching responses. Every response is processed in the same order:

1. VRF proof -> index of the search key (search and update only)
2. Key-specific proofs -> log root implied by the response
3. Full tree head -> trusted against stored history (ConsistencyEngine)
4. One commit of the new tree heads and monitoring data

Nothing is committed unless every step succeeded.
"""

import time
from contextlib import contextmanager, nullcontext
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from kestrel.config.settings import PerformanceConfig, VerificationConfig
from kestrel.crypto.hashing import HashDomain, Sha256HashDomain
from kestrel.crypto.keys import PublicConfig
from kestrel.exceptions import (
    KestrelError,
    LogMisbehaviorError,
    MalformedProofError,
    MonitoringInvariantViolatedError,
    StateConflictError,
)
from kestrel.logging_config import (
    clear_correlation_id,
    get_logger,
    log_misbehavior,
    log_tree_head_accepted,
    log_verification,
    set_correlation_id,
)
from kestrel.merkle.log import evaluate_batch_proof
from kestrel.metrics import MetricsRegistry
from kestrel.client.state import ClientState, StateSnapshot
from kestrel.verify.consistency import ConsistencyEngine, TrustedHead
from kestrel.verify.monitor import MonitorEngine, merge_leaves
from kestrel.verify.search import BinarySearchVerifier
from kestrel.wire.messages import (
    Consistency,
    FullTreeHead,
    MonitorKey,
    MonitorProof,
    MonitorRequest,
    MonitorResponse,
    SearchRequest,
    SearchResponse,
    StoredMonitoringData,
    UpdateRequest,
    UpdateResponse,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class SearchResult:
    """A verified search: the value of search_key at version."""
    search_key: str
    value: bytes
    version: int
    position: int
    head: TrustedHead


@dataclass(frozen=True)
class UpdateResult:
    """A verified update: search_key now has version at position."""
    search_key: str
    version: int
    position: int
    head: TrustedHead


@dataclass(frozen=True)
class MonitorResult:
    head: TrustedHead
    monitoring: Dict[str, StoredMonitoringData]


def consistency_for(snapshot: StateSnapshot) -> Optional[Consistency]:
    """Consistency parameters describing the tree heads trusted in snapshot."""
    if snapshot.head is None:
        return None
    distinguished = snapshot.distinguished.tree_size if snapshot.distinguished else None
    return Consistency(last=snapshot.head.tree_size, distinguished=distinguished)


def build_search_request(
    state: ClientState, search_key: str, version: Optional[int] = None
) -> SearchRequest:
    return SearchRequest(
        search_key=search_key,
        version=version,
        consistency=consistency_for(state.snapshot()),
    )


def build_update_request(state: ClientState, search_key: str, value: bytes) -> UpdateRequest:
    return UpdateRequest(
        search_key=search_key,
        value=value,
        consistency=consistency_for(state.snapshot()),
    )


def build_monitor_request(state: ClientState) -> MonitorRequest:
    """
    Build a request covering every monitored key.
    
    Raises:
        ValueError: If no key is monitored
    """
    snapshot = state.snapshot()
    if not snapshot.monitoring:
        raise ValueError("No keys are being monitored")
    owned, contacts = [], []
    for search_key, data in sorted(snapshot.monitoring.items()):
        key = MonitorKey(search_key=search_key, entries=data.entries)
        (owned if data.owned else contacts).append(key)
    return MonitorRequest(
        owned_keys=owned,
        contact_keys=contacts,
        consistency=consistency_for(snapshot),
    )


class SessionOrchestrator:
    """
    Verifies search, update and monitor responses against a ClientState.
    
    Example:
        >>> session = SessionOrchestrator(public_config, ClientState())
        >>> request = session.search_request("alice")
        >>> result = session.verify_search(request, transport.search(request))
    """
    
    def __init__(
        self,
        public_config: PublicConfig,
        state: Optional[ClientState] = None,
        verification: Optional[VerificationConfig] = None,
        performance: Optional[PerformanceConfig] = None,
        domain: Optional[HashDomain] = None,
        clock: Optional[Callable[[], int]] = None,
        metrics: Optional[MetricsRegistry] = None,
    ):
        """
        Initialize the orchestrator.
        
        Args:
            public_config: Trusted keys and deployment mode
            state: Client state to verify against and commit to
            verification: Freshness tolerances and monitoring behavior
            performance: Parallelism of monitoring verification
            domain: Hash domain of the log
            clock: Returns the current time in milliseconds
            metrics: Registry to record verification metrics in
        """
        self.public_config = public_config
        self.state = state if state is not None else ClientState()
        self.verification = verification or VerificationConfig()
        performance = performance or PerformanceConfig()
        self.domain = domain or Sha256HashDomain()
        self.metrics = metrics
        
        self.consistency_engine = ConsistencyEngine(
            public_config, self.verification, self.domain, clock
        )
        self.search_verifier = BinarySearchVerifier(self.domain)
        self.monitor_engine = MonitorEngine(
            self.domain, performance.parallel_threshold, performance.max_workers
        )
    
    # Requests
    
    def search_request(self, search_key: str, version: Optional[int] = None) -> SearchRequest:
        return build_search_request(self.state, search_key, version)
    
    def update_request(self, search_key: str, value: bytes) -> UpdateRequest:
        return build_update_request(self.state, search_key, value)
    
    def monitor_request(self) -> MonitorRequest:
        return build_monitor_request(self.state)
    
    # Verification
    
    @contextmanager
    def _session(self, operation: str) -> Iterator[Dict[str, Any]]:
        """Correlation ID, metrics and outcome logging around one verification."""
        set_correlation_id()
        context: Dict[str, Any] = {}
        start_time = time.perf_counter()
        timer = self.metrics.time_verification(operation) if self.metrics else nullcontext()
        try:
            with timer:
                yield context
        except LogMisbehaviorError as e:
            log_misbehavior(logger, kind=type(e).__name__, detail=str(e), operation=operation)
            log_verification(
                logger, operation, False, (time.perf_counter() - start_time) * 1000,
                tree_size=context.get("tree_size"), failure_reason=type(e).__name__,
            )
            raise
        except KestrelError as e:
            log_verification(
                logger, operation, False, (time.perf_counter() - start_time) * 1000,
                tree_size=context.get("tree_size"), failure_reason=type(e).__name__,
                detail=str(e),
            )
            raise
        else:
            log_verification(
                logger, operation, True, (time.perf_counter() - start_time) * 1000,
                tree_size=context.get("tree_size"),
            )
        finally:
            clear_correlation_id()
    
    def _check_request(self, consistency: Optional[Consistency], snapshot: StateSnapshot) -> None:
        if consistency != consistency_for(snapshot):
            raise StateConflictError(
                "Request was built against a different trusted tree head"
            )
    
    def _index(self, search_key: str, vrf_proof: bytes, snapshot: StateSnapshot) -> bytes:
        index = self.public_config.vrf_verifier.verify(search_key.encode("utf-8"), vrf_proof)
        stored = snapshot.monitoring.get(search_key)
        if stored is not None and stored.index != index:
            raise MonitoringInvariantViolatedError(
                f"VRF output for monitored key '{search_key}' changed"
            )
        return index
    
    def _trust(self, snapshot: StateSnapshot, full_tree_head: FullTreeHead, root: bytes) -> TrustedHead:
        head = self.consistency_engine.verify(
            snapshot.head,
            full_tree_head,
            root,
            distinguished=snapshot.distinguished,
            last_auditor=snapshot.auditor_head,
        )
        log_tree_head_accepted(
            logger,
            tree_size=head.tree_size,
            timestamp=head.timestamp,
            root=head.root.hex(),
            prior_size=snapshot.head.tree_size if snapshot.head else None,
        )
        return head
    
    def _commit(
        self,
        snapshot: StateSnapshot,
        head: TrustedHead,
        monitoring: Dict[str, StoredMonitoringData],
    ) -> None:
        distinguished = None
        if (
            snapshot.distinguished is None
            or head.timestamp - snapshot.distinguished.timestamp
            >= self.verification.distinguished_interval_ms
        ):
            distinguished = head.to_stored()
        
        committed = self.state.commit(
            snapshot,
            head.to_stored(),
            distinguished=distinguished,
            auditor_head=head.auditor_tree_head,
            monitoring=monitoring,
        )
        
        if self.metrics:
            owned = sum(1 for data in committed.monitoring.values() if data.owned)
            self.metrics.set_trusted_state(
                head.tree_size, owned, len(committed.monitoring) - owned
            )
    
    def verify_search(self, request: SearchRequest, response: SearchResponse) -> SearchResult:
        """
        Verify a search response and commit the new trusted state.
        
        Returns:
            SearchResult with the verified value
        
        Raises:
            VerificationError: If any proof or the tree head is rejected
            StateConflictError: If the state changed since the request was built
        """
        with self._session("search") as context:
            snapshot = self.state.snapshot()
            self._check_request(request.consistency, snapshot)
            tree_size = response.tree_head.tree_head.tree_size
            context["tree_size"] = tree_size
            self.consistency_engine.check_freshness(snapshot.head, response.tree_head.tree_head)
            
            index = self._index(request.search_key, response.vrf_proof, snapshot)
            outcome = self.search_verifier.evaluate(
                tree_size,
                index,
                request.search_key.encode("utf-8"),
                response.search,
                response.opening,
                response.value.value,
                request.version,
            )
            head = self._trust(snapshot, response.tree_head, outcome.root)
            
            monitoring: Dict[str, StoredMonitoringData] = {}
            existing = snapshot.monitoring.get(request.search_key)
            if existing is not None:
                monitoring[request.search_key] = existing.with_pointer(
                    outcome.position, outcome.counter
                )
            elif self.verification.monitor_searched_keys:
                monitoring[request.search_key] = StoredMonitoringData(
                    index=index,
                    pos=outcome.position,
                    ptrs={outcome.position: outcome.counter},
                    owned=False,
                )
            
            self._commit(snapshot, head, monitoring)
            return SearchResult(
                search_key=request.search_key,
                value=response.value.value,
                version=outcome.version,
                position=outcome.position,
                head=head,
            )
    
    def verify_update(self, request: UpdateRequest, response: UpdateResponse) -> UpdateResult:
        """
        Verify that an update was applied and start monitoring the key as owned.
        
        Raises:
            MonitoringInvariantViolatedError: If the update did not create a new version
            VerificationError: If any proof or the tree head is rejected
            StateConflictError: If the state changed since the request was built
        """
        with self._session("update") as context:
            snapshot = self.state.snapshot()
            self._check_request(request.consistency, snapshot)
            tree_size = response.tree_head.tree_head.tree_size
            context["tree_size"] = tree_size
            self.consistency_engine.check_freshness(snapshot.head, response.tree_head.tree_head)
            
            index = self._index(request.search_key, response.vrf_proof, snapshot)
            outcome = self.search_verifier.evaluate(
                tree_size,
                index,
                request.search_key.encode("utf-8"),
                response.search,
                response.opening,
                request.value,
            )
            
            existing = snapshot.monitoring.get(request.search_key)
            if existing is not None and outcome.counter <= existing.max_counter:
                raise MonitoringInvariantViolatedError(
                    f"Update of '{request.search_key}' produced version {outcome.version}, "
                    f"already known version {existing.max_counter - 1}"
                )
            
            head = self._trust(snapshot, response.tree_head, outcome.root)
            
            if existing is not None:
                data = replace(
                    existing.with_pointer(outcome.position, outcome.counter), owned=True
                )
            else:
                data = StoredMonitoringData(
                    index=index,
                    pos=outcome.position,
                    ptrs={outcome.position: outcome.counter},
                    owned=True,
                )
            
            self._commit(snapshot, head, {request.search_key: data})
            return UpdateResult(
                search_key=request.search_key,
                version=outcome.version,
                position=outcome.position,
                head=head,
            )
    
    def _monitor_items(
        self,
        snapshot: StateSnapshot,
        keys: List[MonitorKey],
        proofs: List[MonitorProof],
        owned: bool,
    ) -> List[Tuple[StoredMonitoringData, MonitorKey, MonitorProof]]:
        if len(keys) != len(proofs):
            raise MalformedProofError(
                f"{len(proofs)} monitoring proofs for {len(keys)} {'owned' if owned else 'contact'} keys"
            )
        items = []
        for key, proof in zip(keys, proofs):
            stored = snapshot.monitoring.get(key.search_key)
            if stored is None or stored.owned != owned:
                raise StateConflictError(
                    f"Key '{key.search_key}' is not monitored as {'owned' if owned else 'contact'}"
                )
            items.append((stored, key, proof))
        return items
    
    def verify_monitor(self, request: MonitorRequest, response: MonitorResponse) -> MonitorResult:
        """
        Verify a monitoring response for every key in request.
        
        All keys share one batch inclusion proof; they are accepted or
        rejected together.
        
        Raises:
            StaleTreeHeadError: If the response is for an older tree head
            MonitoringInvariantViolatedError: If any key's history regressed
            VerificationError: If any proof or the tree head is rejected
            StateConflictError: If the state changed since the request was built
        """
        with self._session("monitor") as context:
            snapshot = self.state.snapshot()
            self._check_request(request.consistency, snapshot)
            tree_size = response.tree_head.tree_head.tree_size
            context["tree_size"] = tree_size
            self.consistency_engine.check_freshness(snapshot.head, response.tree_head.tree_head)
            
            items = (
                self._monitor_items(snapshot, request.owned_keys, response.owned_proofs, True)
                + self._monitor_items(snapshot, request.contact_keys, response.contact_proofs, False)
            )
            if not items:
                raise MalformedProofError("Monitor request names no keys")
            
            outcomes = self.monitor_engine.evaluate_all(items, tree_size)
            root = evaluate_batch_proof(
                tree_size, merge_leaves(outcomes), response.inclusion, self.domain
            )
            head = self._trust(snapshot, response.tree_head, root)
            
            monitoring = {
                key.search_key: outcome.data
                for (_, key, _), outcome in zip(items, outcomes)
            }
            self._commit(snapshot, head, monitoring)
            return MonitorResult(head=head, monitoring=monitoring)
