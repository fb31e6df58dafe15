"""
In-memory key transparency log for tests.

Builds real prefix trees, log trees, signatures and VRF proofs so that the
verifiers can be exercised against honest responses, and against responses
tampered with after the fact.
"""

import os
from bisect import bisect_left
from dataclasses import dataclass
from typing import Dict, List, Optional

from cryptography.hazmat.primitives.asymmetric import ed25519, rsa

from kestrel.config.settings import DeploymentMode
from kestrel.crypto.hashing import Sha256HashDomain
from kestrel.crypto.keys import PublicConfig
from kestrel.crypto.signatures import (
    Ed25519SignatureVerifier,
    TreeHeadRole,
    tree_head_signing_input,
)
from kestrel.crypto.vrf import RsaFdhVrfVerifier
from kestrel.merkle.log import search_path, split_point
from kestrel.merkle.prefix import index_bit
from kestrel.verify.monitor import monitoring_path
from kestrel.wire.messages import (
    AuditorTreeHead,
    Consistency,
    FullTreeHead,
    MonitorKey,
    MonitorProof,
    MonitorRequest,
    MonitorResponse,
    PrefixProof,
    ProofStep,
    SearchProof,
    SearchRequest,
    SearchResponse,
    TreeHead,
    UpdateRequest,
    UpdateResponse,
    UpdateValue,
)

DOMAIN = Sha256HashDomain()
INDEX_BITS = 256
START_TIME_MS = 1_760_000_000_000


class VrfProver:
    """RSA-FDH-VRF prover matching RsaFdhVrfVerifier."""

    def __init__(self, private_key: rsa.RSAPrivateKey):
        self.verifier = RsaFdhVrfVerifier(private_key.public_key())
        numbers = private_key.private_numbers()
        self._d = numbers.d
        self._n = numbers.public_numbers.n

    def prove(self, alpha: bytes) -> bytes:
        m = int.from_bytes(self.verifier.encode_input(alpha), "big")
        return pow(m, self._d, self._n).to_bytes(self.verifier.modulus_size, "big")

    def index(self, search_key: str) -> bytes:
        return self.verifier.proof_to_hash(self.prove(search_key.encode("utf-8")))


def _empty_subtrees() -> List[bytes]:
    empty = [b""] * (INDEX_BITS + 1)
    empty[INDEX_BITS] = DOMAIN.prefix_empty()
    for depth in range(INDEX_BITS - 1, -1, -1):
        empty[depth] = DOMAIN.prefix_inner(empty[depth + 1], empty[depth + 1])
    return empty


EMPTY_SUBTREES = _empty_subtrees()


class PrefixTree:
    """Full-depth sparse Merkle tree of index -> version counter."""

    def __init__(self, counters: Dict[bytes, int]):
        self.counters = dict(counters)
        self._root: Optional[bytes] = None

    def _hash(self, indexes: List[bytes], depth: int) -> bytes:
        if not indexes:
            return EMPTY_SUBTREES[depth]
        if depth == INDEX_BITS:
            return DOMAIN.prefix_leaf(indexes[0], self.counters[indexes[0]])
        left = [i for i in indexes if not index_bit(i, depth)]
        right = [i for i in indexes if index_bit(i, depth)]
        return DOMAIN.prefix_inner(self._hash(left, depth + 1), self._hash(right, depth + 1))

    def root(self) -> bytes:
        if self._root is None:
            self._root = self._hash(sorted(self.counters), 0)
        return self._root

    def proof(self, index: bytes) -> PrefixProof:
        siblings = []
        indexes = sorted(self.counters)
        for depth in range(INDEX_BITS):
            bit = index_bit(index, depth)
            same = [i for i in indexes if index_bit(i, depth) == bit]
            other = [i for i in indexes if index_bit(i, depth) != bit]
            siblings.append(self._hash(other, depth + 1))
            indexes = same
        return PrefixProof(proof=list(reversed(siblings)), counter=self.counters.get(index, 0))


class MerkleLog:
    """Left-balanced Merkle tree over a list of leaf hashes."""

    def __init__(self, leaves: Optional[List[bytes]] = None):
        self.leaves: List[bytes] = list(leaves or [])
        self._cache: Dict[tuple, bytes] = {}

    def append(self, leaf: bytes) -> None:
        self.leaves.append(leaf)

    def mth(self, start: int, end: int) -> bytes:
        key = (start, end)
        if key not in self._cache:
            if end - start == 1:
                value = self.leaves[start]
            else:
                middle = start + split_point(end - start)
                value = DOMAIN.log_inner(self.mth(start, middle), self.mth(middle, end))
            self._cache[key] = value
        return self._cache[key]

    def root(self, size: Optional[int] = None) -> bytes:
        return self.mth(0, len(self.leaves) if size is None else size)

    def inclusion_proof(self, size: int, positions) -> List[bytes]:
        positions = sorted(set(positions))
        proof: List[bytes] = []

        def walk(start: int, end: int, lo: int, hi: int) -> None:
            if end - start == 1:
                return
            middle = start + split_point(end - start)
            split = bisect_left(positions, middle, lo, hi)
            if split == lo:
                walk(middle, end, lo, hi)
                proof.append(self.mth(start, middle))
            elif split == hi:
                walk(start, middle, lo, hi)
                proof.append(self.mth(middle, end))
            else:
                walk(start, middle, lo, split)
                walk(middle, end, split, hi)

        walk(0, size, 0, len(positions))
        return proof

    def consistency_proof(self, old_size: int, new_size: int) -> List[bytes]:
        if old_size == 0 or old_size == new_size:
            return []
        return self._subproof(old_size, 0, new_size, True)

    def _subproof(self, m: int, start: int, end: int, complete: bool) -> List[bytes]:
        n = end - start
        if m == n:
            return [] if complete else [self.mth(start, end)]
        k = split_point(n)
        if m <= k:
            return self._subproof(m, start, start + k, complete) + [self.mth(start + k, end)]
        return self._subproof(m - k, start + k, end, False) + [self.mth(start, start + k)]


@dataclass
class LogEntry:
    search_key: str
    index: bytes
    value: bytes
    opening: bytes
    commitment: bytes
    tree: PrefixTree
    leaf: bytes


class LogSimulator:
    """
    Honest key transparency log.

    Keys:
        signing_key: Ed25519 operator key
        vrf: VRF prover (RSA key shared across the test session)
        auditor_key: Optional Ed25519 auditor key
    """

    def __init__(
        self,
        vrf_key: rsa.RSAPrivateKey,
        signing_key: Optional[ed25519.Ed25519PrivateKey] = None,
        auditor_key: Optional[ed25519.Ed25519PrivateKey] = None,
    ):
        self.vrf = VrfProver(vrf_key)
        self.signing_key = signing_key or ed25519.Ed25519PrivateKey.generate()
        self.auditor_key = auditor_key
        self.audited_size: Optional[int] = None
        self.now_ms = START_TIME_MS
        self.entries: List[LogEntry] = []
        self._counters: Dict[bytes, int] = {}
        self.log = MerkleLog()
        self._filler = 0

    # Keys

    def public_config(self, mode: DeploymentMode = DeploymentMode.CONTACT_MONITORING) -> PublicConfig:
        auditor = None
        if self.auditor_key is not None:
            auditor = Ed25519SignatureVerifier(self.auditor_key.public_key())
        return PublicConfig(
            mode=mode,
            signature_verifier=Ed25519SignatureVerifier(self.signing_key.public_key()),
            vrf_verifier=self.vrf.verifier,
            auditor_verifier=auditor,
        )

    def clock(self) -> int:
        return self.now_ms

    def advance(self, ms: int = 1000) -> None:
        self.now_ms += ms

    # Log contents

    @property
    def size(self) -> int:
        return len(self.entries)

    def append(self, search_key: str, value: bytes) -> int:
        """Add a new version of search_key; returns its log position."""
        index = self.vrf.index(search_key)
        self._counters[index] = self._counters.get(index, 0) + 1
        tree = PrefixTree(self._counters)
        opening = os.urandom(16)
        commitment = DOMAIN.commit(search_key.encode("utf-8"), value, opening)
        leaf = DOMAIN.log_leaf(tree.root(), commitment)
        self.entries.append(LogEntry(search_key, index, value, opening, commitment, tree, leaf))
        self.log.append(leaf)
        return len(self.entries) - 1

    def add_filler(self, count: int) -> None:
        for _ in range(count):
            self._filler += 1
            self.append(f"filler-{self._filler}", b"filler")

    # Log tree

    def root(self, size: Optional[int] = None) -> bytes:
        return self.log.root(size)

    def inclusion_proof(self, size: int, positions) -> List[bytes]:
        return self.log.inclusion_proof(size, positions)

    def consistency_proof(self, old_size: int, new_size: int) -> List[bytes]:
        return self.log.consistency_proof(old_size, new_size)

    # Tree heads

    def sign(self, size: int, timestamp: int, root: bytes, role=TreeHeadRole.OPERATOR) -> bytes:
        key = self.signing_key if role == TreeHeadRole.OPERATOR else self.auditor_key
        return key.sign(tree_head_signing_input(role, size, timestamp, root))

    def tree_head(self, size: Optional[int] = None, timestamp: Optional[int] = None) -> TreeHead:
        size = self.size if size is None else size
        timestamp = self.now_ms if timestamp is None else timestamp
        return TreeHead(
            tree_size=size,
            timestamp=timestamp,
            signature=self.sign(size, timestamp, self.root(size)),
        )

    def full_tree_head(
        self,
        consistency: Optional[Consistency],
        size: Optional[int] = None,
        timestamp: Optional[int] = None,
    ) -> FullTreeHead:
        size = self.size if size is None else size
        head = self.tree_head(size, timestamp)
        full = FullTreeHead(tree_head=head)
        if consistency is not None:
            if consistency.last <= size:
                full.consistency = self.consistency_proof(consistency.last, size)
            if consistency.distinguished is not None and consistency.distinguished <= size:
                full.distinguished = self.consistency_proof(consistency.distinguished, size)
        if self.auditor_key is not None:
            full.auditor_tree_head = self.auditor_tree_head(size, head.timestamp)
        return full

    def auditor_tree_head(self, size: int, timestamp: int) -> AuditorTreeHead:
        audited = min(self.audited_size or size, size)
        auditor_root = self.root(audited)
        head = TreeHead(
            tree_size=audited,
            timestamp=timestamp,
            signature=self.sign(audited, timestamp, auditor_root, TreeHeadRole.AUDITOR),
        )
        if audited == size:
            return AuditorTreeHead(tree_head=head)
        return AuditorTreeHead(
            tree_head=head,
            root_value=auditor_root,
            consistency=self.consistency_proof(audited, size),
        )

    # Responses

    def step(self, position: int, index: bytes) -> ProofStep:
        entry = self.entries[position]
        return ProofStep(prefix=entry.tree.proof(index), commitment=entry.commitment)

    def _counter_at(self, position: int, index: bytes) -> int:
        return self.entries[position].tree.counters.get(index, 0)

    def search_proof(self, search_key: str, size: int, version: Optional[int]) -> SearchProof:
        index = self.vrf.index(search_key)
        if version is None:
            target = self._counter_at(size - 1, index)
            if target == 0:
                raise KeyError(search_key)
        else:
            target = version + 1
        pos = next(
            p for p in range(size) if self._counter_at(p, index) >= target
        )
        positions = search_path(size, pos)
        steps = [self.step(p, index) for p in positions]
        if version is None:
            steps.insert(0, self.step(size - 1, index))
            positions = positions + [size - 1]
        return SearchProof(
            pos=pos,
            steps=steps,
            inclusion=self.inclusion_proof(size, positions),
        )

    def search(
        self,
        request: SearchRequest,
        size: Optional[int] = None,
        timestamp: Optional[int] = None,
    ) -> SearchResponse:
        size = self.size if size is None else size
        proof = self.search_proof(request.search_key, size, request.version)
        entry = self.entries[proof.pos]
        return SearchResponse(
            tree_head=self.full_tree_head(request.consistency, size, timestamp),
            vrf_proof=self.vrf.prove(request.search_key.encode("utf-8")),
            search=proof,
            opening=entry.opening,
            value=UpdateValue(value=entry.value),
        )

    def update(self, request: UpdateRequest) -> UpdateResponse:
        position = self.append(request.search_key, request.value)
        proof = self.search_proof(request.search_key, self.size, None)
        return UpdateResponse(
            tree_head=self.full_tree_head(request.consistency),
            vrf_proof=self.vrf.prove(request.search_key.encode("utf-8")),
            search=proof,
            opening=self.entries[position].opening,
        )

    def monitor_positions(self, key: MonitorKey, size: int, owned: bool) -> List[int]:
        positions = set()
        for entry in key.entries:
            positions.update(monitoring_path(entry, size))
        if owned and size - 1 > max(key.entries):
            positions.add(size - 1)
        if not positions:
            positions.add(size - 1)
        return sorted(positions)

    def monitor(
        self,
        request: MonitorRequest,
        size: Optional[int] = None,
        timestamp: Optional[int] = None,
    ) -> MonitorResponse:
        size = self.size if size is None else size
        covered = set()

        def proof_for(key: MonitorKey, owned: bool) -> MonitorProof:
            index = self.vrf.index(key.search_key)
            positions = self.monitor_positions(key, size, owned)
            covered.update(positions)
            return MonitorProof(steps=[self.step(p, index) for p in positions])

        owned_proofs = [proof_for(key, True) for key in request.owned_keys]
        contact_proofs = [proof_for(key, False) for key in request.contact_keys]
        return MonitorResponse(
            tree_head=self.full_tree_head(request.consistency, size, timestamp),
            owned_proofs=owned_proofs,
            contact_proofs=contact_proofs,
            inclusion=self.inclusion_proof(size, covered) if covered else [],
        )
