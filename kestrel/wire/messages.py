"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Wire and storage messages of the key transparency protocol.

Each message is a dataclass mirroring one protobuf message field for field.
to_dict() and from_dict() convert to and from the proto3 JSON mapping
(original field names, base64 for bytes), which is what the codec feeds
through the protobuf runtime.
"""

import base64
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _unb64(value: Optional[str]) -> bytes:
    if not value:
        return b""
    return base64.b64decode(value)


def _b64_list(items: List[bytes]) -> List[str]:
    return [_b64(item) for item in items]


def _unb64_list(values: Optional[List[str]]) -> List[bytes]:
    return [_unb64(value) for value in values or []]


@dataclass
class TreeHead:
    """Operator (or auditor) signature on one version of the log."""
    tree_size: int = 0
    timestamp: int = 0
    signature: bytes = b""
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "tree_size": self.tree_size,
            "timestamp": self.timestamp,
            "signature": _b64(self.signature),
        }
    
    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TreeHead":
        return cls(
            tree_size=int(data.get("tree_size", 0)),
            timestamp=int(data.get("timestamp", 0)),
            signature=_unb64(data.get("signature")),
        )


@dataclass
class AuditorTreeHead:
    """
    Tree head signed by a third-party auditor.
    
    root_value is set only when the auditor's tree is smaller than the
    operator's; consistency then proves the auditor's root extends to the
    operator's.
    """
    tree_head: TreeHead = field(default_factory=TreeHead)
    root_value: Optional[bytes] = None
    consistency: List[bytes] = field(default_factory=list)
    
    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "tree_head": self.tree_head.to_dict(),
            "consistency": _b64_list(self.consistency),
        }
        if self.root_value is not None:
            data["root_value"] = _b64(self.root_value)
        return data
    
    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AuditorTreeHead":
        root_value = data.get("root_value")
        return cls(
            tree_head=TreeHead.from_dict(data.get("tree_head") or {}),
            root_value=_unb64(root_value) if root_value is not None else None,
            consistency=_unb64_list(data.get("consistency")),
        )


@dataclass
class FullTreeHead:
    """A tree head plus the proofs needed to trust it."""
    tree_head: TreeHead = field(default_factory=TreeHead)
    distinguished: List[bytes] = field(default_factory=list)
    consistency: List[bytes] = field(default_factory=list)
    auditor_tree_head: Optional[AuditorTreeHead] = None
    
    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "tree_head": self.tree_head.to_dict(),
            "distinguished": _b64_list(self.distinguished),
            "consistency": _b64_list(self.consistency),
        }
        if self.auditor_tree_head is not None:
            data["auditor_tree_head"] = self.auditor_tree_head.to_dict()
        return data
    
    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FullTreeHead":
        auditor = data.get("auditor_tree_head")
        return cls(
            tree_head=TreeHead.from_dict(data.get("tree_head") or {}),
            distinguished=_unb64_list(data.get("distinguished")),
            consistency=_unb64_list(data.get("consistency")),
            auditor_tree_head=AuditorTreeHead.from_dict(auditor) if auditor is not None else None,
        )


@dataclass
class PrefixProof:
    """Prefix-tree proof for one search key: sibling hashes and version counter."""
    proof: List[bytes] = field(default_factory=list)
    counter: int = 0
    
    def to_dict(self) -> Dict[str, Any]:
        return {"proof": _b64_list(self.proof), "counter": self.counter}
    
    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PrefixProof":
        return cls(
            proof=_unb64_list(data.get("proof")),
            counter=int(data.get("counter", 0)),
        )


@dataclass
class ProofStep:
    prefix: PrefixProof = field(default_factory=PrefixProof)
    commitment: bytes = b""
    
    def to_dict(self) -> Dict[str, Any]:
        return {"prefix": self.prefix.to_dict(), "commitment": _b64(self.commitment)}
    
    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProofStep":
        return cls(
            prefix=PrefixProof.from_dict(data.get("prefix") or {}),
            commitment=_unb64(data.get("commitment")),
        )


@dataclass
class SearchProof:
    """Binary search through the log: target position, steps, batch inclusion."""
    pos: int = 0
    steps: List[ProofStep] = field(default_factory=list)
    inclusion: List[bytes] = field(default_factory=list)
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "pos": self.pos,
            "steps": [step.to_dict() for step in self.steps],
            "inclusion": _b64_list(self.inclusion),
        }
    
    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SearchProof":
        return cls(
            pos=int(data.get("pos", 0)),
            steps=[ProofStep.from_dict(step) for step in data.get("steps") or []],
            inclusion=_unb64_list(data.get("inclusion")),
        )


@dataclass
class UpdateValue:
    value: bytes = b""
    
    def to_dict(self) -> Dict[str, Any]:
        return {"value": _b64(self.value)}
    
    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UpdateValue":
        return cls(value=_unb64(data.get("value")))


@dataclass
class Consistency:
    """Tree sizes the client already trusts, so the log can prove consistency."""
    last: int = 0
    distinguished: Optional[int] = None
    
    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"last": self.last}
        if self.distinguished is not None:
            data["distinguished"] = self.distinguished
        return data
    
    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Consistency":
        distinguished = data.get("distinguished")
        return cls(
            last=int(data.get("last", 0)),
            distinguished=int(distinguished) if distinguished is not None else None,
        )


def _consistency_to(data: Dict[str, Any], consistency: Optional[Consistency]) -> Dict[str, Any]:
    if consistency is not None:
        data["consistency"] = consistency.to_dict()
    return data


def _consistency_from(data: Mapping[str, Any]) -> Optional[Consistency]:
    consistency = data.get("consistency")
    return Consistency.from_dict(consistency) if consistency is not None else None


@dataclass
class SearchRequest:
    search_key: str = ""
    version: Optional[int] = None
    consistency: Optional[Consistency] = None
    
    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"search_key": self.search_key}
        if self.version is not None:
            data["version"] = self.version
        return _consistency_to(data, self.consistency)
    
    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SearchRequest":
        version = data.get("version")
        return cls(
            search_key=data.get("search_key", ""),
            version=int(version) if version is not None else None,
            consistency=_consistency_from(data),
        )


@dataclass
class SearchResponse:
    tree_head: FullTreeHead = field(default_factory=FullTreeHead)
    vrf_proof: bytes = b""
    search: SearchProof = field(default_factory=SearchProof)
    opening: bytes = b""
    value: UpdateValue = field(default_factory=UpdateValue)
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "tree_head": self.tree_head.to_dict(),
            "vrf_proof": _b64(self.vrf_proof),
            "search": self.search.to_dict(),
            "opening": _b64(self.opening),
            "value": self.value.to_dict(),
        }
    
    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SearchResponse":
        return cls(
            tree_head=FullTreeHead.from_dict(data.get("tree_head") or {}),
            vrf_proof=_unb64(data.get("vrf_proof")),
            search=SearchProof.from_dict(data.get("search") or {}),
            opening=_unb64(data.get("opening")),
            value=UpdateValue.from_dict(data.get("value") or {}),
        )


@dataclass
class UpdateRequest:
    search_key: str = ""
    value: bytes = b""
    consistency: Optional[Consistency] = None
    
    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"search_key": self.search_key, "value": _b64(self.value)}
        return _consistency_to(data, self.consistency)
    
    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UpdateRequest":
        return cls(
            search_key=data.get("search_key", ""),
            value=_unb64(data.get("value")),
            consistency=_consistency_from(data),
        )


@dataclass
class UpdateResponse:
    tree_head: FullTreeHead = field(default_factory=FullTreeHead)
    vrf_proof: bytes = b""
    search: SearchProof = field(default_factory=SearchProof)
    opening: bytes = b""
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "tree_head": self.tree_head.to_dict(),
            "vrf_proof": _b64(self.vrf_proof),
            "search": self.search.to_dict(),
            "opening": _b64(self.opening),
        }
    
    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UpdateResponse":
        return cls(
            tree_head=FullTreeHead.from_dict(data.get("tree_head") or {}),
            vrf_proof=_unb64(data.get("vrf_proof")),
            search=SearchProof.from_dict(data.get("search") or {}),
            opening=_unb64(data.get("opening")),
        )


@dataclass
class MonitorKey:
    """A monitored key and the log positions of its stored pointers."""
    search_key: str = ""
    entries: List[int] = field(default_factory=list)
    
    def to_dict(self) -> Dict[str, Any]:
        return {"search_key": self.search_key, "entries": list(self.entries)}
    
    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MonitorKey":
        return cls(
            search_key=data.get("search_key", ""),
            entries=[int(entry) for entry in data.get("entries") or []],
        )


@dataclass
class MonitorRequest:
    owned_keys: List[MonitorKey] = field(default_factory=list)
    contact_keys: List[MonitorKey] = field(default_factory=list)
    consistency: Optional[Consistency] = None
    
    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "owned_keys": [key.to_dict() for key in self.owned_keys],
            "contact_keys": [key.to_dict() for key in self.contact_keys],
        }
        return _consistency_to(data, self.consistency)
    
    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MonitorRequest":
        return cls(
            owned_keys=[MonitorKey.from_dict(key) for key in data.get("owned_keys") or []],
            contact_keys=[MonitorKey.from_dict(key) for key in data.get("contact_keys") or []],
            consistency=_consistency_from(data),
        )


@dataclass
class MonitorProof:
    steps: List[ProofStep] = field(default_factory=list)
    
    def to_dict(self) -> Dict[str, Any]:
        return {"steps": [step.to_dict() for step in self.steps]}
    
    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MonitorProof":
        return cls(steps=[ProofStep.from_dict(step) for step in data.get("steps") or []])


@dataclass
class MonitorResponse:
    tree_head: FullTreeHead = field(default_factory=FullTreeHead)
    owned_proofs: List[MonitorProof] = field(default_factory=list)
    contact_proofs: List[MonitorProof] = field(default_factory=list)
    inclusion: List[bytes] = field(default_factory=list)
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "tree_head": self.tree_head.to_dict(),
            "owned_proofs": [proof.to_dict() for proof in self.owned_proofs],
            "contact_proofs": [proof.to_dict() for proof in self.contact_proofs],
            "inclusion": _b64_list(self.inclusion),
        }
    
    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MonitorResponse":
        return cls(
            tree_head=FullTreeHead.from_dict(data.get("tree_head") or {}),
            owned_proofs=[MonitorProof.from_dict(p) for p in data.get("owned_proofs") or []],
            contact_proofs=[MonitorProof.from_dict(p) for p in data.get("contact_proofs") or []],
            inclusion=_unb64_list(data.get("inclusion")),
        )


@dataclass(frozen=True)
class StoredTreeHead:
    """A verified tree head and the log root it commits to, as persisted."""
    tree_head: TreeHead
    root: bytes
    
    @property
    def tree_size(self) -> int:
        return self.tree_head.tree_size
    
    @property
    def timestamp(self) -> int:
        return self.tree_head.timestamp
    
    def to_dict(self) -> Dict[str, Any]:
        return {"tree_head": self.tree_head.to_dict(), "root": _b64(self.root)}
    
    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StoredTreeHead":
        return cls(
            tree_head=TreeHead.from_dict(data.get("tree_head") or {}),
            root=_unb64(data.get("root")),
        )


@dataclass(frozen=True)
class StoredMonitoringData:
    """
    Persisted monitoring state for one search key.
    
    Instances are immutable snapshots: every change produces a new object,
    so a failed verification can never leave a half-updated record behind.
    
    Attributes:
        index: VRF output of the search key
        pos: First log position at which the key was observed
        ptrs: Log position -> version counter observed there
        owned: True if this client owns the key
    """
    index: bytes
    pos: int
    ptrs: Mapping[int, int] = field(default_factory=dict)
    owned: bool = False
    
    @property
    def entries(self) -> List[int]:
        """Pointer positions in ascending order, as sent in MonitorKey.entries."""
        return sorted(self.ptrs)
    
    @property
    def max_counter(self) -> int:
        return max(self.ptrs.values(), default=0)
    
    def with_pointer(self, position: int, counter: int) -> "StoredMonitoringData":
        """Return a copy with one pointer added or raised."""
        ptrs = dict(self.ptrs)
        ptrs[position] = max(counter, ptrs.get(position, 0))
        return replace(self, ptrs=ptrs, pos=min(self.pos, position))
    
    def with_pointers(self, ptrs: Mapping[int, int]) -> "StoredMonitoringData":
        """Return a copy whose pointers are replaced by ptrs."""
        return replace(self, ptrs=dict(ptrs))
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": _b64(self.index),
            "pos": self.pos,
            "ptrs": {str(position): counter for position, counter in sorted(self.ptrs.items())},
            "owned": self.owned,
        }
    
    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StoredMonitoringData":
        return cls(
            index=_unb64(data.get("index")),
            pos=int(data.get("pos", 0)),
            ptrs={int(position): int(counter) for position, counter in (data.get("ptrs") or {}).items()},
            owned=bool(data.get("owned", False)),
        )
