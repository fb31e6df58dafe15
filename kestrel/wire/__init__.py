"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Wire protocol messages and their protobuf codec.
"""

from kestrel.wire.codec import decode, encode
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
    StoredMonitoringData,
    StoredTreeHead,
    TreeHead,
    UpdateRequest,
    UpdateResponse,
    UpdateValue,
)

__all__ = [
    "AuditorTreeHead",
    "Consistency",
    "FullTreeHead",
    "MonitorKey",
    "MonitorProof",
    "MonitorRequest",
    "MonitorResponse",
    "PrefixProof",
    "ProofStep",
    "SearchProof",
    "SearchRequest",
    "SearchResponse",
    "StoredMonitoringData",
    "StoredTreeHead",
    "TreeHead",
    "UpdateRequest",
    "UpdateResponse",
    "UpdateValue",
    "decode",
    "encode",
]
