"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Client-side state and session orchestration.
"""

from kestrel.client.session import (
    MonitorResult,
    SearchResult,
    SessionOrchestrator,
    UpdateResult,
    build_monitor_request,
    build_search_request,
    build_update_request,
    consistency_for,
)
from kestrel.client.state import ClientState, FileStateStore, StateSnapshot

__all__ = [
    "ClientState",
    "FileStateStore",
    "MonitorResult",
    "SearchResult",
    "SessionOrchestrator",
    "StateSnapshot",
    "UpdateResult",
    "build_monitor_request",
    "build_search_request",
    "build_update_request",
    "consistency_for",
]
