"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Client state: the only data a client keeps between sessions.

ClientState holds the last trusted tree head, the distinguished tree head,
the last accepted auditor tree head and the monitoring data of every
monitored key. Verification works on an immutable snapshot; the results
are committed in one step, and only if nobody else committed in between.
"""

import base64
import json
import os
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from kestrel.exceptions import StateConflictError, StateLoadError, WireFormatError
from kestrel.logging_config import get_logger, log_state_commit
from kestrel.wire.codec import decode, encode
from kestrel.wire.messages import StoredMonitoringData, StoredTreeHead, TreeHead

logger = get_logger(__name__)

STATE_FORMAT_VERSION = 1


@dataclass(frozen=True)
class StateSnapshot:
    """
    Read-only view of ClientState at one generation.
    
    Attributes:
        generation: Commit counter the snapshot was taken at
        head: Last trusted tree head
        distinguished: Distinguished tree head
        auditor_head: Last accepted auditor tree head
        monitoring: Search key -> monitoring data
    """
    generation: int
    head: Optional[StoredTreeHead] = None
    distinguished: Optional[StoredTreeHead] = None
    auditor_head: Optional[TreeHead] = None
    monitoring: Mapping[str, StoredMonitoringData] = field(
        default_factory=lambda: MappingProxyType({})
    )


class ClientState:
    """
    Thread-safe holder of the client's trusted state.
    
    Any number of verifications may run against snapshots concurrently;
    commit() serializes the writes and rejects a commit whose snapshot is
    out of date.
    """
    
    def __init__(
        self,
        head: Optional[StoredTreeHead] = None,
        distinguished: Optional[StoredTreeHead] = None,
        auditor_head: Optional[TreeHead] = None,
        monitoring: Optional[Mapping[str, StoredMonitoringData]] = None,
        generation: int = 0,
    ):
        self._lock = threading.Lock()
        self._generation = generation
        self._head = head
        self._distinguished = distinguished
        self._auditor_head = auditor_head
        self._monitoring: Dict[str, StoredMonitoringData] = dict(monitoring or {})
    
    def snapshot(self) -> StateSnapshot:
        with self._lock:
            return self._snapshot_locked()
    
    def _snapshot_locked(self) -> StateSnapshot:
        return StateSnapshot(
            generation=self._generation,
            head=self._head,
            distinguished=self._distinguished,
            auditor_head=self._auditor_head,
            monitoring=MappingProxyType(dict(self._monitoring)),
        )
    
    def commit(
        self,
        snapshot: StateSnapshot,
        head: StoredTreeHead,
        distinguished: Optional[StoredTreeHead] = None,
        auditor_head: Optional[TreeHead] = None,
        monitoring: Optional[Mapping[str, StoredMonitoringData]] = None,
    ) -> StateSnapshot:
        """
        Apply the results of one verification.
        
        Args:
            snapshot: Snapshot the verification started from
            head: New trusted tree head
            distinguished: New distinguished head, None to keep the current one
            auditor_head: New auditor head, None to keep the current one
            monitoring: Monitoring data to add or replace, by search key
        
        Returns:
            Snapshot of the committed state
        
        Raises:
            StateConflictError: If the state changed since snapshot was taken
        """
        with self._lock:
            if self._generation != snapshot.generation:
                raise StateConflictError(
                    f"State changed since snapshot (generation {snapshot.generation}, "
                    f"now {self._generation})"
                )
            self._head = head
            if distinguished is not None:
                self._distinguished = distinguished
            if auditor_head is not None:
                self._auditor_head = auditor_head
            if monitoring:
                self._monitoring.update(monitoring)
            self._generation += 1
            
            log_state_commit(
                logger,
                generation=self._generation,
                tree_size=head.tree_size,
                monitored_keys=len(self._monitoring),
            )
            return self._snapshot_locked()
    
    def stop_monitoring(self, search_key: str) -> bool:
        """Forget a key's monitoring data. Returns False if it was not monitored."""
        with self._lock:
            if search_key not in self._monitoring:
                return False
            del self._monitoring[search_key]
            self._generation += 1
            return True
    
    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible document of base64 protobuf blobs."""
        snapshot = self.snapshot()
        
        def blob(message) -> Optional[str]:
            if message is None:
                return None
            return base64.b64encode(encode(message)).decode("ascii")
        
        return {
            "format_version": STATE_FORMAT_VERSION,
            "generation": snapshot.generation,
            "head": blob(snapshot.head),
            "distinguished": blob(snapshot.distinguished),
            "auditor_head": blob(snapshot.auditor_head),
            "monitoring": {
                search_key: blob(data) for search_key, data in sorted(snapshot.monitoring.items())
            },
        }
    
    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ClientState":
        """
        Restore state written by to_dict().
        
        Raises:
            StateLoadError: If the document is not a valid state document
        """
        if data.get("format_version") != STATE_FORMAT_VERSION:
            raise StateLoadError(f"Unsupported state format version: {data.get('format_version')}")
        
        def unblob(message_type, value):
            if value is None:
                return None
            return decode(message_type, base64.b64decode(value))
        
        try:
            return cls(
                head=unblob(StoredTreeHead, data.get("head")),
                distinguished=unblob(StoredTreeHead, data.get("distinguished")),
                auditor_head=unblob(TreeHead, data.get("auditor_head")),
                monitoring={
                    search_key: unblob(StoredMonitoringData, value)
                    for search_key, value in (data.get("monitoring") or {}).items()
                },
                generation=int(data.get("generation", 0)),
            )
        except (WireFormatError, ValueError, TypeError) as e:
            raise StateLoadError(f"Corrupt client state: {e}") from e


class FileStateStore:
    """Persists ClientState as a JSON file, replaced atomically on save."""
    
    def __init__(self, path: str):
        self.path = Path(path).expanduser()
    
    def load(self) -> ClientState:
        """
        Load state from disk; a missing file yields an empty state.
        
        Raises:
            StateLoadError: If the file exists but cannot be parsed
        """
        if not self.path.exists():
            logger.info(f"No client state at {self.path}, starting empty")
            return ClientState()
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StateLoadError(f"Failed to read client state '{self.path}': {e}") from e
        if not isinstance(data, dict):
            raise StateLoadError(f"Client state '{self.path}' is not a JSON object")
        return ClientState.from_dict(data)
    
    def save(self, state: ClientState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".state-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(state.to_dict(), f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            os.unlink(tmp_path)
            raise
        logger.debug(f"Saved client state to {self.path}")
