"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

CLI context for Kestrel.

Provides the shared context object and helpers that turn the loaded
configuration into a session over the persisted client state.
"""

from typing import Optional, Tuple

import click

from kestrel.client.session import SessionOrchestrator
from kestrel.client.state import FileStateStore
from kestrel.config.settings import KestrelConfig
from kestrel.crypto.keys import load_public_config


class CLIContext:
    """Context object for CLI commands."""
    
    def __init__(self):
        self.config: Optional[KestrelConfig] = None
        self.config_path: Optional[str] = None
        self.verbose = False
    
    def state_store(self) -> FileStateStore:
        return FileStateStore(self.config.storage.state_file)
    
    def open_session(self) -> Tuple[SessionOrchestrator, FileStateStore]:
        """
        Load keys and stored state and build a session over them.
        
        Raises:
            ConfigurationError: If the keys are not configured or cannot be loaded
            StateLoadError: If the stored state is corrupt
        """
        store = self.state_store()
        session = SessionOrchestrator(
            load_public_config(self.config),
            store.load(),
            verification=self.config.verification,
            performance=self.config.performance,
        )
        return session, store


pass_context = click.make_pass_decorator(CLIContext, ensure=True)
