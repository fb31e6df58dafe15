"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Configuration management for Kestrel.

Handles loading and validation of configuration files.
"""

from kestrel.config.settings import (
    DeploymentMode,
    KestrelConfig,
    KeysConfig,
    LoggingConfig,
    PerformanceConfig,
    StorageConfig,
    VerificationConfig,
    get_default_config,
    get_default_config_path,
    load_config,
)

__all__ = [
    "DeploymentMode",
    "KestrelConfig",
    "KeysConfig",
    "LoggingConfig",
    "PerformanceConfig",
    "StorageConfig",
    "VerificationConfig",
    "get_default_config",
    "get_default_config_path",
    "load_config",
]
