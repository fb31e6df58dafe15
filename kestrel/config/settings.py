"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Configuration management for Kestrel.

Loads YAML configuration from file with sensible defaults and validation.
Supports environment variable substitution using ${ENV_VAR} syntax.
"""

import os
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import yaml

from kestrel.exceptions import ConfigurationLoadError, InvalidConfigurationError
from kestrel.logging_config import get_logger

logger = get_logger(__name__)


def _expand_env_vars(value: Any) -> Any:
    """
    Recursively expand environment variables in configuration values.
    
    Supports ${ENV_VAR} syntax with optional default values: ${ENV_VAR:default}
    
    Examples:
        "${KESTREL_HOME}" -> value of KESTREL_HOME env var
        "${KESTREL_HOME:/var/lib/kestrel}/state.json" -> expanded path
    """
    if isinstance(value, str):
        pattern = r'\$\{([^}:]+)(?::([^}]*))?\}'
        
        def replace_env_var(match):
            default_value = match.group(2) if match.group(2) is not None else ""
            return os.environ.get(match.group(1), default_value)
        
        return re.sub(pattern, replace_env_var, value)
    elif isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    else:
        return value


class DeploymentMode(str, Enum):
    """
    How the log is operated.
    
    CONTACT_MONITORING and THIRD_PARTY_MANAGEMENT rely on clients monitoring
    their own and their contacts' keys. THIRD_PARTY_AUDITING additionally
    requires every full tree head to carry an auditor-signed tree head.
    """
    CONTACT_MONITORING = "contact_monitoring"
    THIRD_PARTY_MANAGEMENT = "third_party_management"
    THIRD_PARTY_AUDITING = "third_party_auditing"


SIGNATURE_ALGORITHMS = ("ed25519", "ecdsa-p256")


@dataclass
class KeysConfig:
    """Trust roots: the log's public keys and deployment mode."""
    
    deployment_mode: str = DeploymentMode.CONTACT_MONITORING.value
    signature_algorithm: str = "ed25519"
    signature_public_key: str = ""
    vrf_public_key: str = ""
    auditor_signature_algorithm: str = "ed25519"
    auditor_public_key: str = ""


@dataclass
class VerificationConfig:
    """Tolerances applied while verifying tree heads and monitoring keys."""
    
    max_ahead_ms: int = 10_000
    max_behind_ms: int = 86_400_000
    max_auditor_lag_ms: int = 7 * 86_400_000
    distinguished_interval_ms: int = 3_600_000
    monitor_searched_keys: bool = True


@dataclass
class PerformanceConfig:
    """Performance tuning configuration."""
    
    parallel_threshold: int = 8
    max_workers: int = 4


@dataclass
class StorageConfig:
    """Storage configuration for file paths."""
    
    state_file: str = ""


@dataclass
class LoggingConfig:
    """Logging configuration."""
    
    level: str = "INFO"
    file: str = ""
    json_format: bool = True


@dataclass
class KestrelConfig:
    """Main Kestrel configuration."""
    
    storage: StorageConfig
    keys: KeysConfig = field(default_factory=KeysConfig)
    verification: VerificationConfig = field(default_factory=VerificationConfig)
    performance: PerformanceConfig = field(default_factory=PerformanceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    
    @property
    def deployment_mode(self) -> DeploymentMode:
        return DeploymentMode(self.keys.deployment_mode)


def get_default_config_path() -> str:
    """Get the default configuration file path."""
    return os.path.expanduser("~/.kestrel/config.yaml")


def get_default_config() -> KestrelConfig:
    """
    Get default configuration with sensible defaults.
    
    Keys are left unset; commands that verify responses require them to be
    configured.
    
    Returns:
        KestrelConfig: Default configuration object
    """
    home_dir = os.path.expanduser("~/.kestrel")
    
    return KestrelConfig(
        storage=StorageConfig(state_file=os.path.join(home_dir, "state.json")),
        logging=LoggingConfig(level="INFO", file="", json_format=True),
    )


def load_config(config_path: Optional[str] = None) -> KestrelConfig:
    """
    Load configuration from YAML file with validation.
    
    If config file is not found, returns default configuration.
    
    Args:
        config_path: Path to configuration file. If None, uses default path.
    
    Returns:
        KestrelConfig: Loaded and validated configuration
    
    Raises:
        ConfigurationLoadError: If the file cannot be read or parsed
        InvalidConfigurationError: If configuration values are invalid
    """
    if config_path is None:
        config_path = get_default_config_path()
    
    config_path = os.path.expanduser(config_path)
    
    if not os.path.exists(config_path):
        logger.info(f"Configuration file not found at {config_path}, using defaults")
        return get_default_config()
    
    try:
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f)
        logger.debug(f"Loaded configuration from {config_path}")
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML configuration file '{config_path}': {e}")
        raise ConfigurationLoadError(
            f"Failed to parse YAML configuration file '{config_path}': {e}"
        ) from e
    except OSError as e:
        logger.error(f"Failed to read configuration file '{config_path}': {e}")
        raise ConfigurationLoadError(
            f"Failed to read configuration file '{config_path}': {e}"
        ) from e
    
    if config_data is None:
        logger.info(f"Configuration file {config_path} is empty, using defaults")
        return get_default_config()
    
    if not isinstance(config_data, dict):
        raise InvalidConfigurationError(
            f"Configuration file '{config_path}' must contain a mapping"
        )
    
    config_data = _expand_env_vars(config_data)
    
    try:
        config = _build_config_from_dict(config_data)
    except (TypeError, ValueError) as e:
        logger.error(f"Invalid configuration in '{config_path}': {e}")
        raise InvalidConfigurationError(
            f"Invalid configuration in '{config_path}': {e}"
        ) from e
    
    _validate_config(config)
    logger.info(f"Successfully loaded and validated configuration from {config_path}")
    return config


def _section(config_data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = config_data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"'{name}' section must be a mapping")
    return section


def _build_config_from_dict(config_data: Dict[str, Any]) -> KestrelConfig:
    """
    Build KestrelConfig from dictionary loaded from YAML.
    
    Missing sections and keys fall back to the defaults; unknown keys are
    rejected so that typos do not silently weaken verification.
    """
    default_config = get_default_config()
    
    storage_data = _section(config_data, "storage")
    storage = StorageConfig(
        state_file=os.path.expanduser(
            storage_data.get("state_file", default_config.storage.state_file)
        ),
    )
    
    return KestrelConfig(
        storage=storage,
        keys=KeysConfig(**_section(config_data, "keys")),
        verification=VerificationConfig(**_section(config_data, "verification")),
        performance=PerformanceConfig(**_section(config_data, "performance")),
        logging=LoggingConfig(**{
            "level": default_config.logging.level,
            **_section(config_data, "logging"),
        }),
    )


def _validate_config(config: KestrelConfig) -> None:
    """
    Validate configuration values.
    
    Args:
        config: Configuration to validate
    
    Raises:
        InvalidConfigurationError: If configuration is invalid
    """
    if not config.storage.state_file:
        logger.error("Configuration validation failed: state_file path cannot be empty")
        raise InvalidConfigurationError("state_file path cannot be empty")
    
    valid_modes = [mode.value for mode in DeploymentMode]
    if config.keys.deployment_mode not in valid_modes:
        raise InvalidConfigurationError(
            f"deployment_mode must be one of {valid_modes}, "
            f"got '{config.keys.deployment_mode}'"
        )
    
    for name in ("signature_algorithm", "auditor_signature_algorithm"):
        algorithm = getattr(config.keys, name)
        if algorithm not in SIGNATURE_ALGORITHMS:
            raise InvalidConfigurationError(
                f"{name} must be one of {list(SIGNATURE_ALGORITHMS)}, got '{algorithm}'"
            )
    
    if (
        config.keys.deployment_mode == DeploymentMode.THIRD_PARTY_AUDITING.value
        and not config.keys.auditor_public_key
    ):
        raise InvalidConfigurationError(
            "auditor_public_key is required in third_party_auditing mode"
        )
    
    verification = config.verification
    for name in ("max_ahead_ms", "max_behind_ms", "max_auditor_lag_ms"):
        if getattr(verification, name) <= 0:
            raise InvalidConfigurationError(
                f"{name} must be positive, got {getattr(verification, name)}"
            )
    if verification.distinguished_interval_ms < 0:
        raise InvalidConfigurationError(
            f"distinguished_interval_ms cannot be negative, "
            f"got {verification.distinguished_interval_ms}"
        )
    
    if config.performance.parallel_threshold < 1:
        raise InvalidConfigurationError(
            f"parallel_threshold must be at least 1, "
            f"got {config.performance.parallel_threshold}"
        )
    if config.performance.max_workers < 1:
        raise InvalidConfigurationError(
            f"max_workers must be at least 1, got {config.performance.max_workers}"
        )
    
    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if config.logging.level.upper() not in valid_log_levels:
        raise InvalidConfigurationError(
            f"logging level must be one of {valid_log_levels}, "
            f"got '{config.logging.level}'"
        )
