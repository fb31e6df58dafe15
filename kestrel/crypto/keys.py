"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Loading of the log's public keys into verifier objects.

Keys are distributed out of band as PEM (SubjectPublicKeyInfo) files; this
module only reads them and checks they match the configured algorithms.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from kestrel.config.settings import DeploymentMode, KestrelConfig
from kestrel.crypto.signatures import SignatureVerifier, create_signature_verifier
from kestrel.crypto.vrf import RsaFdhVrfVerifier, VrfVerifier
from kestrel.exceptions import InvalidConfigurationError, KeyLoadError
from kestrel.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PublicConfig:
    """
    Verifier objects for everything a client trusts about one log.
    
    Attributes:
        mode: Deployment mode of the log
        signature_verifier: Verifier for operator tree head signatures
        vrf_verifier: Verifier for VRF proofs
        auditor_verifier: Verifier for auditor tree head signatures, if any
    """
    mode: DeploymentMode
    signature_verifier: SignatureVerifier
    vrf_verifier: VrfVerifier
    auditor_verifier: Optional[SignatureVerifier] = None
    
    def __post_init__(self):
        if self.mode == DeploymentMode.THIRD_PARTY_AUDITING and self.auditor_verifier is None:
            raise InvalidConfigurationError(
                "third_party_auditing mode requires an auditor public key"
            )


def load_public_key_pem(path: str):
    """
    Load a PEM encoded public key from disk.
    
    Args:
        path: Path to the PEM file
    
    Returns:
        Public key object
    
    Raises:
        KeyLoadError: If the file is missing or not a valid public key
    """
    key_path = Path(path).expanduser()
    try:
        data = key_path.read_bytes()
    except OSError as e:
        raise KeyLoadError(f"Failed to read public key '{key_path}': {e}") from e
    
    try:
        return serialization.load_pem_public_key(data)
    except ValueError as e:
        raise KeyLoadError(f"Invalid public key in '{key_path}': {e}") from e


def load_public_config(config: KestrelConfig) -> PublicConfig:
    """
    Build the PublicConfig described by the keys section of config.
    
    Raises:
        InvalidConfigurationError: If a required key path is not configured
        KeyLoadError: If a key cannot be loaded or has the wrong type
    """
    keys = config.keys
    if not keys.signature_public_key:
        raise InvalidConfigurationError("keys.signature_public_key is not configured")
    if not keys.vrf_public_key:
        raise InvalidConfigurationError("keys.vrf_public_key is not configured")
    
    signature_verifier = create_signature_verifier(
        keys.signature_algorithm, load_public_key_pem(keys.signature_public_key)
    )
    
    vrf_key = load_public_key_pem(keys.vrf_public_key)
    if not isinstance(vrf_key, rsa.RSAPublicKey):
        raise KeyLoadError("VRF public key must be an RSA key")
    vrf_verifier = RsaFdhVrfVerifier(vrf_key)
    
    auditor_verifier = None
    if keys.auditor_public_key:
        auditor_verifier = create_signature_verifier(
            keys.auditor_signature_algorithm, load_public_key_pem(keys.auditor_public_key)
        )
    
    logger.debug(
        f"Loaded public config: mode={keys.deployment_mode}, "
        f"signature={keys.signature_algorithm}, auditor={auditor_verifier is not None}"
    )
    
    return PublicConfig(
        mode=config.deployment_mode,
        signature_verifier=signature_verifier,
        vrf_verifier=vrf_verifier,
        auditor_verifier=auditor_verifier,
    )
