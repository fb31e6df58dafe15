"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Tree head signature verification with pluggable algorithms.

Operators and third-party auditors sign the same encoding of a tree head,
distinguished by a role byte:

    b"KT-TREE-HEAD-v1" || role || u64be(tree_size) || i64be(timestamp)
        || u16be(len(root)) || root

Supported algorithms:
- Ed25519SignatureVerifier: Ed25519 (default)
- EcdsaP256SignatureVerifier: ECDSA P-256 with SHA-256, DER signatures
"""

import struct
from abc import ABC, abstractmethod
from enum import IntEnum
from typing import Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519

from kestrel.exceptions import KeyLoadError
from kestrel.logging_config import get_logger

logger = get_logger(__name__)


TREE_HEAD_SIGNATURE_CONTEXT = b"KT-TREE-HEAD-v1"


class TreeHeadRole(IntEnum):
    """Party that produced a tree head signature."""
    OPERATOR = 0
    AUDITOR = 1


def tree_head_signing_input(
    role: TreeHeadRole, tree_size: int, timestamp: int, root: bytes
) -> bytes:
    """
    Encode the message covered by a tree head signature.
    
    Args:
        role: Operator or auditor
        tree_size: Number of log entries
        timestamp: Milliseconds since the Unix epoch
        root: Log root the head commits to
    
    Returns:
        Signing input bytes
    """
    return (
        TREE_HEAD_SIGNATURE_CONTEXT
        + struct.pack(">BQq", int(role), tree_size, timestamp)
        + struct.pack(">H", len(root))
        + root
    )


class SignatureVerifier(ABC):
    """
    Abstract verifier bound to a single public key.
    
    Implementations must never raise for a bad signature; they return False
    and leave the decision to the caller.
    """
    
    algorithm: str = ""
    
    @abstractmethod
    def verify(self, message: bytes, signature: bytes) -> bool:
        """
        Verify a signature over message.
        
        Args:
            message: Signed bytes
            signature: Signature bytes
        
        Returns:
            True if signature is valid, False otherwise
        """
        pass
    
    @abstractmethod
    def get_public_key_pem(self) -> bytes:
        pass
    
    def verify_tree_head(
        self, role: TreeHeadRole, tree_size: int, timestamp: int, root: bytes, signature: bytes
    ) -> bool:
        """Verify a tree head signature produced under the given role."""
        return self.verify(tree_head_signing_input(role, tree_size, timestamp, root), signature)


class Ed25519SignatureVerifier(SignatureVerifier):
    """Ed25519 signature verifier."""
    
    algorithm = "ed25519"
    
    def __init__(self, public_key: ed25519.Ed25519PublicKey):
        self._public_key = public_key
    
    @classmethod
    def from_raw(cls, raw: bytes) -> "Ed25519SignatureVerifier":
        """Build a verifier from the 32-byte raw public key."""
        return cls(ed25519.Ed25519PublicKey.from_public_bytes(raw))
    
    def verify(self, message: bytes, signature: bytes) -> bool:
        if not signature:
            logger.warning("Empty signature")
            return False
        try:
            self._public_key.verify(signature, message)
            return True
        except InvalidSignature:
            logger.warning("Ed25519 signature verification failed")
            return False
    
    def get_public_key_pem(self) -> bytes:
        return self._public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )


class EcdsaP256SignatureVerifier(SignatureVerifier):
    """ECDSA P-256 / SHA-256 signature verifier."""
    
    algorithm = "ecdsa-p256"
    
    def __init__(self, public_key: ec.EllipticCurvePublicKey):
        if not isinstance(public_key.curve, ec.SECP256R1):
            raise KeyLoadError(f"Expected a P-256 key, got {public_key.curve.name}")
        self._public_key = public_key
    
    def verify(self, message: bytes, signature: bytes) -> bool:
        if not signature:
            logger.warning("Empty signature")
            return False
        try:
            self._public_key.verify(signature, message, ec.ECDSA(hashes.SHA256()))
            return True
        except InvalidSignature:
            logger.warning("ECDSA signature verification failed")
            return False
    
    def get_public_key_pem(self) -> bytes:
        return self._public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )


PublicKey = Union[ed25519.Ed25519PublicKey, ec.EllipticCurvePublicKey]


def create_signature_verifier(algorithm: str, public_key: PublicKey) -> SignatureVerifier:
    """
    Factory function to create a signature verifier for a loaded key.
    
    Args:
        algorithm: "ed25519" or "ecdsa-p256"
        public_key: Public key object loaded by cryptography
    
    Returns:
        SignatureVerifier instance
    
    Raises:
        KeyLoadError: If the key type does not match the algorithm
    """
    algorithm = algorithm.lower()
    if algorithm == "ed25519":
        if not isinstance(public_key, ed25519.Ed25519PublicKey):
            raise KeyLoadError("Configured algorithm ed25519 but key is not an Ed25519 key")
        return Ed25519SignatureVerifier(public_key)
    if algorithm == "ecdsa-p256":
        if not isinstance(public_key, ec.EllipticCurvePublicKey):
            raise KeyLoadError("Configured algorithm ecdsa-p256 but key is not an EC key")
        return EcdsaP256SignatureVerifier(public_key)
    raise KeyLoadError(f"Unsupported signature algorithm: {algorithm}")
