"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Verifiable random function adapters.

The log never reveals search keys in its trees; it indexes them by the VRF
output of the key. Clients verify the VRF proof returned with every search
to learn the index and to be sure the log did not pick it freely.

RsaFdhVrfVerifier implements RSA-FDH-VRF-SHA256 from RFC 9381 section 5
(suite string 0x01).
"""

import hashlib
import struct
from abc import ABC, abstractmethod

from cryptography.hazmat.primitives.asymmetric import rsa

from kestrel.exceptions import KeyLoadError, VrfVerificationError
from kestrel.logging_config import get_logger

logger = get_logger(__name__)


RSA_FDH_VRF_SHA256_SUITE = b"\x01"
MGF_DOMAIN_SEPARATOR = b"\x01"
PROOF_TO_HASH_DOMAIN_SEPARATOR = b"\x02"
MIN_MODULUS_BITS = 2048


class VrfVerifier(ABC):
    """Abstract VRF verifier bound to the log's VRF public key."""
    
    #: Size in bytes of the VRF output (the prefix-tree index).
    output_size: int = 32
    
    @abstractmethod
    def verify(self, alpha: bytes, proof: bytes) -> bytes:
        """
        Verify a VRF proof and return its output.
        
        Args:
            alpha: VRF input (the encoded search key)
            proof: VRF proof returned by the log
        
        Returns:
            VRF output bytes
        
        Raises:
            VrfVerificationError: If the proof is invalid for alpha
        """
        pass


def _i2osp(value: int, length: int) -> bytes:
    return value.to_bytes(length, "big")


def _os2ip(data: bytes) -> int:
    return int.from_bytes(data, "big")


def mgf1_sha256(seed: bytes, length: int) -> bytes:
    """MGF1 mask generation with SHA-256 (RFC 8017 appendix B.2.1)."""
    output = bytearray()
    counter = 0
    while len(output) < length:
        output.extend(hashlib.sha256(seed + struct.pack(">I", counter)).digest())
        counter += 1
    return bytes(output[:length])


class RsaFdhVrfVerifier(VrfVerifier):
    """
    RSA-FDH-VRF-SHA256 verifier.
    
    Verification recomputes the full-domain hash of alpha, opens the proof
    with the public exponent and compares the two encodings. The output is
    SHA-256 over the suite string, a domain separator and the proof.
    """
    
    output_size = 32
    
    def __init__(self, public_key: rsa.RSAPublicKey):
        if public_key.key_size < MIN_MODULUS_BITS:
            raise KeyLoadError(
                f"VRF modulus must be at least {MIN_MODULUS_BITS} bits, got {public_key.key_size}"
            )
        numbers = public_key.public_numbers()
        self._n = numbers.n
        self._e = numbers.e
        self._k = (self._n.bit_length() + 7) // 8
        self._mgf_salt = _i2osp(self._k, 4) + _i2osp(self._n, self._k)
    
    @property
    def modulus_size(self) -> int:
        return self._k
    
    def encode_input(self, alpha: bytes) -> bytes:
        """Full-domain hash of alpha, k - 1 bytes long."""
        seed = RSA_FDH_VRF_SHA256_SUITE + MGF_DOMAIN_SEPARATOR + self._mgf_salt + alpha
        return mgf1_sha256(seed, self._k - 1)
    
    def proof_to_hash(self, proof: bytes) -> bytes:
        return hashlib.sha256(
            RSA_FDH_VRF_SHA256_SUITE + PROOF_TO_HASH_DOMAIN_SEPARATOR + proof
        ).digest()
    
    def verify(self, alpha: bytes, proof: bytes) -> bytes:
        if len(proof) != self._k:
            raise VrfVerificationError(
                f"VRF proof must be {self._k} bytes, got {len(proof)}"
            )
        
        s = _os2ip(proof)
        if s >= self._n:
            raise VrfVerificationError("VRF proof representative out of range")
        
        m = pow(s, self._e, self._n)
        if m >= 1 << (8 * (self._k - 1)):
            raise VrfVerificationError("VRF proof does not open to a valid encoding")
        
        if _i2osp(m, self._k - 1) != self.encode_input(alpha):
            logger.warning("VRF proof does not match search key")
            raise VrfVerificationError("VRF proof does not match search key")
        
        return self.proof_to_hash(proof)
