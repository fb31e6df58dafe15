"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Cryptographic primitive adapters: hash domain, tree head signatures and VRF.
"""

from kestrel.crypto.hashing import HashDomain, Sha256HashDomain
from kestrel.crypto.signatures import (
    EcdsaP256SignatureVerifier,
    Ed25519SignatureVerifier,
    SignatureVerifier,
    TreeHeadRole,
    create_signature_verifier,
    tree_head_signing_input,
)
from kestrel.crypto.vrf import RsaFdhVrfVerifier, VrfVerifier

__all__ = [
    "EcdsaP256SignatureVerifier",
    "Ed25519SignatureVerifier",
    "HashDomain",
    "RsaFdhVrfVerifier",
    "Sha256HashDomain",
    "SignatureVerifier",
    "TreeHeadRole",
    "VrfVerifier",
    "create_signature_verifier",
    "tree_head_signing_input",
]
