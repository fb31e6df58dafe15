"""
Pytest configuration and shared fixtures for Kestrel tests.
"""

import os
import tempfile
from pathlib import Path
from typing import Generator, Optional

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa

from kestrel.client.state import ClientState
from kestrel.client.session import SessionOrchestrator
from kestrel.config.settings import VerificationConfig

from simulator import LogSimulator


# RSA key generation is slow; one VRF key serves the whole session.
_VRF_KEY: Optional[rsa.RSAPrivateKey] = None


def get_test_vrf_key() -> rsa.RSAPrivateKey:
    global _VRF_KEY
    if _VRF_KEY is None:
        _VRF_KEY = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return _VRF_KEY


def write_public_key(path: Path, private_key) -> Path:
    """Write the PEM SubjectPublicKeyInfo of private_key to path."""
    path.write_bytes(
        private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
    )
    return path


def create_test_config_content(
    temp_dir: Path,
    signature_key_path: Path,
    vrf_key_path: Path,
    signature_algorithm: str = "ed25519",
    extra: str = "",
) -> str:
    """
    Generate test configuration YAML content.

    Args:
        temp_dir: Temporary directory for storage paths.
        signature_key_path: Operator public key (PEM).
        vrf_key_path: VRF public key (PEM).
        signature_algorithm: Operator signature algorithm.
        extra: Additional YAML appended verbatim.

    Returns:
        YAML configuration content as string.
    """
    return f"""
storage:
  state_file: {temp_dir}/state.json

keys:
  deployment_mode: contact_monitoring
  signature_algorithm: {signature_algorithm}
  signature_public_key: {signature_key_path}
  vrf_public_key: {vrf_key_path}

verification:
  max_ahead_ms: 10000
  max_behind_ms: 86400000

logging:
  level: INFO
  file: {temp_dir}/kestrel.log
{extra}"""


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """
    Create a temporary directory for test files.

    Yields:
        Path to temporary directory that is cleaned up after test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(scope="session")
def vrf_key() -> rsa.RSAPrivateKey:
    return get_test_vrf_key()


@pytest.fixture
def simulator(vrf_key) -> LogSimulator:
    """An empty honest log with a fresh operator key."""
    return LogSimulator(vrf_key)


@pytest.fixture
def audited_simulator(vrf_key) -> LogSimulator:
    """An empty honest log that also publishes auditor tree heads."""
    return LogSimulator(vrf_key, auditor_key=ed25519.Ed25519PrivateKey.generate())


@pytest.fixture
def make_session():
    """
    Factory for a SessionOrchestrator bound to a simulator's keys and clock.

    Usage:
        session = make_session(simulator)
        session = make_session(simulator, state=existing_state, distinguished_interval_ms=0)
    """
    def _make(sim: LogSimulator, state: Optional[ClientState] = None, mode=None, **verification):
        config = sim.public_config(mode) if mode is not None else sim.public_config()
        return SessionOrchestrator(
            config,
            state if state is not None else ClientState(),
            verification=VerificationConfig(**verification),
            clock=sim.clock,
        )
    return _make


@pytest.fixture
def ecdsa_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture
def sample_config_path(temp_dir: Path, simulator: LogSimulator, vrf_key) -> Path:
    """
    Create a sample configuration file whose keys match simulator.

    Returns:
        Path to sample config file.
    """
    signature_key = write_public_key(temp_dir / "operator.pem", simulator.signing_key)
    vrf_public = write_public_key(temp_dir / "vrf.pem", vrf_key)
    config_path = temp_dir / "config.yaml"
    config_path.write_text(create_test_config_content(temp_dir, signature_key, vrf_public))
    return config_path


# Hypothesis settings for property-based tests
from hypothesis import settings, Verbosity

settings.register_profile("kestrel", max_examples=50, deadline=None, verbosity=Verbosity.normal)
settings.register_profile("kestrel-ci", max_examples=500, deadline=None, verbosity=Verbosity.verbose)
settings.register_profile("kestrel-dev", max_examples=10, deadline=None, verbosity=Verbosity.verbose)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "kestrel"))
