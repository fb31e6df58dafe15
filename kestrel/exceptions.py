"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Exception hierarchy for Kestrel.

All custom exceptions inherit from KestrelError base class. Verification
failures derive from VerificationError; the subset that proves the log
misbehaved derives from LogMisbehaviorError and must be escalated by the
caller rather than retried.
"""


class KestrelError(Exception):
    """Base exception for all Kestrel errors."""
    pass


# Verification Errors
class VerificationError(KestrelError):
    """Base exception for rejected proofs and tree heads."""
    pass


class MalformedProofError(VerificationError):
    """Raised when a proof has the wrong shape (step count, node length, presence flags)."""
    pass


class ProofMismatchError(VerificationError):
    """Raised when a proof reconstructs a different root than the one trusted."""
    pass


class CommitmentMismatchError(VerificationError):
    """Raised when an opening and value do not reproduce the logged commitment."""
    pass


class PositionOutOfRangeError(VerificationError):
    """Raised when a proof references a log position at or beyond the tree size."""
    pass


class SearchPathInvalidError(VerificationError):
    """Raised when search steps do not describe a valid binary search for the version."""
    pass


class SignatureInvalidError(VerificationError):
    """Raised when an operator or auditor tree head signature does not verify."""
    pass


class VrfVerificationError(VerificationError):
    """Raised when a VRF proof does not verify for the search key."""
    pass


class ClockSkewError(VerificationError):
    """Raised when a tree head timestamp lies too far in the future."""
    pass


# Log Misbehavior Errors
class LogMisbehaviorError(VerificationError):
    """Base exception for failures that prove the log operator misbehaved."""
    pass


class StaleTreeHeadError(LogMisbehaviorError):
    """Raised when a tree head regresses in size or timestamp, or is too old."""
    pass


class MonitoringInvariantViolatedError(LogMisbehaviorError):
    """Raised when a monitored key's version counters regress or disappear."""
    pass


# Wire Errors
class WireFormatError(KestrelError):
    """Raised when a message cannot be encoded or decoded."""
    pass


# State Errors
class StateError(KestrelError):
    """Base exception for stored client state errors."""
    pass


class StateConflictError(StateError):
    """Raised when the stored state changed between snapshot and commit."""
    pass


class StateLoadError(StateError):
    """Raised when stored state cannot be read or parsed."""
    pass


# Configuration Errors
class ConfigurationError(KestrelError):
    """Base exception for configuration-related errors."""
    pass


class InvalidConfigurationError(ConfigurationError):
    """Raised when configuration is invalid or malformed."""
    pass


class ConfigurationLoadError(ConfigurationError):
    """Raised when a configuration file cannot be read."""
    pass


class KeyLoadError(ConfigurationError):
    """Raised when a public key cannot be loaded from its configured location."""
    pass
