"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Prometheus metrics for Kestrel.

This module provides metrics for:
- Verification outcomes (count, duration) per operation
- Detected log misbehavior per kind
- The currently trusted tree size and number of monitored keys
"""

import time
from contextlib import contextmanager
from enum import Enum
from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from kestrel.exceptions import LogMisbehaviorError
from kestrel.logging_config import get_logger

logger = get_logger(__name__)


class VerificationOutcome(str, Enum):
    """Verification outcomes for metrics."""
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    MISBEHAVIOR = "misbehavior"


class MetricsRegistry:
    """
    Central registry for all Prometheus metrics.
    """
    
    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """
        Initialize metrics registry.
        
        Args:
            registry: Optional Prometheus CollectorRegistry (creates new if not provided)
        """
        self.registry = registry or CollectorRegistry()
        
        self.verifications_total = Counter(
            'kestrel_verifications_total',
            'Total number of verified responses',
            ['operation', 'outcome'],
            registry=self.registry
        )
        
        self.verification_duration_seconds = Histogram(
            'kestrel_verification_duration_seconds',
            'Response verification duration in seconds',
            ['operation'],
            buckets=(0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
            registry=self.registry
        )
        
        self.verification_failures_total = Counter(
            'kestrel_verification_failures_total',
            'Total number of rejected responses by error',
            ['operation', 'error'],
            registry=self.registry
        )
        
        self.misbehavior_detected_total = Counter(
            'kestrel_misbehavior_detected_total',
            'Total number of responses proving log misbehavior',
            ['kind'],
            registry=self.registry
        )
        
        self.trusted_tree_size = Gauge(
            'kestrel_trusted_tree_size',
            'Tree size of the most recently trusted tree head',
            registry=self.registry
        )
        
        self.monitored_keys = Gauge(
            'kestrel_monitored_keys',
            'Number of keys with monitoring data',
            ['owned'],
            registry=self.registry
        )
        
        logger.info("Metrics registry initialized")
    
    def record_verification(self, operation: str, outcome: VerificationOutcome, duration_seconds: float):
        """
        Record one verified response.
        
        Args:
            operation: "search", "update" or "monitor"
            outcome: Verification outcome
            duration_seconds: Time spent verifying
        """
        self.verifications_total.labels(operation=operation, outcome=outcome.value).inc()
        self.verification_duration_seconds.labels(operation=operation).observe(duration_seconds)
    
    def record_failure(self, operation: str, error: str):
        self.verification_failures_total.labels(operation=operation, error=error).inc()
    
    def record_misbehavior(self, kind: str):
        self.misbehavior_detected_total.labels(kind=kind).inc()
    
    def set_trusted_state(self, tree_size: int, owned_keys: int, contact_keys: int):
        """Publish the size of the trusted log and the monitored key counts."""
        self.trusted_tree_size.set(tree_size)
        self.monitored_keys.labels(owned="true").set(owned_keys)
        self.monitored_keys.labels(owned="false").set(contact_keys)
    
    @contextmanager
    def time_verification(self, operation: str):
        """
        Context manager that records duration and outcome of a verification.
        
        Exceptions propagate; they are counted as rejected, or as misbehavior
        when they prove the log misbehaved.
        """
        start_time = time.perf_counter()
        try:
            yield
        except LogMisbehaviorError as e:
            self.record_verification(operation, VerificationOutcome.MISBEHAVIOR, time.perf_counter() - start_time)
            self.record_failure(operation, type(e).__name__)
            self.record_misbehavior(type(e).__name__)
            raise
        except Exception as e:
            self.record_verification(operation, VerificationOutcome.REJECTED, time.perf_counter() - start_time)
            self.record_failure(operation, type(e).__name__)
            raise
        else:
            self.record_verification(operation, VerificationOutcome.ACCEPTED, time.perf_counter() - start_time)
    
    def generate_metrics(self) -> bytes:
        """
        Generate Prometheus metrics in text format.
        
        Returns:
            Metrics in Prometheus text format
        """
        return generate_latest(self.registry)
    
    def get_content_type(self) -> str:
        return CONTENT_TYPE_LATEST


_metrics_registry: Optional[MetricsRegistry] = None


def get_metrics_registry() -> MetricsRegistry:
    """
    Get global metrics registry instance.
    
    Returns:
        MetricsRegistry singleton instance
    
    Raises:
        RuntimeError: If metrics registry not initialized
    """
    global _metrics_registry
    if _metrics_registry is None:
        raise RuntimeError(
            "Metrics registry not initialized. "
            "Call initialize_metrics_registry() first."
        )
    return _metrics_registry


def initialize_metrics_registry(registry: Optional[CollectorRegistry] = None) -> MetricsRegistry:
    """
    Initialize global metrics registry.
    
    Args:
        registry: Optional Prometheus CollectorRegistry
    
    Returns:
        Initialized MetricsRegistry
    """
    global _metrics_registry
    if _metrics_registry is not None:
        logger.warning("Metrics registry already initialized, reinitializing")
    
    _metrics_registry = MetricsRegistry(registry)
    return _metrics_registry
