"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Unit tests for Prometheus metrics.

Tests the MetricsRegistry and metric recording functionality.
"""

import pytest
from prometheus_client import CollectorRegistry

from kestrel.exceptions import MalformedProofError, StaleTreeHeadError
from kestrel.metrics import (
    MetricsRegistry,
    VerificationOutcome,
    get_metrics_registry,
    initialize_metrics_registry,
)
import kestrel.metrics


class TestMetricsRegistry:
    """Test MetricsRegistry functionality."""

    def test_initialization(self):
        """Test metrics registry initialization."""
        registry = CollectorRegistry()
        metrics = MetricsRegistry(registry)

        assert metrics.registry == registry
        assert metrics.verifications_total is not None
        assert metrics.misbehavior_detected_total is not None
        assert metrics.trusted_tree_size is not None

    def test_record_verification(self):
        """Test recording a verification outcome and duration."""
        registry = CollectorRegistry()
        metrics = MetricsRegistry(registry)

        metrics.record_verification("search", VerificationOutcome.ACCEPTED, 0.01)

        assert registry.get_sample_value(
            "kestrel_verifications_total", {"operation": "search", "outcome": "accepted"}
        ) == 1.0
        assert registry.get_sample_value(
            "kestrel_verification_duration_seconds_count", {"operation": "search"}
        ) == 1.0

    def test_set_trusted_state(self):
        """Test the trusted tree size and monitored key gauges."""
        registry = CollectorRegistry()
        metrics = MetricsRegistry(registry)

        metrics.set_trusted_state(42, owned_keys=1, contact_keys=3)

        assert registry.get_sample_value("kestrel_trusted_tree_size") == 42
        assert registry.get_sample_value("kestrel_monitored_keys", {"owned": "true"}) == 1
        assert registry.get_sample_value("kestrel_monitored_keys", {"owned": "false"}) == 3


class TestTimeVerification:
    """Test the verification timing context manager."""

    def test_accepted(self):
        """Test that a clean exit counts as accepted."""
        registry = CollectorRegistry()
        metrics = MetricsRegistry(registry)

        with metrics.time_verification("monitor"):
            pass

        assert registry.get_sample_value(
            "kestrel_verifications_total", {"operation": "monitor", "outcome": "accepted"}
        ) == 1.0

    def test_rejected(self):
        """Test that verification errors count as rejected and propagate."""
        registry = CollectorRegistry()
        metrics = MetricsRegistry(registry)

        with pytest.raises(MalformedProofError):
            with metrics.time_verification("search"):
                raise MalformedProofError("bad proof")

        assert registry.get_sample_value(
            "kestrel_verifications_total", {"operation": "search", "outcome": "rejected"}
        ) == 1.0
        assert registry.get_sample_value(
            "kestrel_verification_failures_total",
            {"operation": "search", "error": "MalformedProofError"},
        ) == 1.0
        assert registry.get_sample_value(
            "kestrel_misbehavior_detected_total", {"kind": "MalformedProofError"}
        ) is None

    def test_misbehavior(self):
        """Test that proven misbehavior is counted separately."""
        registry = CollectorRegistry()
        metrics = MetricsRegistry(registry)

        with pytest.raises(StaleTreeHeadError):
            with metrics.time_verification("update"):
                raise StaleTreeHeadError("Tree size regressed from 10 to 8")

        assert registry.get_sample_value(
            "kestrel_verifications_total", {"operation": "update", "outcome": "misbehavior"}
        ) == 1.0
        assert registry.get_sample_value(
            "kestrel_misbehavior_detected_total", {"kind": "StaleTreeHeadError"}
        ) == 1.0


class TestMetricsExport:
    """Test metrics export."""

    def test_generate_metrics(self):
        """Test Prometheus text output."""
        metrics = MetricsRegistry(CollectorRegistry())
        metrics.record_misbehavior("MonitoringInvariantViolatedError")

        output = metrics.generate_metrics()

        assert isinstance(output, bytes)
        assert b"kestrel_misbehavior_detected_total" in output
        assert metrics.get_content_type().startswith("text/plain")


class TestGlobalRegistry:
    """Test the module-level registry."""

    @pytest.fixture(autouse=True)
    def reset_registry(self, monkeypatch):
        monkeypatch.setattr(kestrel.metrics, "_metrics_registry", None)

    def test_uninitialized(self):
        """Test that the registry must be initialized before use."""
        with pytest.raises(RuntimeError, match="not initialized"):
            get_metrics_registry()

    def test_initialize(self):
        """Test initializing and fetching the registry."""
        metrics = initialize_metrics_registry(CollectorRegistry())
        assert get_metrics_registry() is metrics
