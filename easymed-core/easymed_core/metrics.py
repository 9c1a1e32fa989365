"""
Prometheus Metrics
==================
Metric definitions and recording helpers for challenge delivery and quota.
"""

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

# Dedicated registry so embedding applications control exposure
OTP_REGISTRY = CollectorRegistry()

CHALLENGE_EVENTS = Counter(
    name="otp_challenge_events_total",
    documentation="Challenge lifecycle events by kind",
    labelnames=["kind"],
    registry=OTP_REGISTRY,
)

DELIVERY_ATTEMPTS = Counter(
    name="otp_delivery_attempts_total",
    documentation="Delivery attempts by provider and outcome",
    labelnames=["provider", "outcome"],
    registry=OTP_REGISTRY,
)

DELIVERY_LATENCY = Histogram(
    name="otp_delivery_duration_seconds",
    documentation="Time spent delivering a challenge through a provider",
    labelnames=["provider"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
    registry=OTP_REGISTRY,
)

QUOTA_USAGE_RATIO = Gauge(
    name="otp_quota_usage_ratio",
    documentation="Global delivery quota usage (0.0-1.0+) by period",
    labelnames=["period"],
    registry=OTP_REGISTRY,
)

PROVIDER_CIRCUIT_STATE = Gauge(
    name="otp_provider_circuit_state",
    documentation="Provider circuit state (0=closed, 1=half-open, 2=open)",
    labelnames=["provider"],
    registry=OTP_REGISTRY,
)


def record_challenge_event(kind: str) -> None:
    CHALLENGE_EVENTS.labels(kind=kind).inc()


def record_delivery(provider: str, outcome: str, duration_seconds: float) -> None:
    """
    Record a delivery attempt.

    Args:
        provider: Adapter name
        outcome: accepted, rejected, timeout, error or skipped
        duration_seconds: Time spent in the provider call
    """
    DELIVERY_ATTEMPTS.labels(provider=provider, outcome=outcome).inc()
    if outcome != "skipped":
        DELIVERY_LATENCY.labels(provider=provider).observe(duration_seconds)


def record_quota_usage(period: str, ratio: float) -> None:
    QUOTA_USAGE_RATIO.labels(period=period).set(ratio)


def record_circuit_state(provider: str, state: str) -> None:
    state_value = {"closed": 0, "half_open": 1, "open": 2}.get(state, -1)
    PROVIDER_CIRCUIT_STATE.labels(provider=provider).set(state_value)


def get_metrics_text() -> bytes:
    """Render all OTP metrics in Prometheus exposition format."""
    return generate_latest(OTP_REGISTRY)


__all__ = [
    "OTP_REGISTRY",
    "CONTENT_TYPE_LATEST",
    "record_challenge_event",
    "record_delivery",
    "record_quota_usage",
    "record_circuit_state",
    "get_metrics_text",
]
