"""
Prometheus Metrics for the TPP API Simulator.

This module defines all metrics exposed at the /metrics endpoint.
Metrics are categorized into:

1. Consent Flow Metrics - consent operations and token exchanges by outcome
2. Technical Metrics - sandbox latencies and failures, HTTP traffic
"""
from typing import Optional

from prometheus_client import Counter, Histogram, Info

from tpp_simulator import __version__

# =============================================================================
# SERVICE INFO
# =============================================================================

SERVICE_INFO = Info(
    "tpp_simulator_service",
    "Service information"
)
SERVICE_INFO.info({
    "version": __version__,
    "service": "bb-tpp-api-simulator",
})

# =============================================================================
# CONSENT FLOW METRICS
# =============================================================================

# Counter: Consent operations by service and outcome
CONSENT_OPERATIONS = Counter(
    "tpp_consent_operations_total",
    "Consent operations performed against the sandbox",
    ["service", "operation", "outcome"]  # service: ais, pis. operation: create, get, revoke
)

# Counter: Token endpoint exchanges
TOKEN_EXCHANGES = Counter(
    "tpp_token_exchanges_total",
    "Token endpoint exchanges",
    ["grant_type", "outcome"]  # client_credentials, authorization_code
)

# =============================================================================
# TECHNICAL METRICS
# =============================================================================

# Histogram: Sandbox call latency
SANDBOX_REQUEST_LATENCY = Histogram(
    "tpp_sandbox_request_latency_seconds",
    "Time spent on a single sandbox HTTP call",
    ["operation"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

# Counter: Sandbox call failures
SANDBOX_FAILURES = Counter(
    "tpp_sandbox_failures_total",
    "Sandbox HTTP call failures",
    ["operation", "error_type"]  # timeout, connection_error, http_error, invalid_response
)

# =============================================================================
# HTTP METRICS (Standard)
# =============================================================================

HTTP_REQUESTS = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"]
)

HTTP_REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
)

# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def record_sandbox_call(
    operation: str,
    success: bool,
    latency_seconds: float,
    error_type: Optional[str] = None,
) -> None:
    """Record latency and outcome of one sandbox call."""
    SANDBOX_REQUEST_LATENCY.labels(operation=operation).observe(latency_seconds)

    if not success:
        SANDBOX_FAILURES.labels(operation=operation, error_type=error_type or "unknown").inc()


def record_token_exchange(grant_type: str, success: bool) -> None:
    """Record a token endpoint exchange."""
    outcome = "success" if success else "failed"
    TOKEN_EXCHANGES.labels(grant_type=grant_type, outcome=outcome).inc()


def record_consent_operation(service: str, operation: str, success: bool) -> None:
    """Record a consent create/get/revoke outcome."""
    outcome = "success" if success else "failed"
    CONSENT_OPERATIONS.labels(service=service, operation=operation, outcome=outcome).inc()


def record_http_request(method: str, endpoint: str, status: int, latency_seconds: float) -> None:
    """Record an inbound HTTP request."""
    HTTP_REQUESTS.labels(method=method, endpoint=endpoint, status=status).inc()
    HTTP_REQUEST_LATENCY.labels(method=method, endpoint=endpoint).observe(latency_seconds)


def error_type_for(exc: Exception) -> str:
    """Classify a transport exception for the failure counter."""
    return "timeout" if "timeout" in type(exc).__name__.lower() else "connection_error"
