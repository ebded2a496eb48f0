"""Prometheus metrics for the provider configuration service."""

from __future__ import annotations

from prometheus_client import Counter, Histogram, Gauge


# ── HTTP metrics ─────────────────────────────────────────────
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── Circuit breaker metrics ──────────────────────────────────
BREAKER_TRANSITIONS = Counter(
    "circuit_breaker_transitions_total",
    "Circuit breaker state transitions",
    ["breaker", "from_state", "to_state"],
)

BREAKER_STATE = Gauge(
    "circuit_breaker_state",
    "Current breaker state (0=closed, 1=half_open, 2=open)",
    ["breaker"],
)

BREAKER_REJECTIONS = Counter(
    "circuit_breaker_rejections_total",
    "Calls refused without being attempted",
    ["breaker"],
)

# ── Provider metrics ─────────────────────────────────────────
PROVIDER_CALLS = Counter(
    "provider_calls_total",
    "Provider call outcomes reported to the breaker",
    ["slot", "provider", "outcome"],
)

PROVIDER_PROBES = Counter(
    "provider_probes_total",
    "Connectivity probes by kind and result",
    ["provider", "kind", "result"],
)

PROVIDER_PROBE_LATENCY = Histogram(
    "provider_probe_latency_seconds",
    "Connectivity probe latency",
    ["provider"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

_STATE_VALUES = {"CLOSED": 0, "HALF_OPEN": 1, "OPEN": 2}


def set_breaker_state(breaker: str, state: str) -> None:
    BREAKER_STATE.labels(breaker=breaker).set(_STATE_VALUES.get(state, 0))


def record_breaker_transition(breaker: str, from_state: str, to_state: str) -> None:
    BREAKER_TRANSITIONS.labels(
        breaker=breaker, from_state=from_state, to_state=to_state
    ).inc()
    set_breaker_state(breaker, to_state)
