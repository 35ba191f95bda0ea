"""Prometheus metrics endpoint for the ACC admin service."""

from fastapi import APIRouter, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

router = APIRouter()

# Request metrics
REQUEST_COUNT = Counter(
    "acc_admin_requests_total",
    "Total number of requests",
    ["method", "endpoint", "status_code"],
)

REQUEST_LATENCY = Histogram(
    "acc_admin_request_latency_seconds",
    "Request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

# Job lifecycle metrics
JOB_ACTIONS = Counter(
    "acc_admin_job_actions_total",
    "Job lifecycle actions by outcome",
    ["action", "outcome"],  # outcome: ok or an error kind
)

# Lookup cache metrics
CACHE_LOOKUPS = Counter(
    "acc_admin_cache_lookups_total",
    "Address lookup cache hits and misses",
    ["cache", "result"],  # result: hit, miss, stale
)

# Service health metrics
SERVICE_UP = Gauge(
    "acc_admin_service_up",
    "Service availability (1=up, 0=down)",
    ["component"],
)


def record_request(method: str, endpoint: str, status_code: int, duration: float):
    """Record request metrics."""
    REQUEST_COUNT.labels(
        method=method, endpoint=endpoint, status_code=status_code
    ).inc()
    REQUEST_LATENCY.labels(method=method, endpoint=endpoint).observe(duration)


def record_job_action(action: str, outcome: str):
    """Record a job lifecycle action."""
    JOB_ACTIONS.labels(action=action, outcome=outcome).inc()


def record_cache_lookup(cache: str, result: str):
    """Record a lookup cache hit/miss."""
    CACHE_LOOKUPS.labels(cache=cache, result=result).inc()


def set_service_health(component: str, is_up: bool):
    """Set service component health status."""
    SERVICE_UP.labels(component=component).set(1 if is_up else 0)


@router.get("/metrics", include_in_schema=False)
async def metrics():
    """Prometheus metrics endpoint.

    Returns metrics in Prometheus text format for scraping.
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
