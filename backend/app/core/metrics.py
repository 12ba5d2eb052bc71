"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total booking creation attempts',
    ['status']  # success, conflict, error
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Booking creation latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

booking_transitions = Counter(
    'booking_status_transitions_total',
    'Booking status transitions',
    ['from_status', 'to_status']
)

cancellation_requests = Counter(
    'booking_cancellation_requests_total',
    'Cancellation workflow actions',
    ['action']  # requested, approved, declined
)

# Payment metrics
payment_events = Counter(
    'payment_events_total',
    'Payment reconciliation events',
    ['source', 'result']  # webhook/confirm/manual, applied/duplicate/ignored
)

# Database metrics
db_retries = Counter(
    'db_retry_attempts_total',
    'Room lock retry attempts due to version conflicts'
)

# Side effects
side_effect_failures = Counter(
    'side_effect_failures_total',
    'Best-effort side effects that failed',
    ['channel']  # notification, email, activity_log
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)

redis_connection_errors = Counter(
    'redis_connection_errors_total',
    'Redis connection errors'
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(status: str):
    """Record booking attempt. Status: success, conflict, error"""
    booking_attempts.labels(status=status).inc()


def record_transition(from_status: str, to_status: str):
    booking_transitions.labels(from_status=from_status, to_status=to_status).inc()


def record_payment_event(source: str, result: str):
    payment_events.labels(source=source, result=result).inc()


def record_side_effect_failure(channel: str):
    side_effect_failures.labels(channel=channel).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
