"""
Monitoring and metrics setup.
"""
import logging
from prometheus_client import Counter, Histogram, generate_latest

from specplan.core.config import settings

logger = logging.getLogger(__name__)

# Metrics
test_step_total = Counter(
    'test_step_total',
    'Total test steps run',
    ['method', 'outcome']
)

test_case_total = Counter(
    'test_case_total',
    'Total test cases run',
    ['outcome']
)

outbound_request_duration = Histogram(
    'outbound_request_duration_seconds',
    'Outbound HTTP request duration',
    ['method']
)


def get_metrics() -> bytes:
    """Get Prometheus metrics."""
    return generate_latest()


def record_test_step(method: str, outcome: str):
    """Record a finished test step."""
    if settings.ENABLE_METRICS:
        test_step_total.labels(method=method or 'REF', outcome=outcome).inc()


def record_test_case(outcome: str):
    """Record a finished test case."""
    if settings.ENABLE_METRICS:
        test_case_total.labels(outcome=outcome).inc()


def record_http_request(method: str, duration: float):
    """Record outbound HTTP request metrics."""
    if settings.ENABLE_METRICS:
        outbound_request_duration.labels(method=method).observe(duration)
