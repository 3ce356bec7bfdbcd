from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# HTTP
http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint']
)

# Auth
auth_events_total = Counter(
    'schoolbridge_auth_events_total',
    'Authentication events',
    ['event', 'outcome']
)

# Invitations
invitations_total = Counter(
    'schoolbridge_invitations_total',
    'Invitations processed, by resulting status',
    ['status']
)

# Cleanup job
cleanup_runs_total = Counter('schoolbridge_cleanup_runs_total', 'Cleanup job runs', ['outcome'])
cleanup_deleted_total = Counter(
    'schoolbridge_cleanup_deleted_total',
    'Rows removed by the cleanup job',
    ['kind']
)


def metrics_endpoint():
    """Endpoint for Prometheus scraping"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
