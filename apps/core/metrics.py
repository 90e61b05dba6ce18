"""
Prometheus metrics for the HTTP layer.

Series:
    http_requests_total{method,path,status}      counter
    http_request_duration_seconds{method,path}   histogram
    http_active_requests                         gauge

``path`` is the matched URL route (``/api/tasks/<task_id>``), or the raw
request path when nothing matched. Scraped from ``/metrics``.
"""
from django.http import HttpResponse
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

HTTP_REQUESTS_TOTAL = Counter(
    'http_requests_total',
    'Total number of HTTP requests',
    ['method', 'path', 'status'],
)

HTTP_REQUEST_DURATION = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'path'],
)

HTTP_ACTIVE_REQUESTS = Gauge(
    'http_active_requests',
    'Number of active HTTP requests',
)


def route_label(request) -> str:
    match = getattr(request, 'resolver_match', None)
    if match is not None and match.route:
        return '/' + match.route.lstrip('^')
    return request.path


def metrics_view(request):
    """Prometheus text exposition of the default registry."""
    return HttpResponse(generate_latest(), content_type=CONTENT_TYPE_LATEST)
