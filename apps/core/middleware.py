import logging
import time

from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin

from apps.identity.jwt_auth import get_user_id_from_request
from .errors import RateLimitedError
from .metrics import HTTP_ACTIVE_REQUESTS, HTTP_REQUEST_DURATION, HTTP_REQUESTS_TOTAL, route_label
from .rate_limit import RateLimiter

logger = logging.getLogger(__name__)


class MetricsMiddleware(MiddlewareMixin):
    """
    Records request count, latency and in-flight requests, and logs one
    line per request. Sits first in MIDDLEWARE so rejected requests
    (429, 401) are counted too.
    """

    def process_request(self, request):
        request._metrics_start = time.monotonic()
        HTTP_ACTIVE_REQUESTS.inc()
        return None

    def process_response(self, request, response):
        start = getattr(request, '_metrics_start', None)
        if start is None:
            return response
        HTTP_ACTIVE_REQUESTS.dec()

        duration = time.monotonic() - start
        path = route_label(request)
        HTTP_REQUESTS_TOTAL.labels(request.method, path, str(response.status_code)).inc()
        HTTP_REQUEST_DURATION.labels(request.method, path).observe(duration)

        logger.info(f"{request.method} {request.path} {response.status_code} {duration * 1000:.1f}ms")
        return response


class RateLimitMiddleware(MiddlewareMixin):
    """
    Applies the per-user sliding-window limiter to API requests.

    The identity comes from the bearer token. Requests without a valid token
    are anonymous: they are never limited here, and the endpoint's own
    authentication rejects them if it needs a user.
    """

    def __init__(self, get_response):
        super().__init__(get_response)
        self.limiter = None

    def process_request(self, request):
        if not request.path.startswith('/api/'):
            return None

        if self.limiter is None:
            self.limiter = RateLimiter()

        user_id = get_user_id_from_request(request)
        if self.limiter.allow(user_id):
            return None

        logger.warning(f"[RATE_LIMIT] Rejected {request.method} {request.path} for user {user_id}")
        return JsonResponse({"detail": RateLimitedError.default_message}, status=RateLimitedError.status_code)
