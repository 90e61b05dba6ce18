"""
URL configuration for Task Nexus.
"""
import logging

from django.contrib import admin
from django.db import DatabaseError, connection
from django.urls import path
from ninja import NinjaAPI

from apps.core.errors import AppError
from apps.core.metrics import metrics_view
from apps.core.redis_client import ping as redis_ping

logger = logging.getLogger(__name__)

api = NinjaAPI(
    title="Task Nexus API",
    version="1.0.0",
    description="Team task collaboration API",
    docs_url="/docs",
)


@api.exception_handler(AppError)
def app_error(request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.path} failed: {exc}")
        # Internal details stay in the log.
        return api.create_response(request, {"detail": "internal server error"}, status=exc.status_code)
    return api.create_response(request, {"detail": exc.message}, status=exc.status_code)


@api.get("/health", response={200: dict, 503: dict}, auth=None, tags=["Health"])
def health(request):
    """Liveness plus database and Redis reachability."""
    checks = {"database": "ok", "redis": "ok"}
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
    except DatabaseError as e:
        logger.warning(f"Health check: database unreachable: {e}")
        checks["database"] = "unavailable"
    if not redis_ping():
        checks["redis"] = "unavailable"

    status = 200 if checks["database"] == "ok" else 503
    return status, {"status": "ok" if status == 200 else "degraded", **checks}


from apps.identity.api import router as identity_router
from apps.teams.api import router as teams_router
from apps.tasks.api import router as tasks_router

api.add_router("/auth/", identity_router)
api.add_router("/teams/", teams_router)
api.add_router("/tasks/", tasks_router)

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', api.urls),
    path('metrics', metrics_view, name='metrics'),
]
