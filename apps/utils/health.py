import logging

from django.core.cache import cache
from django.db import DatabaseError, connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def health_check(request):
    status = {"db": "unknown", "cache": "unknown"}
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
        status["db"] = "ok"
    except DatabaseError as e:
        logger.error(f"Health check: database unavailable: {e}")
        status["db"] = "error"

    cache.set("health:ping", "pong", timeout=5)
    status["cache"] = "ok" if cache.get("health:ping") == "pong" else "error"

    healthy = all(v == "ok" for v in status.values())
    return JsonResponse(
        {"status": "ok" if healthy else "error", "components": status},
        status=200 if healthy else 503,
    )
