import logging

import redis
from celery import current_app
from channels.layers import get_channel_layer
from django.conf import settings
from django.db import connection
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from notifications.tasks import deliver_notification_task

logger = logging.getLogger(__name__)


def _check_database():
    with connection.cursor() as cursor:
        cursor.execute("SELECT 1")


def _check_redis():
    redis.Redis.from_url(settings.REDIS_URL, socket_timeout=3).ping()


def _check_channel_layer():
    if get_channel_layer() is None:
        raise RuntimeError("no channel layer configured")


def _check_notification_worker():
    if deliver_notification_task.name not in current_app.tasks:
        raise RuntimeError("delivery task not registered")


CHECKS = (
    ("database", _check_database),
    ("redis", _check_redis),
    ("channels", _check_channel_layer),
    ("celery", _check_notification_worker),
)


@api_view(["GET"])
@permission_classes([AllowAny])
def health_check(request):
    """Report whether each backing service answers; 503 if any does not."""
    services = {}
    for name, check in CHECKS:
        try:
            check()
            services[name] = "healthy"
        except Exception as e:
            logger.warning("Health check %s failed: %s", name, e)
            services[name] = f"unhealthy: {e}"

    healthy = all(state == "healthy" for state in services.values())
    return Response(
        {
            "status": "healthy" if healthy else "unhealthy",
            "timestamp": timezone.now().isoformat(),
            "services": services,
        },
        status=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
    )
