"""
Core API views.
"""
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from django.db import connection
from drf_spectacular.utils import extend_schema
from drf_spectacular.types import OpenApiTypes
import logging

logger = logging.getLogger(__name__)


class HealthCheckView(APIView):
    """
    Health check endpoint to verify system dependencies.

    GET /v1/health/

    Returns 200 if the database and the notification workers are reachable,
    503 otherwise. Check errors are logged, not returned.
    """
    authentication_classes = []
    permission_classes = []

    @extend_schema(
        tags=['System'],
        summary="Health check",
        responses={200: OpenApiTypes.OBJECT, 503: OpenApiTypes.OBJECT},
    )
    def get(self, request):
        health_status = {
            'status': 'healthy',
            'database': 'unknown',
            'celery': 'unknown',
        }

        try:
            with connection.cursor() as cursor:
                cursor.execute("SELECT 1")
            health_status['database'] = 'healthy'
        except Exception:
            health_status['database'] = 'unhealthy'
            logger.error("Database health check failed", exc_info=True)

        try:
            from config.celery import app as celery_app
            stats = celery_app.control.inspect(timeout=2.0).stats()
            health_status['celery'] = 'healthy' if stats else 'unhealthy'
        except Exception:
            health_status['celery'] = 'unhealthy'
            logger.error("Celery health check failed", exc_info=True)

        if 'unhealthy' in (health_status['database'], health_status['celery']):
            health_status['status'] = 'unhealthy'
            return Response(health_status, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        return Response(health_status, status=status.HTTP_200_OK)
