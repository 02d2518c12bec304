"""
Health check endpoints for monitoring.

/health/       - Liveness check (always returns 200)
/health/ready/ - Readiness check (verifies DB, webhook secret, shadow backlog)
"""
import logging

from django.conf import settings
from django.db import DatabaseError, connection
from django.http import JsonResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

logger = logging.getLogger(__name__)


@method_decorator(csrf_exempt, name='dispatch')
class HealthCheckView(View):
    """Liveness probe: always returns 200 if Django is running."""

    def get(self, request):
        return JsonResponse({"status": "ok"})


@method_decorator(csrf_exempt, name='dispatch')
class ReadinessCheckView(View):
    """Readiness probe: checks database and critical config."""

    def get(self, request):
        checks = {}

        # 1. Database connectivity
        try:
            with connection.cursor() as cursor:
                cursor.execute("SELECT 1")
            checks["database"] = "ok"
        except DatabaseError as e:
            logger.error(f"Readiness DB check failed: {e}")
            checks["database"] = f"error: {e}"

        # 2. Required secrets present
        checks["config"] = {
            "webhook_secret": bool(settings.MANYREACH_WEBHOOK_SECRET),
            "ai_key": bool(settings.OPENROUTER_API_KEY or settings.ANTHROPIC_API_KEY),
            "manyreach_key": bool(settings.MANYREACH_API_KEY),
        }

        # 3. Shadow backlog (basic data sanity)
        if checks["database"] == "ok":
            from publishers.models import ShadowRelationship
            checks["pending_shadow_relationships"] = (
                ShadowRelationship.objects.migratable().count()
            )

        all_ok = checks["database"] == "ok" and checks["config"]["webhook_secret"]

        return JsonResponse(
            {"status": "ready" if all_ok else "degraded", "checks": checks},
            status=200 if all_ok else 503,
        )
