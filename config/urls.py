"""
URL configuration for the Shadow Publisher Intake platform.
"""

from django.contrib import admin
from django.urls import path, include

from core.views_health import HealthCheckView, ReadinessCheckView

urlpatterns = [
    # Admin (operator review of logs, queue, shadow rows)
    path("admin/", admin.site.urls),

    # Health checks
    path('health/', HealthCheckView.as_view(), name='health'),
    path('health/ready/', ReadinessCheckView.as_view(), name='health-ready'),

    # Inbound webhooks
    path("webhooks/", include("intake.urls")),
]
