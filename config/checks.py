"""
Django system checks for required configuration.

Runs automatically on `manage.py runserver`, `migrate`, and `check`.
"""
import ipaddress
import os

from django.conf import settings
from django.core.checks import Error, Warning, register


@register()
def check_required_settings(app_configs, **kwargs):
    errors = []

    # E001: webhook secret must exist in production (unset secret denies every call)
    if settings.IS_PRODUCTION and not settings.MANYREACH_WEBHOOK_SECRET:
        errors.append(Error(
            "MANYREACH_WEBHOOK_SECRET not set in production.",
            hint="Every inbound webhook will be rejected with 401 until it is set.",
            id="intake.E001",
        ))

    # E002: allow-list entries must parse as IPv4 networks
    for cidr in settings.MANYREACH_ALLOWED_IP_RANGES:
        try:
            ipaddress.IPv4Network(cidr, strict=False)
        except ValueError:
            errors.append(Error(
                f"Invalid entry in MANYREACH_ALLOWED_IP_RANGES: {cidr!r}",
                hint="Use IPv4 CIDR notation, e.g. 54.86.0.0/16",
                id="intake.E002",
            ))

    # E003: DATABASE_URL required in production
    if settings.IS_PRODUCTION and not os.environ.get("DATABASE_URL"):
        errors.append(Error(
            "DATABASE_URL not set in production.",
            hint="Set DATABASE_URL for PostgreSQL connection.",
            id="intake.E003",
        ))

    # W001: extraction needs an AI key
    if not settings.OPENROUTER_API_KEY and not settings.ANTHROPIC_API_KEY:
        errors.append(Warning(
            "No AI API key configured; every extraction will fail.",
            hint="Set OPENROUTER_API_KEY or ANTHROPIC_API_KEY in .env",
            id="intake.W001",
        ))

    # W002: poller needs the ManyReach key
    if not settings.MANYREACH_API_KEY:
        errors.append(Warning(
            "MANYREACH_API_KEY not configured; the campaign poller cannot run.",
            hint="Set MANYREACH_API_KEY in .env",
            id="intake.W002",
        ))

    # W003: bypass flag left on in production
    if settings.IS_PRODUCTION and settings.MANYREACH_BYPASS_IP_CHECK:
        errors.append(Warning(
            "MANYREACH_BYPASS_IP_CHECK is enabled in production.",
            id="intake.W003",
        ))

    return errors
