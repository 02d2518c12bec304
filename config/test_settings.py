"""
Test settings: in-memory SQLite, deterministic secrets, IP checks off.

Individual tests override the webhook/IP settings with ``override_settings``
when they need production behaviour.
"""

from config.settings import *  # noqa: F401, F403

DEBUG = False
SECURE_SSL_REDIRECT = False

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

IS_PRODUCTION = False
MANYREACH_WEBHOOK_SECRET = "test-webhook-secret"
MANYREACH_SIGNATURE_SECRET = "test-signature-secret"
MANYREACH_API_KEY = "test-manyreach-key"
MANYREACH_CAMPAIGN_IDS = []
MANYREACH_ALLOWED_IP_RANGES = ["54.86.0.0/16"]
MANYREACH_BYPASS_IP_CHECK = False

OPENROUTER_API_KEY = ""
ANTHROPIC_API_KEY = ""
