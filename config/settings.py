"""
Django settings for the Shadow Publisher Intake platform.

Inbound outreach replies (ManyReach webhook + poller) -> extraction ->
confidence gate -> shadow publishers -> migration at claim time.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# Load environment variables from .env file
load_dotenv(BASE_DIR / ".env")

# Environment variables (with defaults for development)
SECRET_KEY = os.environ.get(
    "SECRET_KEY",
    "django-insecure-dev-key-change-in-production"
)

DEBUG = os.environ.get("DEBUG", "True").lower() == "true"

ALLOWED_HOSTS = os.environ.get("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",")

# "production" enables the webhook IP allow-list
DJANGO_ENV = os.environ.get("DJANGO_ENV", "development")
IS_PRODUCTION = DJANGO_ENV == "production"

# API Keys (loaded from environment)
OPENROUTER_API_KEY = os.environ.get("OPENROUTER_API_KEY", "")
ANTHROPIC_API_KEY = os.environ.get("ANTHROPIC_API_KEY", "")

# ManyReach (outreach provider)
MANYREACH_API_KEY = os.environ.get("MANYREACH_API_KEY", "")
MANYREACH_API_BASE = os.environ.get("MANYREACH_API_BASE", "https://app.manyreach.com/api")
MANYREACH_WEBHOOK_SECRET = os.environ.get("MANYREACH_WEBHOOK_SECRET", "")
MANYREACH_SIGNATURE_SECRET = os.environ.get("MANYREACH_SIGNATURE_SECRET", "")
MANYREACH_CAMPAIGN_IDS = [
    c.strip() for c in os.environ.get("MANYREACH_CAMPAIGN_IDS", "").split(",") if c.strip()
]
MANYREACH_ALLOWED_IP_RANGES = [
    r.strip() for r in os.environ.get("MANYREACH_ALLOWED_IP_RANGES", "").split(",") if r.strip()
]
MANYREACH_BYPASS_IP_CHECK = os.environ.get("MANYREACH_BYPASS_IP_CHECK", "False").lower() == "true"

# Application definition
INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Local apps
    "core.apps.CoreConfig",
    "publishers.apps.PublishersConfig",
    "intake.apps.IntakeConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "config.middleware.CorrelationIdMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "config.wsgi.application"

# Database
# Use PostgreSQL if DATABASE_URL is set, otherwise SQLite
DATABASE_URL = os.environ.get("DATABASE_URL")

if DATABASE_URL:
    import dj_database_url
    DATABASES = {
        "default": dj_database_url.parse(DATABASE_URL, conn_max_age=600)
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }

# Internationalization
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

# Default primary key field type
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# Shadow publisher pipeline configuration.
# The confidence tiers are the single source of truth for both the
# webhook and the poller paths.
SHADOW_PUBLISHER_CONFIG = {
    "confidence": {
        "auto_approve": float(os.environ.get("SHADOW_AUTO_APPROVE_THRESHOLD", "0.7")),
        "medium_review": 0.5,
        "low_review": 0.3,
    },
    "migration": {
        "default_turnaround_days": 7,
        "archive_after_days": 90,
    },
    "poller": {
        "lease_seconds": 1800,
        "max_prospect_pages": 50,
    },
    "invitation_days": 30,
    "medium_review_auto_approve_hours": 24,
    "prompt_cache_seconds": 300,
    "request_timeout_seconds": 15,
    "llm_timeout_seconds": 60,
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "filters": {
        "correlation_id": {"()": "config.logging_filters.CorrelationIdFilter"},
    },
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "filters": ["correlation_id"],
            "formatter": "standard",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": os.environ.get("LOG_LEVEL", "INFO"),
    },
}

# Production Security Settings
if not DEBUG:
    SECURE_SSL_REDIRECT = True
    SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True
    SECURE_HSTS_SECONDS = 31536000
    SECURE_HSTS_INCLUDE_SUBDOMAINS = True
    SECURE_HSTS_PRELOAD = True

CSRF_TRUSTED_ORIGINS = os.environ.get(
    "CSRF_TRUSTED_ORIGINS",
    "https://*.ondigitalocean.app"
).split(",")
