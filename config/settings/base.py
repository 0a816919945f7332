"""
Django Base Settings for the Commission Engine

This file contains all shared settings used across environments.
Environment-specific settings are in development.py and production.py.
"""
from pathlib import Path

from decouple import Csv, config

# Build paths inside the project like this: BASE_DIR / 'subdir'
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# =============================================================================
# Core Settings
# =============================================================================

SECRET_KEY = config('DJANGO_SECRET_KEY', default='django-insecure-change-me-in-production')

DEBUG = config('DJANGO_DEBUG', default=True, cast=bool)

ALLOWED_HOSTS = config('ALLOWED_HOSTS', default='localhost,127.0.0.1', cast=Csv())

# =============================================================================
# Application Definition
# =============================================================================

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.auth',

    'rest_framework',
    'corsheaders',

    # Local apps
    'apps.core',
    'apps.commissions',  # Split computation and company rollups
    'apps.hierarchy',    # Downline traversal, stats and search
    'apps.payouts',      # Weekly payouts and production rank
]

MIDDLEWARE = [
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
]

ROOT_URLCONF = 'config.urls'

WSGI_APPLICATION = 'config.wsgi.application'

# =============================================================================
# Database
# Connects to the production tracker's PostgreSQL database - no migrations run
# =============================================================================

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': config('DB_NAME', default='postgres'),
        'USER': config('DB_USER', default='postgres'),
        'PASSWORD': config('DB_PASSWORD', default=''),
        'HOST': config('DB_HOST', default='localhost'),
        'PORT': config('DB_PORT', default='5432'),
        'OPTIONS': {
            'sslmode': config('DB_SSLMODE', default='require'),
        },
    }
}

# =============================================================================
# Service Authentication
# =============================================================================

# Shared secret presented by the web application in the X-Service-Token header
ENGINE_SERVICE_TOKEN = config('ENGINE_SERVICE_TOKEN', default='')

# =============================================================================
# REST Framework
# =============================================================================

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'apps.core.authentication.ServiceTokenAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'apps.core.authentication.IsTrustedService',
    ],
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'EXCEPTION_HANDLER': 'apps.core.exceptions.custom_exception_handler',
    'UNAUTHENTICATED_USER': None,
}

# =============================================================================
# CORS Configuration
# =============================================================================

CORS_ALLOWED_ORIGINS = config(
    'CORS_ALLOWED_ORIGINS',
    default='http://localhost:3000',
    cast=Csv()
)

CORS_ALLOW_CREDENTIALS = True

CORS_ALLOW_HEADERS = [
    'accept',
    'accept-encoding',
    'content-type',
    'origin',
    'user-agent',
    'x-requested-with',
    'x-service-token',
]

# =============================================================================
# Internationalization
# =============================================================================

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = False
USE_TZ = True

# =============================================================================
# Commission Engine Settings
# =============================================================================

# Upline chains are capped at this many ancestors when splitting a deal
COMMISSION_MAX_UPLINE_DEPTH = config('COMMISSION_MAX_UPLINE_DEPTH', default=20, cast=int)

# What happens to the percent left under the 130 cap when no ancestor reaches it:
#   'unassigned' - nobody is paid for it
#   'house'      - it is written as a HOUSE split to COMMISSION_HOUSE_ACCOUNT_ID
COMMISSION_UNCLAIMED_POLICY = config('COMMISSION_UNCLAIMED_POLICY', default='unassigned')
COMMISSION_HOUSE_ACCOUNT_ID = config('COMMISSION_HOUSE_ACCOUNT_ID', default='')

# Allowed drift (per split row) between persisted amounts and pool x percent
COMMISSION_RECONCILIATION_TOLERANCE = config('COMMISSION_RECONCILIATION_TOLERANCE', default='0.01')

# Downline traversal ceiling and search result cap
HIERARCHY_MAX_DEPTH = config('HIERARCHY_MAX_DEPTH', default=50, cast=int)
HIERARCHY_SEARCH_LIMIT = config('HIERARCHY_SEARCH_LIMIT', default=50, cast=int)

# =============================================================================
# Logging
# =============================================================================

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {module} {message}',
            'style': '{',
        },
        'simple': {
            'format': '{levelname} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'INFO',
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': config('DJANGO_LOG_LEVEL', default='INFO'),
            'propagate': False,
        },
        'apps': {
            'handlers': ['console'],
            'level': 'DEBUG',
            'propagate': False,
        },
    },
}

# =============================================================================
# Default primary key field type
# =============================================================================

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'
