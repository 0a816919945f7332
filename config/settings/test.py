"""
Django Test Settings for the Commission Engine

Uses SQLite in-memory database for fast testing unless TEST_DB_ENGINE points
at PostgreSQL. Unmanaged models are flipped to managed by tests/conftest.py
so Django can create their tables.
"""
from .base import *  # noqa: F401, F403

# =============================================================================
# Debug Mode for Tests
# =============================================================================

DEBUG = False

# =============================================================================
# Database - SQLite by default, PostgreSQL when configured
# =============================================================================

TEST_DB_ENGINE = config('TEST_DB_ENGINE', default='django.db.backends.sqlite3')  # noqa: F405

if TEST_DB_ENGINE == 'django.db.backends.postgresql':
    DATABASES = {
        'default': {
            'ENGINE': TEST_DB_ENGINE,
            'NAME': config('TEST_DB_NAME', default='commission_engine_test'),  # noqa: F405
            'USER': config('TEST_DB_USER', default='postgres'),  # noqa: F405
            'PASSWORD': config('TEST_DB_PASSWORD', default='postgres'),  # noqa: F405
            'HOST': config('TEST_DB_HOST', default='localhost'),  # noqa: F405
            'PORT': config('TEST_DB_PORT', default='5432'),  # noqa: F405
            'OPTIONS': {},
            'TEST': {
                'NAME': 'commission_engine_test',
            },
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': ':memory:',
        }
    }

# =============================================================================
# Speed Optimizations for Tests
# =============================================================================

# Use faster password hasher for tests
PASSWORD_HASHERS = [
    'django.contrib.auth.hashers.MD5PasswordHasher',
]

# Disable logging during tests
LOGGING = {
    'version': 1,
    'disable_existing_loggers': True,
    'handlers': {
        'null': {
            'class': 'logging.NullHandler',
        },
    },
    'root': {
        'handlers': ['null'],
        'level': 'CRITICAL',
    },
}

# =============================================================================
# REST Framework Test Settings
# =============================================================================

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'apps.core.authentication.ServiceTokenAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.AllowAny',
    ],
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'EXCEPTION_HANDLER': 'apps.core.exceptions.custom_exception_handler',
    'UNAUTHENTICATED_USER': None,
}

# =============================================================================
# Engine Configuration
# =============================================================================

ENGINE_SERVICE_TOKEN = 'test-service-token'

COMMISSION_MAX_UPLINE_DEPTH = 20
COMMISSION_UNCLAIMED_POLICY = 'unassigned'
COMMISSION_HOUSE_ACCOUNT_ID = ''
HIERARCHY_MAX_DEPTH = 50
HIERARCHY_SEARCH_LIMIT = 50

# =============================================================================
# CORS - Allow all for tests
# =============================================================================

CORS_ALLOW_ALL_ORIGINS = True
