"""
Pytest Configuration for Commission Engine Tests

Key Features:
- Enables managed=True for unmanaged models during tests
- Provides API clients with and without the service token
- Builds the reference upline chains used across the suite
"""
import uuid
from datetime import date

import pytest
from django.apps import apps
from rest_framework.test import APIClient

from tests.factories import UserFactory


# =============================================================================
# Database Setup - Enable managed=True for unmanaged models
# =============================================================================

@pytest.fixture(scope='session')
def django_db_modify_db_settings(django_db_modify_db_settings_parallel_suffix):
    """
    Flip every unmanaged model to managed before the test database is built.
    This allows Django to create tables for models that normally point to
    existing production tables (managed=False).
    """
    for model in apps.get_models():
        if not model._meta.managed:
            model._meta.managed = True


# =============================================================================
# API Client Fixtures
# =============================================================================

@pytest.fixture
def api_client():
    """Basic API client without a service token."""
    return APIClient()


@pytest.fixture
def service_client(settings):
    """API client presenting the configured service token."""
    client = APIClient()
    client.credentials(HTTP_X_SERVICE_TOKEN=settings.ENGINE_SERVICE_TOKEN)
    return client


# =============================================================================
# Hierarchy Fixtures
# =============================================================================

@pytest.fixture
def owner(db):
    """An AO at the top of the tree."""
    return UserFactory(first_name='Zoe', last_name='Owner', commission_level=130)


@pytest.fixture
def manager(owner):
    """A GA reporting to the owner."""
    return UserFactory(first_name='Yuri', last_name='Manager', commission_level=100, upline=owner)


@pytest.fixture
def agent(manager):
    """A Prodigy reporting to the manager."""
    return UserFactory(first_name='Xena', last_name='Agent', commission_level=70, upline=manager)


@pytest.fixture
def user_id():
    """Generate a user ID that does not exist."""
    return uuid.uuid4()


@pytest.fixture
def sample_week():
    """A Monday to Sunday week used by the weekly payout tests."""
    return {
        'monday': date(2025, 3, 3),
        'wednesday': date(2025, 3, 5),
        'sunday': date(2025, 3, 9),
        'next_monday': date(2025, 3, 10),
    }
