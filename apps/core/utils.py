"""
Utility functions for the Commission Engine

Common helpers used across selectors, serializers and views.
"""
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from django.conf import settings

from apps.core.constants import CENT


def format_full_name(first_name: str | None, last_name: str | None) -> str:
    """
    Format first and last name into a full name string.

    Args:
        first_name: The first name (can be None)
        last_name: The last name (can be None)

    Returns:
        Formatted full name with whitespace trimmed
    """
    return f"{first_name or ''} {last_name or ''}".strip()


def to_cents(value) -> Decimal:
    """Round a money value to cents, half up."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def money(value) -> str:
    """Render a money value the way the API returns it: a two-place string."""
    return str(to_cents(value or 0))


def engine_setting(name: str, default):
    return getattr(settings, name, default)


def uuid_or_none(value) -> UUID | None:
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None
