"""
URL Configuration for the Commission Engine API

All routes are prefixed with /api/.
"""
from django.urls import include, path

from apps.core.views import health_check

urlpatterns = [
    # Health check endpoint (public)
    path('api/health', health_check, name='health_check'),

    # Commission split endpoints
    path('api/commissions/', include('apps.commissions.urls')),

    # Downline endpoints
    path('api/hierarchy/', include('apps.hierarchy.urls')),

    # Payout and ranking endpoints
    path('api/payouts/', include('apps.payouts.urls')),
]
