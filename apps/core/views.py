"""
Core Views for the Commission Engine

Health check used by deployments and by the web application before it starts
routing commission traffic here.
"""
from django.db import connection
from django.http import JsonResponse
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny

from apps.core.utils import engine_setting


def _engine_config() -> dict:
    """Settings that change split results, so operators can confirm them."""
    return {
        'unclaimed_policy': engine_setting('COMMISSION_UNCLAIMED_POLICY', 'unassigned'),
        'house_account_configured': bool(engine_setting('COMMISSION_HOUSE_ACCOUNT_ID', '')),
        'max_upline_depth': engine_setting('COMMISSION_MAX_UPLINE_DEPTH', 20),
        'max_downline_depth': engine_setting('HIERARCHY_MAX_DEPTH', 50),
    }


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def health_check(request):
    """
    Health check endpoint for deployment verification.

    Returns:
        - 200: Database reachable
        - 503: Database check failed
    """
    payload = {
        'status': 'healthy',
        'service': 'commission-engine',
        'engine': _engine_config(),
    }

    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
            cursor.fetchone()
    except Exception as e:
        payload['status'] = 'unhealthy'
        payload['database'] = f'error: {e}'
        return JsonResponse(payload, status=503)

    payload['database'] = 'connected'
    return JsonResponse(payload)
