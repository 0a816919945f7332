"""
Hierarchy API Views

Provides downline endpoints:
- GET /api/hierarchy/<user_id>/descendants - Every user below a root
- GET /api/hierarchy/<user_id>/stats - Downline statistics
- GET /api/hierarchy/<user_id>/search - Search a root's downline
"""
import logging

from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.serializers import DateRangeParamsSerializer, validated_params

from .selectors import downline_summary, hierarchy_overview, search_downline, subtree_stats
from .serializers import DescendantsParamsSerializer, SearchParamsSerializer

logger = logging.getLogger(__name__)


class DescendantsView(APIView):
    """
    GET /api/hierarchy/<user_id>/descendants

    Query params:
        strict: true to fail with 422 instead of truncating at the depth ceiling
    """

    def get(self, request, user_id):
        params = validated_params(DescendantsParamsSerializer, request)
        return Response(downline_summary(user_id, strict=params['strict']))


class SubtreeStatsView(APIView):
    """
    GET /api/hierarchy/<user_id>/stats

    With start_date/end_date or period, returns statistics for that window.
    Without, returns month-to-date and year-to-date statistics.
    """

    def get(self, request, user_id):
        params = validated_params(DateRangeParamsSerializer, request)
        if params['date_range'] is None:
            return Response(hierarchy_overview(user_id))
        return Response(subtree_stats(user_id, params['date_range']))


class DownlineSearchView(APIView):
    """
    GET /api/hierarchy/<user_id>/search

    Query params:
        q: Name or email text
        level: Commission level (100) or rank label (GA)
        start_date, end_date / period: Window for production (default mtd)
        limit: Maximum results (capped at HIERARCHY_SEARCH_LIMIT)
    """

    def get(self, request, user_id):
        params = validated_params(SearchParamsSerializer, request)
        return Response(
            search_downline(
                user_id,
                query=params['q'],
                level=params['level'] or None,
                date_range=params['date_range'],
                limit=params.get('limit'),
            )
        )
