"""
Payouts API Views

Provides payout-related endpoints:
- GET /api/payouts/<user_id>/weekly - Personal weekly payouts
- GET /api/payouts/<user_id>/weekly/team - Team weekly payouts (BA and up)
- GET /api/payouts/<user_id>/rank - Production rank
- GET /api/payouts/leaderboard - Production leaderboard
"""
import logging

from django.utils import timezone
from rest_framework import serializers
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.dates import DateRange
from apps.core.serializers import DateRangeParamsSerializer, WeekParamsSerializer, validated_params

from .selectors import leaderboard, personal_payouts, production_rank, team_payouts

logger = logging.getLogger(__name__)


class LeaderboardParamsSerializer(DateRangeParamsSerializer):
    limit = serializers.IntegerField(required=False, min_value=1)


def _window(params) -> DateRange:
    return params['date_range'] or DateRange.month_to_date(timezone.localdate())


class PersonalPayoutsView(APIView):
    """
    GET /api/payouts/<user_id>/weekly

    Query params:
        week_start: Any date in the week (YYYY-MM-DD, default current week)
    """

    def get(self, request, user_id):
        params = validated_params(WeekParamsSerializer, request)
        return Response(personal_payouts(user_id, params.get('week_start')))


class TeamPayoutsView(APIView):
    """
    GET /api/payouts/<user_id>/weekly/team

    Query params:
        week_start: Any date in the week (YYYY-MM-DD, default current week)
    """

    def get(self, request, user_id):
        params = validated_params(WeekParamsSerializer, request)
        return Response(team_payouts(user_id, params.get('week_start')))


class ProductionRankView(APIView):
    """
    GET /api/payouts/<user_id>/rank

    Query params:
        start_date, end_date / period: Ranking window (default mtd)
    """

    def get(self, request, user_id):
        params = validated_params(DateRangeParamsSerializer, request)
        return Response(production_rank(user_id, _window(params)))


class LeaderboardView(APIView):
    """
    GET /api/payouts/leaderboard

    Query params:
        start_date, end_date / period: Ranking window (default mtd)
        limit: Number of entries
    """

    def get(self, request):
        params = validated_params(LeaderboardParamsSerializer, request)
        return Response(leaderboard(_window(params), limit=params.get('limit')))
